"""
Cache utilities for the IPL Wager application
Provides caching decorators and helper functions for match listings
"""

import functools

from flask import current_app, request

from app import cache

def make_cache_key(*args, **kwargs):
    """Generate a cache key from request path, query string and arguments"""
    path = request.path
    query = "_".join(f"{k}_{v}" for k, v in sorted(request.args.items()))
    args_str = "_".join(str(arg) for arg in args)
    kwargs_str = "_".join(f"{k}_{v}" for k, v in sorted(kwargs.items()))
    return f"{path}_{query}_{args_str}_{kwargs_str}".replace("/", "_")


def _model_version(model_name):
    return cache.get(f"{model_name}_cache_version") or 0


def cached_route(timeout=300, key_prefix="view", model_name=None):
    """
    Decorator for caching route responses

    Args:
        timeout: Cache timeout in seconds (default 5 minutes)
        key_prefix: Prefix for cache key
        model_name: Model whose invalidation should also drop this entry
    """

    def decorator(f):
        @functools.wraps(f)
        def wrapped(*args, **kwargs):
            version = _model_version(model_name) if model_name else 0
            cache_key = f"{key_prefix}_v{version}_{make_cache_key(*args, **kwargs)}"

            # Try to get from cache
            result = cache.get(cache_key)
            if result is not None:
                current_app.logger.debug(f"Cache hit for key: {cache_key}")
                return result

            # Execute function and cache result
            result = f(*args, **kwargs)
            cache.set(cache_key, result, timeout=timeout)
            current_app.logger.debug(f"Cache set for key: {cache_key}")

            return result

        return wrapped

    return decorator


def invalidate_model_cache(model_name):
    """
    Invalidate all cache entries for a specific model

    Bumps the model's version number, so keys built with the old version are
    never read again and simply expire.

    Args:
        model_name: Name of the model to invalidate
    """
    version_key = f"{model_name}_cache_version"
    try:
        cache.set(version_key, _model_version(model_name) + 1, timeout=0)
        current_app.logger.debug(f"Cache invalidated for model: {model_name}")
    except Exception as e:
        current_app.logger.error(f"Failed to invalidate cache for {model_name}: {e}")
