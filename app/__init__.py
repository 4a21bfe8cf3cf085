import logging
import os

import redis
from flask import Flask, jsonify, request
from flask_caching import Cache
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_socketio import SocketIO
from flask_sqlalchemy import SQLAlchemy
from flask_wtf.csrf import CSRFProtect
from sqlalchemy.exc import OperationalError

from config import config

logger = logging.getLogger(__name__)

db = SQLAlchemy()
login_manager = LoginManager()
socketio = SocketIO()
cache = Cache()
migrate = Migrate()
csrf = CSRFProtect()


def get_real_ip():
    """
    Get the real client IP address, accounting for reverse proxies.
    Checks X-Forwarded-For, X-Real-IP, and falls back to remote_addr.
    """
    # X-Forwarded-For: client, proxy1, proxy2, ...
    # We want the leftmost (original client) IP
    if request.headers.get("X-Forwarded-For"):
        return request.headers.get("X-Forwarded-For").split(",")[0].strip()
    if request.headers.get("X-Real-IP"):
        return request.headers.get("X-Real-IP")
    return get_remote_address()


def _redis_url_if_reachable(redis_url):
    """Return ``redis_url`` when a Redis server answers there, else None"""
    if not redis_url:
        return None
    try:
        redis.Redis.from_url(redis_url).ping()
        return redis_url
    except redis.exceptions.RedisError as e:
        print(f"⚠ Redis not available at {redis_url}: {e}")
        return None


# Use Redis for rate limiting when available so limits are shared across workers
limiter_storage_uri = (
    _redis_url_if_reachable(os.environ.get("REDIS_URL")) or "memory://"
)

limiter = Limiter(
    key_func=get_real_ip,
    default_limits=["10000 per day", "1000 per hour"],
    storage_uri=limiter_storage_uri,
)


def create_app(config_name=None, config_overrides=None):
    app = Flask(__name__)

    # Determine configuration
    if config_name is None:
        config_name = os.environ.get("FLASK_CONFIG", "default")

    app.config.from_object(config[config_name]())
    if config_overrides:
        app.config.update(config_overrides)

    # Session cookies
    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.config["SESSION_COOKIE_SECURE"] = (
        False
        if app.config.get("DEBUG")
        else app.config.get("FLASK_ENV") == "production"
    )
    app.config["PERMANENT_SESSION_LIFETIME"] = 86400  # 24 hours

    # CSRF tokens are fetched from /auth/csrf-token by JSON clients
    app.config["WTF_CSRF_TIME_LIMIT"] = None
    app.config["WTF_CSRF_SSL_STRICT"] = False

    # Setup logging
    from app.utils.logging_config import setup_logging

    setup_logging(app)

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)

    allowed_origins = app.config.get("SOCKETIO_CORS_ORIGINS", "*")
    if allowed_origins == "*" and not app.config.get("DEBUG"):
        # In production, restrict CORS to configured domains
        allowed_origins = os.environ.get("ALLOWED_ORIGINS", "http://localhost").split(
            ","
        )

    # Redis message queue lets several workers broadcast settlement events
    message_queue = None
    if not app.config.get("TESTING"):
        message_queue = _redis_url_if_reachable(os.environ.get("REDIS_URL"))

    socketio.init_app(
        app,
        cors_allowed_origins=allowed_origins,
        async_mode="threading",
        ping_timeout=60,
        ping_interval=25,
        message_queue=message_queue,
    )
    cache.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    limiter.init_app(app)

    # Storage backend for users, matches, wagers and the score ledger
    from app.storage import get_storage, init_storage

    init_storage(app)

    @login_manager.user_loader
    def load_user(user_id):
        return get_storage().get_user(int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return (
            jsonify({"error": "unauthenticated", "message": "Please log in first"}),
            401,
        )

    # Import and register blueprints
    from app.routes.auth import bp as auth_bp

    app.register_blueprint(auth_bp, url_prefix="/auth")

    from app.routes.api import bp as api_bp

    app.register_blueprint(api_bp, url_prefix="/api")

    # Register error handlers
    register_error_handlers(app)

    # Show configuration warnings
    if not app.config.get("TESTING"):
        show_config_warnings(app, config_name)

    # Create database tables
    with app.app_context():
        db.create_all()

    # Register SocketIO handlers
    from app import socketio_handlers  # noqa: F401 - imported for side effects

    return app


def show_config_warnings(app, config_name):
    """Display configuration warnings and status"""
    import warnings

    print(f"IPL Wager starting with '{config_name}' configuration")

    if config_name == "production" and app.config.get("DEBUG"):
        warnings.warn("DEBUG mode is enabled in production!", UserWarning)

    if not os.environ.get("SECRET_KEY"):
        print(
            "WARNING: Using auto-generated SECRET_KEY (sessions will reset on restart)"
        )
        print("   Run: python3 generate_secrets.py")

    print(f"Storage backend: {app.config.get('STORAGE_BACKEND')}")
    print(
        "Allowed wager amounts: "
        + ", ".join(str(a) for a in app.config.get("ALLOWED_WAGER_AMOUNTS", ()))
    )

    db_url = app.config.get("SQLALCHEMY_DATABASE_URI", "")
    if "sqlite" in db_url:
        print("Using SQLite database (development mode)")
    elif "postgresql" in db_url:
        # Show host and database name only, never the password
        print("Using PostgreSQL database: " + db_url.split("@")[-1])
    else:
        print(
            f"Using database: {db_url.split('://')[0] if '://' in db_url else 'Unknown'}"
        )

    print("Configuration loaded successfully")


def register_error_handlers(app):
    """Register global error handlers"""
    from flask_wtf.csrf import CSRFError

    from app.errors import StorageUnavailable, WagerError

    @app.after_request
    def after_request(response):
        # Add security headers to all responses
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Cache-Control"] = "no-store"

        if not app.config.get("DEBUG"):
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )

        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none'"
        )
        return response

    @app.errorhandler(WagerError)
    def handle_wager_error(error):
        if error.status_code >= 500:
            app.logger.error(f"{error.code}: {error.message} - Path: {request.path}")
        else:
            app.logger.info(f"{error.code}: {error.message} - Path: {request.path}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(OperationalError)
    def handle_operational_error(error):
        db.session.rollback()
        app.logger.error(f"Database error on {request.path}: {error}")
        return jsonify(StorageUnavailable().to_dict()), 503

    @app.errorhandler(CSRFError)
    def handle_csrf_error(error):
        app.logger.warning(
            f"CSRF Error: {error.description} - Path: {request.path} - User-Agent: {request.user_agent}"
        )
        return jsonify({"error": "csrf_error", "message": error.description}), 400

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({"error": "not_found", "message": "Resource not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed_error(error):
        return (
            jsonify({"error": "method_not_allowed", "message": "Method not allowed"}),
            405,
        )

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return (
            jsonify({"error": "internal_error", "message": "Internal server error"}),
            500,
        )

    @app.errorhandler(401)
    def unauthenticated_error(error):
        return (
            jsonify({"error": "unauthenticated", "message": "Please log in first"}),
            401,
        )

    @app.errorhandler(403)
    def forbidden_error(error):
        return jsonify({"error": "forbidden", "message": "Access forbidden"}), 403

    @app.errorhandler(400)
    def bad_request_error(error):
        app.logger.warning(
            f"400 Bad Request: {str(error)} - Path: {request.path} - Method: {request.method}"
        )
        return jsonify({"error": "bad_request", "message": "Bad request"}), 400

    @app.errorhandler(429)
    def too_many_requests_error(error):
        return (
            jsonify({"error": "rate_limited", "message": "Too many requests"}),
            429,
        )

    @app.errorhandler(503)
    def service_unavailable_error(error):
        return (
            jsonify({"error": "service_unavailable", "message": "Service unavailable"}),
            503,
        )


from app import models  # noqa: F401, E402 - imported for model registration
