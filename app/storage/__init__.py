import logging

from flask import current_app

from app.storage.base import KeyedLock, Storage, match_lock
from app.storage.memory import MemoryStorage
from app.storage.sql import SQLStorage

logger = logging.getLogger(__name__)

BACKENDS = {
    "sql": SQLStorage,
    "memory": MemoryStorage,
}

EXTENSION_KEY = "wager_storage"


def init_storage(app):
    """Create the configured storage backend and attach it to the app"""
    backend = app.config.get("STORAGE_BACKEND", "sql").lower()
    if backend not in BACKENDS:
        raise ValueError(
            f"Unknown STORAGE_BACKEND {backend!r}, expected one of {sorted(BACKENDS)}"
        )

    storage = BACKENDS[backend]()
    app.extensions[EXTENSION_KEY] = storage
    logger.info(f"Using {backend} storage backend")
    return storage


def get_storage():
    """Return the storage backend of the current app"""
    return current_app.extensions[EXTENSION_KEY]


__all__ = [
    "Storage",
    "SQLStorage",
    "MemoryStorage",
    "KeyedLock",
    "match_lock",
    "init_storage",
    "get_storage",
]
