"""Process-wide document store handle, opened once per script run."""
import logging
from typing import Optional

from shaheen.config import Settings, settings
from shaheen.errors import ConfigurationError
from shaheen.store.base import Store

logger = logging.getLogger(__name__)

_store: Optional[Store] = None


async def db_startup(config: Settings = settings) -> Store:
    """Open the configured backend. Credential problems are fatal (ConfigurationError)."""
    global _store
    if _store is not None:
        return _store
    if config.store_backend == "firestore":
        from shaheen.store.firestore import FirestoreStore

        _store = FirestoreStore(config.firebase_credentials_path)
    elif config.store_backend == "mongodb":
        from shaheen.store.mongo import MongoStore

        _store = MongoStore(config.mongodb_url, config.mongodb_db_name)
    else:
        raise ConfigurationError(f"Unknown store backend: {config.store_backend}")
    logger.info("Connected to %s store", config.store_backend)
    return _store


async def db_shutdown():
    """Close the store connection."""
    global _store
    if _store is not None:
        await _store.close()
        _store = None


def get_store() -> Store:
    if _store is None:
        raise RuntimeError("Store not initialized; call db_startup() first")
    return _store
