from ...core.config import settings
from .cache_memory import InMemoryCacheStore
from .cache_sqlite import SQLiteCacheStore
from .cache_store_base import CacheEntry, CacheStoreBase


def get_cache_store() -> CacheStoreBase:
    """Build the cache store selected by CACHE_BACKEND."""
    if settings.cache_backend == "memory":
        return InMemoryCacheStore()
    return SQLiteCacheStore(db_path=settings.cache_db_path)


__all__ = ["CacheEntry", "CacheStoreBase", "InMemoryCacheStore", "SQLiteCacheStore", "get_cache_store"]
