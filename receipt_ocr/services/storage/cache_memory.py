"""
In-memory receipt cache (for tests and local runs).
Entries are lost on restart; use the SQLite store for anything persistent.
"""
import copy
from datetime import datetime
from typing import Dict, Optional
from .cache_store_base import CacheEntry, CacheStoreBase


class InMemoryCacheStore(CacheStoreBase):
    def __init__(self):
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        """Get a copy of the entry so callers cannot mutate the stored value"""
        entry = self._entries.get(key)
        return copy.deepcopy(entry) if entry else None

    def upsert(self, key: str, value: dict, expires_at: datetime) -> None:
        self._entries[key] = CacheEntry(key=key, value=copy.deepcopy(value), expires_at=expires_at)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def purge_expired(self, now: datetime) -> int:
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
