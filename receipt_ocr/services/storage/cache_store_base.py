"""
Abstract base class for receipt cache stores.

Defines the interface every cache backend implements so the cache gateway
can swap storage without knowing which one is in use.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class CacheEntry:
    key: str
    value: dict
    expires_at: datetime  # Timezone-aware UTC

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class CacheStoreBase(ABC):
    """
    Key -> JSON document store with per-entry expiry.

    Implementations:
    - In-memory (tests, single process demos)
    - SQLite (single-instance deployments)

    Stores do not enforce expiry on read; the gateway decides what is stale.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[CacheEntry]:
        """
        Fetch an entry by key.

        Returns:
            The stored entry (possibly expired) or None if not found
        """
        pass

    @abstractmethod
    def upsert(self, key: str, value: dict, expires_at: datetime) -> None:
        """
        Insert or overwrite an entry (last writer wins).

        Args:
            key: Cache key
            value: JSON-serializable document
            expires_at: Timezone-aware UTC expiry
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove an entry. Returns False if it did not exist."""
        pass

    @abstractmethod
    def purge_expired(self, now: datetime) -> int:
        """Remove entries expired as of `now`. Returns the number removed."""
        pass
