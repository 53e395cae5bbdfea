"""
Best-effort result cache in front of the extraction pipeline.

Reads that fail for any reason are misses; writes that fail are logged and
dropped. Expired and malformed entries are evicted when read, and every write
purges whatever else has expired. Caching never decides whether a request succeeds.
"""

from datetime import datetime, timedelta, UTC
from typing import Callable, Optional
from urllib.parse import urlparse
from loguru import logger
from pydantic import ValidationError
from .receipt_types import ReceiptRecord
from .storage import CacheStoreBase

DEFAULT_TTL = timedelta(days=7)


def cache_key_for(image_url: str) -> Optional[str]:
    """
    Cache key for an image reference: the last non-empty path segment.

    Query strings and fragments are ignored. Returns None when the reference
    has no path segment, which disables caching for that request.
    """
    if not image_url:
        return None
    path = urlparse(image_url).path if "://" in image_url else image_url.split("?", 1)[0].split("#", 1)[0]
    segments = [segment for segment in path.split("/") if segment]
    return segments[-1] if segments else None


class CacheGateway:
    def __init__(
        self,
        store: CacheStoreBase,
        ttl: timedelta = DEFAULT_TTL,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.ttl = ttl
        self._clock = clock or (lambda: datetime.now(UTC))

    def get(self, key: Optional[str]) -> Optional[ReceiptRecord]:
        """Cached record for key, or None on miss, expiry, store error or bad payload."""
        if not key:
            return None
        try:
            entry = self.store.get(key)
            expired = entry is not None and entry.is_expired(self._clock())
        except Exception as e:
            logger.warning("Cache read failed, treating as miss", key=key, error=str(e))
            return None

        if entry is None:
            logger.debug("Cache miss", key=key)
            return None
        if expired:
            logger.debug("Cache entry expired", key=key, expires_at=str(entry.expires_at))
            self._evict(key)
            return None

        try:
            record = ReceiptRecord.model_validate(entry.value)
        except ValidationError as e:
            logger.warning("Discarding malformed cache entry", key=key, errors=e.error_count())
            self._evict(key)
            return None

        logger.info("Cache hit", key=key)
        return record

    def _evict(self, key: str) -> None:
        try:
            self.store.delete(key)
        except Exception as e:
            logger.warning("Cache eviction failed", key=key, error=str(e))

    def put(self, key: Optional[str], record: ReceiptRecord) -> None:
        """Store record under key with the configured TTL. Errors are logged, never raised."""
        if not key:
            return
        now = self._clock()
        expires_at = now + self.ttl
        try:
            self.store.upsert(key, record.model_dump(mode="json"), expires_at)
        except Exception as e:
            logger.warning("Cache write failed", key=key, error=str(e))
            return
        logger.debug("Cached receipt", key=key, expires_at=expires_at.isoformat())

        # Entries for images never requested again are only removed here
        try:
            purged = self.store.purge_expired(now)
        except Exception as e:
            logger.warning("Cache purge failed", error=str(e))
            return
        if purged:
            logger.info("Purged expired cache entries", count=purged)
