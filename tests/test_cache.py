"""
Tests for the cache stores and the best-effort cache gateway.
"""

from datetime import datetime, timedelta, UTC
from unittest.mock import Mock
import pytest
from receipt_ocr.services.cache_gateway import CacheGateway, cache_key_for
from receipt_ocr.services.receipt_types import ReceiptRecord
from receipt_ocr.services.storage import CacheEntry, InMemoryCacheStore, SQLiteCacheStore

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryCacheStore()
    return SQLiteCacheStore(db_path=str(tmp_path / "cache.db"))


def test_store_upsert_get_delete(store):
    assert store.get("abc.jpg") is None

    store.upsert("abc.jpg", {"vendor": "Target"}, NOW + timedelta(days=7))
    store.upsert("abc.jpg", {"vendor": "Walmart"}, NOW + timedelta(days=7))

    entry = store.get("abc.jpg")
    assert entry.value == {"vendor": "Walmart"}
    assert entry.expires_at == NOW + timedelta(days=7)

    assert store.delete("abc.jpg") is True
    assert store.delete("abc.jpg") is False
    assert store.get("abc.jpg") is None


def test_store_purge_expired(store):
    store.upsert("old.jpg", {"vendor": "A"}, NOW - timedelta(seconds=1))
    store.upsert("new.jpg", {"vendor": "B"}, NOW + timedelta(days=1))

    assert store.purge_expired(NOW) == 1
    assert store.get("old.jpg") is None
    assert store.get("new.jpg") is not None


def test_sqlite_store_persists_across_instances(tmp_path):
    db_path = str(tmp_path / "cache.db")
    SQLiteCacheStore(db_path=db_path).upsert("abc.jpg", {"total": 12.5}, NOW)
    assert SQLiteCacheStore(db_path=db_path).get("abc.jpg").value == {"total": 12.5}


@pytest.mark.parametrize("url,key", [
    ("https://storage.example.com/receipts/abc123.jpg", "abc123.jpg"),
    ("https://storage.example.com/receipts/abc123.jpg?token=xyz", "abc123.jpg"),
    ("https://storage.example.com/receipts/", "receipts"),
    ("https://storage.example.com", None),
    ("receipts/local.png", "local.png"),
    ("", None),
])
def test_cache_key_is_last_path_segment(url, key):
    assert cache_key_for(url) == key


def test_gateway_round_trip_and_ttl():
    clock = Mock(return_value=NOW)
    gateway = CacheGateway(InMemoryCacheStore(), ttl=timedelta(days=7), clock=clock)
    record = ReceiptRecord(vendor="Target", total=12.5, strategy="llm")

    gateway.put("abc.jpg", record)
    assert gateway.get("abc.jpg") == record

    clock.return_value = NOW + timedelta(days=7)
    assert gateway.get("abc.jpg") is None


def test_gateway_read_errors_are_misses():
    store = Mock()
    store.get.side_effect = RuntimeError("database is locked")
    assert CacheGateway(store).get("abc.jpg") is None


def test_gateway_write_errors_are_swallowed():
    store = Mock()
    store.upsert.side_effect = RuntimeError("disk full")
    CacheGateway(store).put("abc.jpg", ReceiptRecord(vendor="Target"))
    store.upsert.assert_called_once()


def test_gateway_malformed_entry_is_a_miss():
    store = InMemoryCacheStore()
    store.upsert("abc.jpg", {"total": "not a number"}, NOW + timedelta(days=1))
    assert CacheGateway(store, clock=lambda: NOW).get("abc.jpg") is None


def test_gateway_without_key_is_noop():
    store = Mock()
    gateway = CacheGateway(store)
    gateway.put(None, ReceiptRecord())
    assert gateway.get(None) is None
    store.upsert.assert_not_called()
    store.get.assert_not_called()


def test_gateway_evicts_expired_entry_on_read():
    store = InMemoryCacheStore()
    store.upsert("abc.jpg", {"vendor": "Target"}, NOW - timedelta(seconds=1))

    assert CacheGateway(store, clock=lambda: NOW).get("abc.jpg") is None
    assert len(store) == 0


def test_gateway_evicts_malformed_entry_on_read():
    store = InMemoryCacheStore()
    store.upsert("abc.jpg", {"total": "not a number"}, NOW + timedelta(days=1))

    assert CacheGateway(store, clock=lambda: NOW).get("abc.jpg") is None
    assert store.get("abc.jpg") is None


def test_gateway_eviction_errors_are_swallowed():
    store = Mock()
    store.get.return_value = CacheEntry("abc.jpg", {"vendor": "Target"}, NOW - timedelta(days=1))
    store.delete.side_effect = RuntimeError("database is locked")

    assert CacheGateway(store, clock=lambda: NOW).get("abc.jpg") is None
    store.delete.assert_called_once_with("abc.jpg")


def test_gateway_naive_expiry_is_a_miss():
    store = InMemoryCacheStore()
    store.upsert("abc.jpg", {"vendor": "Target"}, datetime(2030, 1, 1))
    assert CacheGateway(store, clock=lambda: NOW).get("abc.jpg") is None


def test_gateway_put_purges_expired_entries(store):
    store.upsert("stale.jpg", {"vendor": "A"}, NOW - timedelta(days=1))

    CacheGateway(store, clock=lambda: NOW).put("abc.jpg", ReceiptRecord(vendor="Target"))

    assert store.get("stale.jpg") is None
    assert store.get("abc.jpg") is not None


def test_gateway_purge_errors_are_swallowed():
    store = Mock()
    store.purge_expired.side_effect = RuntimeError("disk I/O error")
    CacheGateway(store, clock=lambda: NOW).put("abc.jpg", ReceiptRecord(vendor="Target"))
    store.upsert.assert_called_once()
