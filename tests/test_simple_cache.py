"""Unit tests for the in-memory SimpleTTLCache."""

import threading

import pytest

from easyrest_pricing.domain import price_result
from easyrest_pricing.utils import simple_cache
from easyrest_pricing.utils.simple_cache import SimpleTTLCache, build_cache_key


class FakeTime:
    """Stands in for the ``time`` module inside simple_cache."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.current = start

    def time(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


@pytest.fixture
def fake_time(monkeypatch: pytest.MonkeyPatch) -> FakeTime:
    clock = FakeTime()
    monkeypatch.setattr(simple_cache, "time", clock)
    return clock


def _query_params(**overrides):
    params = {
        "checkin": "2030-05-01",
        "checkout": "2030-05-03",
        "adults": 2,
        "children": 0,
        "currency": "EUR",
        "url": None,
        "lang": "fr",
    }
    params.update(overrides)
    return params


class TestBuildCacheKey:
    def test_stable_regardless_of_key_order(self) -> None:
        params = _query_params()
        reordered = dict(reversed(list(params.items())))

        assert build_cache_key(params) == build_cache_key(reordered)

    def test_changes_with_any_parameter(self) -> None:
        base = build_cache_key(_query_params())

        assert build_cache_key(_query_params(adults=3)) != base
        assert build_cache_key(_query_params(checkout="2030-05-04")) != base
        assert build_cache_key(_query_params(currency="USD")) != base

    def test_salt_partitions_keys(self) -> None:
        params = _query_params()

        assert build_cache_key(params, salt="http") != build_cache_key(params)

    def test_is_hex_sha256(self) -> None:
        key = build_cache_key(_query_params())

        assert len(key) == 64
        int(key, 16)


def test_stores_price_records_and_counts_hits() -> None:
    cache = SimpleTTLCache(ttl_seconds=10)
    record = price_result.success(412.5, source="live").to_record()

    assert cache.get("k") is None
    cache.set("k", record)

    assert cache.get("k") == record
    stats = cache.stats()
    assert stats["hits"] == 1
    assert stats["misses"] == 1
    assert stats["entries"] == 1


def test_returned_record_is_a_copy() -> None:
    cache = SimpleTTLCache(ttl_seconds=10)
    cache.set("k", {"success": True, "source": "live"})

    cache.get("k")["source"] = "tampered"

    assert cache.get("k")["source"] == "live"


def test_expired_entry_is_evicted(fake_time: FakeTime) -> None:
    cache = SimpleTTLCache(ttl_seconds=5)
    cache.set("k", {"success": True})

    fake_time.advance(5)
    assert cache.get("k") is not None
    fake_time.advance(1)

    assert cache.get("k") is None
    assert cache.stats()["evictions"] == 1


def test_per_entry_ttl_overrides_default(fake_time: FakeTime) -> None:
    cache = SimpleTTLCache(ttl_seconds=900)
    cache.set("short", {"v": 1}, ttl_seconds=2)
    cache.set("long", {"v": 2})

    fake_time.advance(3)

    assert cache.get("short") is None
    assert cache.get("long") == {"v": 2}


def test_lru_eviction_removes_least_recently_used() -> None:
    cache = SimpleTTLCache(ttl_seconds=100, max_entries=2)
    cache.set("a", {"v": 1})
    cache.set("b", {"v": 2})

    assert cache.get("a") == {"v": 1}
    cache.set("c", {"v": 3})

    assert cache.get("b") is None
    assert cache.get("a") == {"v": 1}
    assert cache.get("c") == {"v": 3}


def test_clear_returns_dropped_count_and_resets_counters() -> None:
    cache = SimpleTTLCache(ttl_seconds=10)
    cache.set("a", {"v": 1})
    cache.set("b", {"v": 2})
    cache.get("a")

    assert cache.clear() == 2
    assert cache.stats() == {
        "ttl_seconds": 10,
        "max_entries": 1024,
        "entries": 0,
        "hits": 0,
        "misses": 0,
        "evictions": 0,
    }


def test_concurrent_sets_are_all_kept() -> None:
    cache = SimpleTTLCache(ttl_seconds=30, max_entries=None)

    threads = [
        threading.Thread(target=cache.set, args=(f"k-{i}", {"v": i})) for i in range(50)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert cache.stats()["entries"] == 50
    assert cache.get("k-49") == {"v": 49}
