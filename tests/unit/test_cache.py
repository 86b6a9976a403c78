"""Tests for cache manager."""

import asyncio
import json
import logging
from datetime import datetime, timezone

import pytest

from nutrifetch.cache import (
    BackendResult,
    CacheBackend,
    CacheEntry,
    CacheManager,
    CacheOptions,
    CacheStats,
    MemoryBackend,
    SessionBackend,
    SessionStorage,
    StorageKind,
    create_memory_cache,
    create_persistent_cache,
    create_session_cache,
)
from nutrifetch.errors import StorageUnavailableError, ValidationError


class UnavailableBackend(CacheBackend):
    """Backend whose store can never be reached."""

    def _fail(self) -> BackendResult:
        return BackendResult.unavailable(StorageUnavailableError("storage disabled"))

    def get(self, key):
        return self._fail()

    def set(self, key, value):
        return self._fail()

    def delete(self, key):
        return self._fail()

    def clear(self):
        return self._fail()

    def keys(self):
        return self._fail()


class TestCacheOptions:
    """Tests for CacheOptions."""

    def test_defaults(self) -> None:
        """Test default options."""
        options = CacheOptions()
        assert options.ttl == 300.0
        assert options.max_size == 1000
        assert options.storage == StorageKind.MEMORY
        assert options.serialize is True
        assert options.prefix == "cache:"
        assert options.coalesce is False

    def test_storage_alias(self) -> None:
        """Test browser-style storage names are accepted."""
        assert CacheOptions(storage="localStorage").storage == StorageKind.PERSISTENT
        assert CacheOptions(storage="sessionStorage").storage == StorageKind.SESSION

    def test_unknown_storage(self) -> None:
        """Test unknown storage kind is rejected."""
        with pytest.raises(ValidationError):
            CacheOptions(storage="redis")

    def test_negative_ttl(self) -> None:
        """Test negative TTL is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            CacheOptions(ttl=-1)
        assert exc_info.value.field == "ttl"

    def test_zero_max_size(self) -> None:
        """Test max_size below one is rejected."""
        with pytest.raises(ValidationError):
            CacheOptions(max_size=0)


class TestCacheEntry:
    """Tests for CacheEntry."""

    def test_expiry_boundary(self) -> None:
        """Test an entry is live at exactly its TTL and expired after."""
        entry = CacheEntry(data=1, timestamp=100.0, ttl=10.0, last_accessed=100.0)
        assert not entry.is_expired(110.0)
        assert entry.is_expired(110.001)

    def test_zero_ttl(self) -> None:
        """Test a zero-TTL entry is live only at its creation instant."""
        entry = CacheEntry(data=1, timestamp=100.0, ttl=0.0, last_accessed=100.0)
        assert not entry.is_expired(100.0)
        assert entry.is_expired(100.5)


class TestCacheStats:
    """Tests for CacheStats."""

    def test_hit_rate_empty(self) -> None:
        """Test hit rate with no requests."""
        assert CacheStats().hit_rate == 0.0

    def test_hit_rate(self) -> None:
        """Test hit rate calculation."""
        stats = CacheStats(hits=3, misses=1)
        assert stats.total_requests == 4
        assert stats.hit_rate == 0.75

    def test_to_dict(self) -> None:
        """Test conversion to dict."""
        data = CacheStats(hits=1, misses=1, sets=2).to_dict()
        assert data["hits"] == 1
        assert data["sets"] == 2
        assert data["hit_rate"] == 0.5
        assert data["backend_errors"] == 0

    def test_reset(self) -> None:
        """Test counters reset to zero."""
        stats = CacheStats(hits=5, misses=2, evictions=1)
        stats.reset()
        assert stats == CacheStats()


class TestCacheManager:
    """Tests for CacheManager."""

    def test_set_and_get(self, clock) -> None:
        """Test basic set and get."""
        cache = CacheManager(clock=clock)
        cache.set("foods:apple", {"kcal": 52, "tags": ["fruit"]})
        assert cache.get("foods:apple") == {"kcal": 52, "tags": ["fruit"]}

    def test_get_missing(self, clock) -> None:
        """Test missing key returns the default."""
        cache = CacheManager(clock=clock)
        assert cache.get("missing") is None
        assert cache.get("missing", "fallback") == "fallback"
        assert cache.get_stats().misses == 2

    def test_cached_none(self, clock) -> None:
        """Test a stored None is a hit for get but absent for has."""
        cache = CacheManager(clock=clock)
        cache.set("nothing", None)
        assert cache.get("nothing", "fallback") is None
        assert not cache.has("nothing")
        assert cache.get_stats().hits == 2

    def test_ttl_expiry(self, clock) -> None:
        """Test entries expire after their TTL."""
        cache = CacheManager(CacheOptions(ttl=60), clock=clock)
        cache.set("key", "value")

        clock.advance(60)
        assert cache.get("key") == "value"

        clock.advance(0.5)
        assert cache.get("key") is None
        assert "key" not in cache.keys()

    def test_per_call_ttl(self, clock) -> None:
        """Test per-call TTL overrides the default."""
        cache = CacheManager(CacheOptions(ttl=300), clock=clock)
        cache.set("short", "value", ttl=5)
        cache.set("long", "value")

        clock.advance(10)
        assert cache.get("short") is None
        assert cache.get("long") == "value"

    def test_zero_ttl_is_honoured(self, clock) -> None:
        """Test an explicit zero TTL is not replaced by the default."""
        cache = CacheManager(CacheOptions(ttl=300), clock=clock)
        cache.set("key", "value", ttl=0)
        clock.advance(1)
        assert cache.get("key") is None

    def test_negative_ttl_rejected(self, clock) -> None:
        """Test negative per-call TTL is rejected."""
        cache = CacheManager(clock=clock)
        with pytest.raises(ValidationError):
            cache.set("key", "value", ttl=-5)

    def test_hit_updates_access_metadata(self, clock) -> None:
        """Test reads bump access count and last access time."""
        backend = MemoryBackend()
        cache = CacheManager(backend=backend, clock=clock)
        cache.set("key", "value")

        clock.advance(5)
        cache.get("key")
        cache.get("key")

        entry = CacheEntry.model_validate_json(backend.get("key").value)
        assert entry.access_count == 2
        assert entry.last_accessed == clock.now
        assert entry.timestamp == clock.now - 5

    def test_delete(self, clock) -> None:
        """Test delete removes the key and is always counted."""
        cache = CacheManager(clock=clock)
        cache.set("key", "value")
        cache.delete("key")
        cache.delete("never-set")

        assert cache.get("key") is None
        assert cache.get_stats().deletes == 2

    def test_has_counts_like_get(self, clock) -> None:
        """Test has() records hits and misses."""
        cache = CacheManager(clock=clock)
        cache.set("key", "value")

        assert cache.has("key")
        assert not cache.has("other")

        stats = cache.get_stats()
        assert stats.hits == 1
        assert stats.misses == 1

    def test_clear_resets_stats(self, clock) -> None:
        """Test clear empties the cache and resets counters."""
        cache = CacheManager(clock=clock)
        cache.set("a", 1)
        cache.get("a")
        cache.clear()

        assert cache.size() == 0
        assert cache.get_stats() == CacheStats()

    def test_keys_and_size(self, clock) -> None:
        """Test keys and size include expired entries until pruned."""
        cache = CacheManager(CacheOptions(ttl=10), clock=clock)
        cache.set("a", 1)
        cache.set("b", 2, ttl=100)

        clock.advance(20)
        assert sorted(cache.keys()) == ["a", "b"]
        assert cache.size() == 2

    def test_prune(self, clock) -> None:
        """Test prune removes expired entries only and is idempotent."""
        cache = CacheManager(CacheOptions(ttl=10), clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3, ttl=100)

        clock.advance(20)
        assert cache.prune() == 2
        assert cache.keys() == ["c"]
        assert cache.prune() == 0

    def test_prune_removes_malformed(self, clock) -> None:
        """Test prune removes entries that do not decode."""
        backend = MemoryBackend()
        cache = CacheManager(backend=backend, clock=clock)
        backend.set("garbage", "not json")
        cache.set("good", 1)

        assert cache.prune() == 1
        assert cache.keys() == ["good"]

    def test_malformed_entry_is_a_miss(self, clock) -> None:
        """Test a corrupt stored entry reads as a miss and is removed."""
        backend = MemoryBackend()
        cache = CacheManager(backend=backend, clock=clock)
        backend.set("key", json.dumps({"unexpected": True}))

        assert cache.get("key") is None
        assert backend.get("key").value is None
        assert cache.get_stats().misses == 1

    def test_eviction_removes_least_recently_read(self, clock) -> None:
        """Test a full cache evicts the least recently read entries."""
        cache = CacheManager(CacheOptions(max_size=10), clock=clock)
        for i in range(10):
            cache.set(f"k{i}", i)
            clock.advance(1)

        # k0 becomes the most recently read
        cache.get("k0")
        clock.advance(1)

        cache.set("k10", 10)

        keys = cache.keys()
        assert "k1" not in keys
        assert "k0" in keys
        assert "k10" in keys
        assert len(keys) == 10

        stats = cache.get_stats()
        assert stats.evictions == 1
        assert stats.deletes == 1

    def test_eviction_fraction_rounds_up(self, clock) -> None:
        """Test eviction removes ceil(10%) of the entries."""
        cache = CacheManager(CacheOptions(max_size=25), clock=clock)
        for i in range(25):
            cache.set(f"k{i}", i)
            clock.advance(1)

        cache.set("new", 0)

        assert cache.get_stats().evictions == 3
        assert cache.size() == 23

    def test_serialize_rich_values(self, clock) -> None:
        """Test rich values are stored in JSON form when serialize is on."""
        cache = CacheManager(clock=clock)
        when = datetime(2024, 1, 15, 8, 30, tzinfo=timezone.utc)
        cache.set("meal", {"eaten_at": when})

        assert cache.get("meal") == {"eaten_at": "2024-01-15T08:30:00Z"}

    def test_serialize_off_requires_json_values(self, clock) -> None:
        """Test non-JSON values fail to store when serialize is off."""
        cache = CacheManager(CacheOptions(serialize=False), clock=clock)
        cache.set("plain", {"kcal": 52})
        assert cache.get("plain") == {"kcal": 52}

        with pytest.raises(TypeError):
            cache.set("rich", {"eaten_at": datetime(2024, 1, 15)})
        assert "rich" not in cache.keys()

    def test_get_stats_includes_size(self, clock) -> None:
        """Test stats snapshot includes the current size."""
        cache = CacheManager(clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.get("missing")

        stats = cache.get_stats()
        assert stats.size == 2
        assert stats.sets == 2
        assert stats.hit_rate == 0.5

    def test_stats_snapshot_is_a_copy(self, clock) -> None:
        """Test a snapshot does not change with later operations."""
        cache = CacheManager(clock=clock)
        snapshot = cache.get_stats()
        cache.set("a", 1)
        assert snapshot.sets == 0


class TestUnavailableBackend:
    """Tests for cache behaviour when storage cannot be reached."""

    def test_reads_become_misses(self, clock) -> None:
        """Test an unavailable backend degrades to misses."""
        cache = CacheManager(backend=UnavailableBackend(), clock=clock)
        cache.set("key", "value")

        assert cache.get("key", "fallback") == "fallback"
        assert cache.keys() == []
        assert cache.size() == 0

        stats = cache.get_stats()
        assert stats.misses == 1
        assert stats.backend_errors >= 2

    def test_failures_are_logged(self, clock, caplog: pytest.LogCaptureFixture) -> None:
        """Test storage failures are logged as warnings."""
        cache = CacheManager(backend=UnavailableBackend(), name="profile", clock=clock)
        with caplog.at_level(logging.WARNING, logger="nutrifetch.cache"):
            cache.get("key")

        assert any("unavailable" in record.getMessage() for record in caplog.records)

    def test_disabled_session_storage(self, clock) -> None:
        """Test a disabled session store reads as a miss without raising."""
        session = SessionStorage()
        cache = CacheManager(backend=SessionBackend(session), clock=clock)
        cache.set("key", "value")

        session.disable()
        assert cache.get("key") is None
        cache.set("other", "value")
        cache.delete("key")
        cache.clear()

        session.enable()
        assert cache.get("key") == "value"

    def test_quota_exceeded_write(self, clock) -> None:
        """Test a write over quota is dropped and counted."""
        session = SessionStorage(quota_bytes=200)
        cache = CacheManager(backend=SessionBackend(session), clock=clock)
        cache.set("big", "x" * 500)

        assert cache.get("big") is None
        assert cache.get_stats().backend_errors == 1


class TestGetOrSet:
    """Tests for get_or_set."""

    @pytest.mark.asyncio
    async def test_computes_on_miss(self, clock) -> None:
        """Test factory runs on a miss and the value is stored."""
        cache = CacheManager(clock=clock)
        calls = 0

        async def load() -> dict:
            nonlocal calls
            calls += 1
            return {"plan": "cut"}

        assert await cache.get_or_set("plan", load) == {"plan": "cut"}
        assert await cache.get_or_set("plan", load) == {"plan": "cut"}
        assert calls == 1

    @pytest.mark.asyncio
    async def test_sync_factory(self, clock) -> None:
        """Test a plain function works as factory."""
        cache = CacheManager(clock=clock)
        assert await cache.get_or_set("n", lambda: 42) == 42
        assert cache.get("n") == 42

    @pytest.mark.asyncio
    async def test_factory_ttl(self, clock) -> None:
        """Test the value is stored with the given TTL."""
        cache = CacheManager(clock=clock)
        await cache.get_or_set("n", lambda: 1, ttl=5)
        clock.advance(6)
        assert cache.get("n") is None

    @pytest.mark.asyncio
    async def test_factory_error_propagates(self, clock) -> None:
        """Test a failing factory stores nothing."""
        cache = CacheManager(clock=clock)

        async def fail() -> None:
            raise RuntimeError("upstream down")

        with pytest.raises(RuntimeError):
            await cache.get_or_set("key", fail)
        assert cache.keys() == []

    @pytest.mark.asyncio
    async def test_concurrent_callers_without_coalesce(self, clock) -> None:
        """Test concurrent misses each run the factory by default."""
        cache = CacheManager(clock=clock)
        calls = 0

        async def load() -> int:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return calls

        await asyncio.gather(cache.get_or_set("k", load), cache.get_or_set("k", load))
        assert calls == 2

    @pytest.mark.asyncio
    async def test_concurrent_callers_with_coalesce(self, clock) -> None:
        """Test coalescing shares one factory call."""
        cache = CacheManager(CacheOptions(coalesce=True), clock=clock)
        calls = 0

        async def load() -> str:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return "value"

        results = await asyncio.gather(*(cache.get_or_set("k", load) for _ in range(5)))
        assert results == ["value"] * 5
        assert calls == 1

    @pytest.mark.asyncio
    async def test_coalesced_failure_reaches_all_callers(self, clock) -> None:
        """Test every coalesced caller sees the factory's error."""
        cache = CacheManager(CacheOptions(coalesce=True), clock=clock)

        async def fail() -> None:
            await asyncio.sleep(0.01)
            raise RuntimeError("boom")

        results = await asyncio.gather(
            cache.get_or_set("k", fail),
            cache.get_or_set("k", fail),
            return_exceptions=True,
        )
        assert all(isinstance(r, RuntimeError) for r in results)


class TestFactories:
    """Tests for cache factory functions."""

    def test_memory_cache(self) -> None:
        """Test memory cache factory."""
        cache = create_memory_cache(ttl=60)
        assert isinstance(cache.backend, MemoryBackend)
        assert cache.options.ttl == 60

    def test_persistent_cache(self, tmp_path) -> None:
        """Test persistent cache survives a new manager on the same path."""
        first = create_persistent_cache(path=tmp_path, prefix="foods:")
        first.set("apple", {"kcal": 52})

        second = create_persistent_cache(path=tmp_path, prefix="foods:")
        assert second.get("apple") == {"kcal": 52}

    def test_session_cache(self) -> None:
        """Test session cache factory gets its own store."""
        a = create_session_cache()
        b = create_session_cache()
        a.set("key", 1)
        assert b.get("key") is None

    def test_persistent_cache_ignores_undecodable_files(self, tmp_path) -> None:
        """Test a stray binary file in the cache directory does not break the cache."""
        cache = create_persistent_cache(path=tmp_path, max_size=2)
        cache.set("apple", {"kcal": 52})
        (tmp_path / ("f" * 64 + ".json")).write_bytes(b"\xff\xfe\x00garbage")

        assert cache.size() == 1
        assert cache.keys() == ["apple"]
        assert cache.prune() == 0
        cache.set("pear", {"kcal": 57})
        cache.set("plum", {"kcal": 46})
        assert cache.get("plum") == {"kcal": 46}
        assert cache.stats.backend_errors == 0
