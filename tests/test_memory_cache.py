"""
Tests for the In-Memory Backend

These tests verify:
- CacheState: entries, live-entry count, lazy and timer-driven expiry
- CacheRegistry: shared state per name, isolation, reset
- MemoryCache: operations, errors and stats

Run with: python -m pytest tests/test_memory_cache.py -v

Note: TTL tests sleep for a fraction of a second.
"""

import asyncio

import pytest

from cache_client.cache.memory import MemoryCache
from cache_client.cache.registry import CacheRegistry, CacheState, default_registry, same_value
from cache_client.exceptions import KeyAlreadyExists, ValueMismatch


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def state(clock: FakeClock) -> CacheState:
    return CacheState("state-test", clock=clock)


class TestCacheState:
    """Test CacheState without an event loop (deadline checks only)."""

    def test_put_and_get(self, state: CacheState):
        state.put("key", b"value")
        assert state.get("key") == b"value"
        assert state.count == 1

    def test_overwrite_does_not_double_count(self, state: CacheState):
        for i in range(10):
            state.put("key", f"value{i}".encode())
        assert state.get("key") == b"value9"
        assert state.count == 1

    def test_put_if_absent(self, state: CacheState):
        assert state.put_if_absent("key", b"v1") is True
        assert state.put_if_absent("key", b"v2") is False
        assert state.get("key") == b"v1"
        assert state.count == 1

    def test_replace(self, state: CacheState):
        state.put("key", b"old")
        assert state.replace("key", b"new", b"wrong") is False
        assert state.get("key") == b"old"
        assert state.replace("key", b"new", b"old") is True
        assert state.get("key") == b"new"
        assert state.count == 1

    def test_replace_absent_key(self, state: CacheState):
        assert state.replace("missing", b"new", b"old") is False
        assert state.count == 0

    def test_delete(self, state: CacheState):
        state.put("key", b"value")
        assert state.delete("key") is True
        assert state.delete("key") is False
        assert state.get("key") is None
        assert state.count == 0

    def test_clear(self, state: CacheState):
        for i in range(5):
            state.put(f"key{i}", b"v")
        state.clear()
        assert state.count == 0
        assert state.keys() == []

    def test_expired_entry_is_absent(self, state: CacheState, clock: FakeClock):
        state.put("key", b"value", ttl=10)
        clock.advance(9.9)
        assert state.get("key") == b"value"
        clock.advance(0.2)
        assert state.get("key") is None
        assert state.count == 0

    def test_expired_entry_allows_put_if_absent(self, state: CacheState, clock: FakeClock):
        state.put("key", b"v1", ttl=1)
        clock.advance(2)
        assert state.put_if_absent("key", b"v2") is True
        assert state.get("key") == b"v2"
        assert state.count == 1

    def test_expired_entry_cannot_be_replaced(self, state: CacheState, clock: FakeClock):
        state.put("key", b"old", ttl=1)
        clock.advance(2)
        assert state.replace("key", b"new", b"old") is False
        assert state.get("key") is None

    def test_cleanup_expired(self, state: CacheState, clock: FakeClock):
        state.put("short1", b"v", ttl=1)
        state.put("short2", b"v", ttl=1)
        state.put("long", b"v", ttl=100)
        state.put("forever", b"v")
        clock.advance(5)

        assert state.cleanup_expired() == 2
        assert state.count == 2
        assert sorted(state.keys()) == ["forever", "long"]

    def test_overwrite_without_ttl_removes_expiry(self, state: CacheState, clock: FakeClock):
        state.put("key", b"v1", ttl=1)
        state.put("key", b"v2")
        clock.advance(5)
        assert state.get("key") == b"v2"


class TestSameValue:
    """Test replace's value comparison."""

    def test_byte_equality(self):
        assert same_value(b"\x00\xff", b"\x00\xff")
        assert not same_value(b"abc", b"abd")

    def test_structural_equality(self):
        assert same_value(b'{"a":1,"b":2}', b'{"b": 2, "a": 1}')
        assert not same_value(b'{"a":1}', b'{"a":2}')

    def test_non_json_payloads(self):
        assert not same_value(b"\xff", b"\xfe")

    @pytest.mark.parametrize("stored,expected", [
        (b"true", b"1"),
        (b"1", b"1.0"),
        (b"false", b"0"),
        (b'{"a":true}', b'{"a":1}'),
    ])
    def test_json_types_are_distinct(self, stored, expected):
        assert not same_value(stored, expected)


class TestCacheRegistry:
    """Test the named cache registry."""

    def test_state_created_lazily(self, registry: CacheRegistry):
        assert "lazy" not in registry
        state = registry.get_state("lazy")
        assert "lazy" in registry
        assert registry.get_state("lazy") is state

    def test_names(self, registry: CacheRegistry):
        registry.get_state("a")
        registry.get_state("b")
        assert registry.names() == ["a", "b"]

    def test_reset(self, registry: CacheRegistry):
        registry.get_state("a").put("key", b"value")
        registry.reset()
        assert registry.names() == []
        assert registry.get_state("a").get("key") is None

    def test_default_registry_is_used(self):
        handle = MemoryCache("default-registry-test")
        assert handle.registry is default_registry
        assert "default-registry-test" in default_registry


@pytest.mark.asyncio
class TestMemoryCacheSharing:
    """Test that handles with the same name share state."""

    async def test_same_name_shares_entries(self, registry: CacheRegistry):
        first = MemoryCache("sessions", registry=registry)
        second = MemoryCache("sessions", registry=registry)

        await first.put("user:1", {"name": "alice"})

        assert await second.get("user:1") == {"name": "alice"}
        assert (await second.stats()).count == 1

    async def test_clear_through_one_handle_is_seen_by_another(self, registry: CacheRegistry):
        first = MemoryCache("sessions", registry=registry)
        second = MemoryCache("sessions", registry=registry)
        await first.put("k", "v")

        await second.clear()

        assert await first.get("k") is None
        assert (await first.stats()).count == 0

    async def test_different_names_are_isolated(self, registry: CacheRegistry):
        first = MemoryCache("one", registry=registry)
        second = MemoryCache("two", registry=registry)

        await first.put("k", "v")

        assert await second.get("k") is None

    async def test_different_registries_are_isolated(self):
        first = MemoryCache("sessions", registry=CacheRegistry())
        second = MemoryCache("sessions", registry=CacheRegistry())

        await first.put("k", "v")

        assert await second.get("k") is None


@pytest.mark.asyncio
class TestMemoryCacheOperations:
    """Test MemoryCache specific behaviour."""

    async def test_put_if_absent_conflict(self, memory_cache: MemoryCache):
        await memory_cache.put_if_absent("key", "v1")
        with pytest.raises(KeyAlreadyExists):
            await memory_cache.put_if_absent("key", "v2")
        assert await memory_cache.get("key") == "v1"

    async def test_replace_mismatch(self, memory_cache: MemoryCache):
        await memory_cache.put("key", "current")
        with pytest.raises(ValueMismatch):
            await memory_cache.replace("key", "new", "stale")
        assert await memory_cache.get("key") == "current"

    async def test_replace_object_structurally(self, memory_cache: MemoryCache):
        await memory_cache.put("key", {"a": 1, "b": 2})
        await memory_cache.replace("key", {"a": 3}, {"b": 2, "a": 1})
        assert await memory_cache.get("key") == {"a": 3}

    async def test_stats_size_is_estimated(self, memory_cache: MemoryCache):
        await memory_cache.put("a", "x" * 1000)
        await memory_cache.put("b", "y")

        stats = await memory_cache.stats()

        assert stats.to_dict() == {"cache": "test-cache", "count": 2, "size": 8}


@pytest.mark.asyncio
class TestMemoryCacheTTL:
    """Test timer-driven TTL expiry."""

    async def test_timer_removes_entry(self, memory_cache: MemoryCache, registry: CacheRegistry):
        await memory_cache.put("key", "value", ttl=0.1)
        assert await memory_cache.get("key") == "value"

        await asyncio.sleep(0.2)

        # The timer fired without any access to the key
        assert registry.get_state("test-cache").count == 0
        assert await memory_cache.get("key") is None

    async def test_overwrite_cancels_timer(self, memory_cache: MemoryCache):
        await memory_cache.put("key", "v1", ttl=0.1)
        await memory_cache.put("key", "v2")

        await asyncio.sleep(0.2)

        assert await memory_cache.get("key") == "v2"
        assert (await memory_cache.stats()).count == 1

    async def test_overwrite_resets_ttl(self, memory_cache: MemoryCache):
        await memory_cache.put("key", "v1", ttl=0.1)
        await asyncio.sleep(0.05)
        await memory_cache.put("key", "v2", ttl=0.3)

        await asyncio.sleep(0.1)  # Original would have expired

        assert await memory_cache.get("key") == "v2"

    async def test_replace_resets_ttl(self, memory_cache: MemoryCache):
        await memory_cache.put("key", "v1", ttl=0.1)
        await memory_cache.replace("key", "v2", "v1")

        await asyncio.sleep(0.2)

        assert await memory_cache.get("key") == "v2"

    async def test_delete_cancels_timer(self, memory_cache: MemoryCache, registry: CacheRegistry):
        await memory_cache.put("key", "v1", ttl=0.1)
        await memory_cache.delete("key")
        await memory_cache.put("key", "v2")

        await asyncio.sleep(0.2)

        assert await memory_cache.get("key") == "v2"
        assert registry.get_state("test-cache").count == 1

    async def test_clear_cancels_timers(self, memory_cache: MemoryCache, registry: CacheRegistry):
        for i in range(5):
            await memory_cache.put(f"key{i}", "v", ttl=0.1)
        await memory_cache.clear()
        await memory_cache.put("key0", "fresh")

        await asyncio.sleep(0.2)

        assert await memory_cache.get("key0") == "fresh"
        assert registry.get_state("test-cache").count == 1

    async def test_count_never_negative(self, memory_cache: MemoryCache, registry: CacheRegistry):
        await memory_cache.put("key", "v", ttl=0.05)
        await asyncio.sleep(0.1)
        await memory_cache.delete("key")
        await memory_cache.delete("key")

        assert registry.get_state("test-cache").count == 0
        assert (await memory_cache.stats()).count == 0

    async def test_concurrent_writers(self, memory_cache: MemoryCache):
        async def writer(n: int):
            for i in range(50):
                await memory_cache.put(f"key{i % 10}", n)
                await asyncio.sleep(0)
                await memory_cache.delete(f"key{(i + 5) % 10}")

        await asyncio.gather(*(writer(n) for n in range(5)))

        stats = await memory_cache.stats()
        live = [i for i in range(10) if await memory_cache.get(f"key{i}") is not None]
        assert stats.count == len(live)
