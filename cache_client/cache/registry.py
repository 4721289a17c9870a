"""
Named Cache Registry Module

Holds the state behind the in-memory cache backend. Every MemoryCache handle
constructed with the same name and registry shares one CacheState, so cache
contents outlive any single handle.

States are created lazily on first reference to a name and live as long as
the registry. A process-wide default registry is used unless one is
injected; tests pass their own to stay isolated.

Internal Storage:
    name -> CacheState
    CacheState.entries: key -> CacheEntry(value, expires_at, timer)

Expiry:
    A positive TTL schedules removal on the running event loop with
    call_later, and records a monotonic deadline. Every access also checks
    the deadline, so an entry is never returned once its TTL has elapsed.
"""

import asyncio
import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """
    One stored value.

    Attributes:
        value: The serialized payload
        expires_at: Monotonic deadline, or None for no expiration
        timer: Scheduled expiry callback, if one was scheduled
    """
    value: bytes
    expires_at: Optional[float] = None
    timer: Optional[asyncio.TimerHandle] = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and self.expires_at <= now

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


def same_value(stored: bytes, expected: bytes) -> bool:
    """
    Compare payloads byte for byte, falling back to structural JSON equality.

    '{"a":1,"b":2}' and '{"b": 2, "a": 1}' compare equal. JSON types are
    kept distinct, so 'true' does not match '1' and '1' does not match '1.0'.
    """
    if stored == expected:
        return True
    try:
        return _canonical_json(stored) == _canonical_json(expected)
    except ValueError:
        return False


def _canonical_json(payload: bytes) -> str:
    parsed = json.loads(payload.decode("utf-8"))
    return json.dumps(parsed, sort_keys=True, separators=(",", ":"))


class CacheState:
    """
    Entries and live-entry count for one named cache.

    All mutations, including expiry callbacks, run under a per-cache lock, so
    the count always equals the number of live entries and replace compares
    and writes in one step.

    Attributes:
        name: The cache name
        count: Number of live entries
    """

    def __init__(self, name: str, clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.count = 0
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get(self, key: str) -> Optional[bytes]:
        """
        Retrieve the payload for a key.

        Returns:
            The payload if present and not expired, None otherwise
        """
        with self._lock:
            entry = self._live_entry(key)
            return entry.value if entry is not None else None

    def put(self, key: str, value: bytes, ttl: Optional[float] = None) -> None:
        """Insert or update a key, replacing any existing TTL."""
        with self._lock:
            self._live_entry(key)
            self._store(key, value, ttl)

    def put_if_absent(self, key: str, value: bytes, ttl: Optional[float] = None) -> bool:
        """
        Insert a key only if it is not live.

        Returns:
            True if stored, False if the key already exists
        """
        with self._lock:
            if self._live_entry(key) is not None:
                return False
            self._store(key, value, ttl)
            return True

    def replace(self, key: str, value: bytes, old_value: bytes, ttl: Optional[float] = None) -> bool:
        """
        Overwrite a key only if its stored payload equals old_value.

        Returns:
            True if replaced, False if absent or different
        """
        with self._lock:
            entry = self._live_entry(key)
            if entry is None or not same_value(entry.value, old_value):
                return False
            self._store(key, value, ttl)
            return True

    def delete(self, key: str) -> bool:
        """
        Delete a key.

        Returns:
            True if a live key was deleted, False if it didn't exist
        """
        with self._lock:
            if self._live_entry(key) is None:
                return False
            self._remove(key)
            return True

    def clear(self) -> None:
        """Remove all keys and cancel pending expiry timers."""
        with self._lock:
            for entry in self._entries.values():
                entry.cancel_timer()
            self._entries.clear()
            self.count = 0

    def cleanup_expired(self) -> int:
        """
        Remove all expired keys whose timers have not fired yet.

        Returns:
            Number of keys removed
        """
        with self._lock:
            now = self._clock()
            expired = [k for k, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                self._remove(key)
            return len(expired)

    def keys(self) -> List[str]:
        """Live keys, in insertion order."""
        with self._lock:
            now = self._clock()
            return [k for k, entry in self._entries.items() if not entry.is_expired(now)]

    def _live_entry(self, key: str) -> Optional[CacheEntry]:
        # Lazy expiration for entries whose timer has not fired
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            self._remove(key)
            return None
        return entry

    def _store(self, key: str, value: bytes, ttl: Optional[float]) -> None:
        previous = self._entries.get(key)
        if previous is None:
            self.count += 1
        else:
            previous.cancel_timer()

        entry = CacheEntry(value=value)
        if ttl is not None and ttl > 0:
            entry.expires_at = self._clock() + ttl
            entry.timer = self._schedule_expiry(key, entry, ttl)
        self._entries[key] = entry

    def _remove(self, key: str) -> None:
        entry = self._entries.pop(key)
        entry.cancel_timer()
        self.count -= 1

    def _schedule_expiry(self, key: str, entry: CacheEntry, ttl: float) -> Optional[asyncio.TimerHandle]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to fire the timer; the deadline check still applies
            return None
        return loop.call_later(ttl, self._expire, key, entry)

    def _expire(self, key: str, entry: CacheEntry) -> None:
        with self._lock:
            # The key may have been overwritten since this timer was scheduled
            if self._entries.get(key) is entry:
                entry.timer = None
                self._remove(key)
                logger.debug(f"Expired key {key!r} in cache {self.name!r}")

    def __len__(self) -> int:
        return self.count


class CacheRegistry:
    """
    Mapping from cache name to shared CacheState.

    Usage:
        registry = CacheRegistry()
        state = registry.get_state("sessions")   # created on first use
        assert registry.get_state("sessions") is state
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._states: Dict[str, CacheState] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def get_state(self, name: str) -> CacheState:
        """Get the state for a cache name, creating it if needed."""
        with self._lock:
            state = self._states.get(name)
            if state is None:
                state = CacheState(name, clock=self._clock)
                self._states[name] = state
                logger.debug(f"Created in-memory cache {name!r}")
            return state

    def names(self) -> List[str]:
        """Names of every cache created so far."""
        with self._lock:
            return list(self._states)

    def reset(self) -> None:
        """Clear every cache and forget all names."""
        with self._lock:
            states = list(self._states.values())
            self._states.clear()
        for state in states:
            state.clear()

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._states


# Process-wide registry used when no registry is injected
default_registry = CacheRegistry()
