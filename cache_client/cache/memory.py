"""
In-Memory Cache Module

Cache handle backed by a local hashmap, for running without a caching
service. It offers the same operations as RemoteCache and stores payloads
serialized exactly as they would be sent to the service, so values decode
the same way on both backends.
"""

import logging
from typing import Any, Optional

from ..codec.hints import TypeHint
from ..codec.values import decode
from ..exceptions import KeyAlreadyExists, ValueMismatch
from .base import BaseCache, CacheStats
from .registry import CacheRegistry, default_registry

logger = logging.getLogger(__name__)

# Estimated bytes per entry reported by stats()
SIZE_PER_ENTRY = 4


class MemoryCache(BaseCache):
    """
    Cache handle for a named in-process cache.

    Handles sharing a name and a registry share their entries:

        a = MemoryCache("sessions")
        b = MemoryCache("sessions")
        await a.put("k", "v")
        assert await b.get("k") == "v"

    Attributes:
        name: The cache name
        registry: The registry holding the shared state
    """

    def __init__(self, name: str, registry: Optional[CacheRegistry] = None):
        """
        Initialize the handle.

        Args:
            name: Cache name
            registry: Registry to share state through (default: process-wide)
        """
        super().__init__(name)
        self.registry = registry if registry is not None else default_registry
        self._state = self.registry.get_state(name)

    async def _get(self, key: str, hint: Optional[TypeHint]) -> Any:
        payload = self._state.get(key)
        if payload is None:
            return None
        return decode(payload, hint)

    async def _put(self, key: str, payload: bytes, ttl: Optional[float]) -> None:
        self._state.put(key, payload, ttl)

    async def _put_if_absent(self, key: str, payload: bytes, ttl: Optional[float]) -> None:
        if not self._state.put_if_absent(key, payload, ttl):
            raise KeyAlreadyExists(
                "Did not insert entry, key already exists",
                context={"cache": self.name, "key": key},
            )

    async def _replace(self, key: str, payload: bytes, old_payload: bytes, ttl: Optional[float]) -> None:
        if not self._state.replace(key, payload, old_payload, ttl):
            raise ValueMismatch(
                "Did not replace entry, cached value does not equal the old value supplied",
                context={"cache": self.name, "key": key},
            )

    async def _delete(self, key: str) -> None:
        self._state.delete(key)

    async def _clear(self) -> None:
        self._state.clear()
        logger.debug(f"Cleared in-memory cache {self.name!r}")

    async def _stats(self) -> CacheStats:
        # Size is an estimate; summing payload lengths is not worth the cost
        self._state.cleanup_expired()
        count = self._state.count
        return CacheStats(cache=self.name, count=count, size=count * SIZE_PER_ENTRY)
