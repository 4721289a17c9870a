"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import json
import time
from typing import AsyncGenerator, Dict, List, Optional, Tuple
from urllib.parse import unquote

import httpx
import pytest
import pytest_asyncio

from cache_client.cache.memory import MemoryCache
from cache_client.cache.registry import CacheRegistry
from cache_client.cache.remote import RemoteCache
from cache_client.codec import multivalue
from cache_client.transport.backoff import BackoffTransport

BASE_URL = "http://cache.test:8080/ccs"
BASE_PATH = "/ccs/"


# ============================================================================
# Fake Caching Service
# ============================================================================

class FakeCacheService:
    """
    In-test emulation of the caching service REST API.

    Used as the handler of an httpx.MockTransport. Every request is recorded
    in `requests` for inspection.

    Usage:
        service = FakeCacheService()
        client = httpx.AsyncClient(transport=httpx.MockTransport(service.handle))
    """

    def __init__(self):
        self.caches: Dict[str, Dict[str, Tuple[bytes, Optional[float]]]] = {}
        self.requests: List[httpx.Request] = []

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        raw_path = request.url.raw_path.decode("ascii").split("?", 1)[0]
        assert raw_path.startswith(BASE_PATH), raw_path
        parts = [unquote(part) for part in raw_path[len(BASE_PATH):].split("/")]
        entries = self.caches.setdefault(parts[0], {})
        self._sweep(entries)

        if len(parts) == 1:
            return self._handle_cache(request, entries)
        return self._handle_key(request, entries, parts[1])

    def _handle_cache(self, request: httpx.Request, entries: dict) -> httpx.Response:
        if request.method == "GET":
            size = sum(len(value) for value, _ in entries.values())
            return httpx.Response(200, json={"count": len(entries), "size": size})
        if request.method == "DELETE":
            entries.clear()
            return httpx.Response(204)
        return httpx.Response(405)

    def _handle_key(self, request: httpx.Request, entries: dict, key: str) -> httpx.Response:
        if request.method == "GET":
            if key not in entries:
                return httpx.Response(404)
            return httpx.Response(200, content=entries[key][0])

        if request.method == "PUT":
            entries[key] = (request.content, self._deadline(request))
            return httpx.Response(204)

        if request.method == "POST":
            method = request.headers.get("X-Method")
            if method == "putIfAbsent":
                if key in entries:
                    return httpx.Response(409, content=entries[key][0])
                entries[key] = (request.content, self._deadline(request))
                return httpx.Response(200)
            if method == "replaceValue":
                old, new = multivalue.decode(request.content, as_raw=True)
                if key not in entries or entries[key][0] != old:
                    return httpx.Response(409)
                entries[key] = (new, self._deadline(request))
                return httpx.Response(200)
            return httpx.Response(400)

        if request.method == "DELETE":
            if entries.pop(key, None) is None:
                return httpx.Response(404)
            return httpx.Response(204)

        return httpx.Response(405)

    @staticmethod
    def _deadline(request: httpx.Request) -> Optional[float]:
        ttl = request.url.params.get("ttl")
        if ttl is None:
            return None
        return time.monotonic() + int(ttl) / 1000

    @staticmethod
    def _sweep(entries: dict) -> None:
        now = time.monotonic()
        for key in [k for k, (_, deadline) in entries.items() if deadline and deadline <= now]:
            del entries[key]

    def stored(self, cache: str, key: str) -> Optional[bytes]:
        entry = self.caches.get(cache, {}).get(key)
        return entry[0] if entry else None


# ============================================================================
# In-Memory Backend Fixtures
# ============================================================================

@pytest.fixture
def registry() -> CacheRegistry:
    """Create an isolated cache registry."""
    return CacheRegistry()


@pytest.fixture
def memory_cache(registry: CacheRegistry) -> MemoryCache:
    """Create an in-memory cache handle on an isolated registry."""
    return MemoryCache("test-cache", registry=registry)


# ============================================================================
# Remote Backend Fixtures
# ============================================================================

@pytest.fixture
def service() -> FakeCacheService:
    """Create a fake caching service."""
    return FakeCacheService()


@pytest_asyncio.fixture
async def http_client(service: FakeCacheService) -> AsyncGenerator[httpx.AsyncClient, None]:
    """httpx client whose requests are answered by the fake service."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(service.handle))
    yield client
    await client.aclose()


@pytest.fixture
def remote_cache(http_client: httpx.AsyncClient) -> RemoteCache:
    """Create a remote cache handle talking to the fake service."""
    transport = BackoffTransport(client=http_client, base_delay=0)
    return RemoteCache("test-cache", BASE_URL, transport=transport)


@pytest.fixture(params=["memory", "remote"])
def cache(request, registry: CacheRegistry, http_client: httpx.AsyncClient):
    """A cache handle for each backend, for behaviour both must share."""
    if request.param == "memory":
        return MemoryCache("shared-cache", registry=registry)
    transport = BackoffTransport(client=http_client, base_delay=0)
    return RemoteCache("shared-cache", BASE_URL, transport=transport)


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
