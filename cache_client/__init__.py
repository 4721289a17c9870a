"""
Cache Client: Key/Value Caching Service Client

An asyncio client for a remote key/value caching service reached over HTTP,
with an in-process hashmap fallback when no service is configured.
"""

from .cache import BaseCache, CacheStats, MemoryCache, RemoteCache, open_cache
from .codec import TypeHint

__version__ = "1.0.0"

__all__ = [
    "BaseCache",
    "CacheStats",
    "MemoryCache",
    "RemoteCache",
    "TypeHint",
    "open_cache",
]
