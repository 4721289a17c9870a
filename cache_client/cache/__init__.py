"""
Cache module for the cache client.

open_cache() is the entry point: it returns a RemoteCache when a caching
service is configured and a MemoryCache otherwise.
"""

import logging
import os
from typing import Optional

import httpx

from ..config.settings import Settings, settings as default_settings
from ..transport.backoff import BackoffTransport
from .base import BaseCache, CacheStats
from .memory import MemoryCache
from .registry import CacheRegistry, default_registry
from .remote import RemoteCache

logger = logging.getLogger(__name__)

WARN_NO_CACHE_HOST = "Internal Caching URL is not set. Falling back on using a local hashmap instead."
WARN_NO_CACHE_BINDING = (
    "If this application is running on ACCS, ensure that you have correctly bound to a caching service."
)


def open_cache(
        name: str,
        settings: Optional[Settings] = None,
        registry: Optional[CacheRegistry] = None,
        client: Optional[httpx.AsyncClient] = None,
) -> BaseCache:
    """
    Get a handle on a named cache.

    Args:
        name: Cache name
        settings: Settings to read the caching service location from
                  (default: global settings)
        registry: Registry for the in-memory fallback (default: process-wide)
        client: httpx.AsyncClient for the remote backend

    Returns:
        RemoteCache if a caching service URL is configured, MemoryCache otherwise
    """
    settings = settings if settings is not None else default_settings
    base_url = settings.base_url
    if base_url:
        logger.debug(f"Using caching service at {base_url} for cache {name!r}")
        transport = BackoffTransport(
            client=client,
            base_delay=settings.RETRY_BASE_DELAY,
            max_retries=settings.MAX_RETRIES,
            timeout=settings.REQUEST_TIMEOUT,
        )
        return RemoteCache(name, base_url, transport=transport)

    logger.warning(WARN_NO_CACHE_HOST)
    # HOSTNAME and PORT are set on ACCS, so the binding is probably missing
    if os.environ.get("HOSTNAME") and os.environ.get("PORT"):
        logger.warning(WARN_NO_CACHE_BINDING)
    return MemoryCache(name, registry=registry)


__all__ = [
    "BaseCache",
    "CacheRegistry",
    "CacheStats",
    "MemoryCache",
    "RemoteCache",
    "default_registry",
    "open_cache",
]
