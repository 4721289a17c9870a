"""
Cache Client Configuration Settings

This module contains all configuration values for the cache client.

The only setting that changes behaviour is CACHE_HOST: when the
CACHING_INTERNAL_CACHE_URL environment variable is unset, cache handles
fall back to the in-process hashmap backend.
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Settings:
    """Cache client configuration settings."""

    # Remote caching service
    CACHE_HOST: Optional[str] = os.environ.get("CACHING_INTERNAL_CACHE_URL") or None
    CACHE_PORT: int = int(os.environ.get("CACHING_INTERNAL_CACHE_PORT", "8080"))
    CACHE_PATH: str = "/ccs"

    # Transport settings
    REQUEST_TIMEOUT: float = float(os.environ.get("CACHE_CLIENT_REQUEST_TIMEOUT", "10.0"))
    RETRY_BASE_DELAY: float = 0.225  # Seconds, doubled after every retry
    MAX_RETRIES: int = 5

    # Logging settings
    DEBUG: bool = os.environ.get("CACHE_CLIENT_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("CACHE_CLIENT_LOG_LEVEL", "INFO")

    @property
    def base_url(self) -> Optional[str]:
        """Root URL of the caching service, or None when not configured."""
        if not self.CACHE_HOST:
            return None
        return f"http://{self.CACHE_HOST}:{self.CACHE_PORT}{self.CACHE_PATH}"


# Global settings instance
settings = Settings()
