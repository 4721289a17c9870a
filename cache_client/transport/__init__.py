"""Transport module for the cache client."""

from .backoff import BackoffTransport

__all__ = ["BackoffTransport"]
