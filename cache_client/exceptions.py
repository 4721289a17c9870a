"""
Cache Client Exceptions

All errors raised by the cache client derive from CacheError, which carries
an optional context dictionary for logging and debugging.

Validation errors (InvalidKeyType, InvalidValueType, InvalidTTL,
MissingArgument) are raised synchronously when an operation is called.
Everything else is raised when the returned awaitable is awaited.
"""

from typing import Any, Dict, Optional


class CacheError(Exception):
    """
    Base exception for all cache client errors.

    Attributes:
        message: Human-readable error message
        context: Optional structured context (key, cache name, status...)
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class InvalidKeyType(CacheError, TypeError):
    """Raised when a cache key is not a string or a number."""


class InvalidValueType(CacheError, TypeError):
    """Raised for values, type hints or TTLs of an unsupported type."""


class InvalidTTL(InvalidValueType):
    """Raised when a TTL is supplied but is not a positive number."""


class MissingArgument(CacheError, ValueError):
    """Raised when a required value (or old value) is missing."""


class KeyAlreadyExists(CacheError):
    """Raised by put_if_absent when the key is already present."""


class ValueMismatch(CacheError):
    """Raised by replace when the stored value does not equal the old value."""


class TypeMismatch(CacheError, TypeError):
    """Raised when a payload cannot be coerced to the requested type hint."""


class InvalidComponentType(CacheError, TypeError):
    """Raised when a multivalue component is neither text nor bytes."""


class MalformedMultivalue(CacheError, ValueError):
    """Raised when a multivalue buffer cannot be decoded in full."""


class TransportError(CacheError):
    """Raised when the caching service cannot be reached."""


class ServiceError(CacheError):
    """
    Raised when the caching service answers with something unexpected.

    Attributes:
        status_code: HTTP status of the offending response
    """

    def __init__(
            self,
            message: str,
            status_code: Optional[int] = None,
            context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.status_code = status_code
