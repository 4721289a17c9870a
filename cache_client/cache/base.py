"""
Cache Handle Base Module

Defines the operation set shared by every cache backend. Public methods
validate their arguments synchronously, so bad keys, values, TTLs and type
hints raise at the call site before any I/O, and then return an awaitable
that performs the backend specific work. Errors from the backend itself are
raised when that awaitable is awaited.

    value = await cache.get("key")                 # None if absent
    await cache.put("key", {"a": 1}, ttl=30)
    await cache.put_if_absent(155, "value")        # keys may be numbers
    await cache.replace("key", "new", "old")
    await cache.delete("key")
    await cache.clear()
    stats = await cache.stats()
"""

import math
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Dict, Optional

from ..codec.hints import TypeHint
from ..codec.values import serialize
from ..exceptions import InvalidKeyType, InvalidTTL, MissingArgument


@dataclass
class CacheStats:
    """
    Statistics reported for one named cache.

    Attributes:
        cache: The cache name as given, not percent-encoded
        count: Number of live entries
        size: Size of the cache in bytes (approximate for the in-memory backend)
    """
    cache: str
    count: int
    size: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def normalize_key(key: Any) -> str:
    """
    Normalize a cache key to its string form.

    Args:
        key: A str or a number

    Returns:
        The key as a string (155 and 155.0 both become "155")

    Raises:
        MissingArgument: If the key is None or empty
        InvalidKeyType: If the key is not a string or a number
    """
    if key is None or key == "":
        raise MissingArgument("key is a required parameter")
    if isinstance(key, str):
        return key
    if isinstance(key, bool) or not isinstance(key, (int, float)):
        raise InvalidKeyType(
            "Caching keys must be strings or numbers",
            context={"type": type(key).__name__},
        )
    if isinstance(key, float) and key.is_integer():
        return str(int(key))
    return str(key)


def validate_ttl(ttl: Any) -> Optional[float]:
    """
    Validate a time-to-live in seconds.

    Returns:
        The TTL as a float, or None when no TTL was supplied

    Raises:
        InvalidTTL: If the TTL is not a positive number
    """
    if ttl is None:
        return None
    if isinstance(ttl, bool) or not isinstance(ttl, (int, float)):
        raise InvalidTTL(
            "Time to live for cache entries must be a positive number",
            context={"type": type(ttl).__name__},
        )
    if math.isnan(ttl) or ttl <= 0:
        raise InvalidTTL(
            "Time to live for cache entries must be a positive number",
            context={"ttl": ttl},
        )
    return float(ttl)


def require(value: Any, name: str) -> None:
    """Raise MissingArgument if a required value is None."""
    if value is None:
        raise MissingArgument(f"{name} is a required parameter")


class BaseCache(ABC):
    """
    A handle on one named cache.

    Subclasses implement the underscore-prefixed coroutines, which receive
    already validated, normalized and serialized arguments.

    Attributes:
        name: The cache name
    """

    def __init__(self, name: str):
        if not isinstance(name, str) or not name:
            raise InvalidKeyType(
                "Cache names must be non-empty strings",
                context={"name": name},
            )
        self.name = name

    def get(self, key: Any, hint: Any = None) -> Awaitable[Any]:
        """
        Retrieve an entry.

        Args:
            key: The key to look up
            hint: Optional TypeHint (or name/type) for decoding the payload

        Returns:
            Awaitable resolving to the decoded value, or None if absent
        """
        key = normalize_key(key)
        hint = TypeHint.parse(hint)
        return self._get(key, hint)

    def put(self, key: Any, value: Any, ttl: Optional[float] = None, raw: bool = False) -> Awaitable[None]:
        """
        Add or overwrite an entry.

        Args:
            key: The key to store
            value: str, bytes, or any JSON-serializable value
            ttl: Optional time-to-live in seconds
            raw: True if value is a raw byte payload
        """
        key = normalize_key(key)
        require(value, "value")
        ttl = validate_ttl(ttl)
        return self._put(key, serialize(value, raw), ttl)

    def put_if_absent(self, key: Any, value: Any, ttl: Optional[float] = None, raw: bool = False) -> Awaitable[None]:
        """
        Add an entry only if the key is not already present.

        The awaitable raises KeyAlreadyExists when the key is present.
        """
        key = normalize_key(key)
        require(value, "value")
        ttl = validate_ttl(ttl)
        return self._put_if_absent(key, serialize(value, raw), ttl)

    def replace(self, key: Any, value: Any, old_value: Any, ttl: Optional[float] = None) -> Awaitable[None]:
        """
        Replace an entry only if its current value equals old_value.

        The awaitable raises ValueMismatch when the values differ or the key
        is absent.
        """
        key = normalize_key(key)
        require(value, "value")
        require(old_value, "old_value")
        ttl = validate_ttl(ttl)
        return self._replace(key, serialize(value), serialize(old_value), ttl)

    def delete(self, key: Any) -> Awaitable[None]:
        """Delete an entry. Deleting an absent key is not an error."""
        key = normalize_key(key)
        return self._delete(key)

    def clear(self) -> Awaitable[None]:
        """Remove every entry from the cache."""
        return self._clear()

    def stats(self) -> Awaitable[CacheStats]:
        """Get statistics about the cache."""
        return self._stats()

    async def aclose(self) -> None:
        """Release any resources held by the handle."""

    async def __aenter__(self) -> "BaseCache":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"

    @abstractmethod
    async def _get(self, key: str, hint: Optional[TypeHint]) -> Any:
        ...

    @abstractmethod
    async def _put(self, key: str, payload: bytes, ttl: Optional[float]) -> None:
        ...

    @abstractmethod
    async def _put_if_absent(self, key: str, payload: bytes, ttl: Optional[float]) -> None:
        ...

    @abstractmethod
    async def _replace(self, key: str, payload: bytes, old_payload: bytes, ttl: Optional[float]) -> None:
        ...

    @abstractmethod
    async def _delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def _clear(self) -> None:
        ...

    @abstractmethod
    async def _stats(self) -> CacheStats:
        ...
