"""
Remote Cache Module

Cache handle backed by the caching service's REST API:

    GET    /{cache}/{key}   -> entry (404 if absent)
    PUT    /{cache}/{key}   -> store entry
    POST   /{cache}/{key}   -> putIfAbsent / replaceValue (X-Method header)
    DELETE /{cache}/{key}   -> delete entry
    DELETE /{cache}         -> clear cache
    GET    /{cache}         -> stats {"count": ..., "size": ...}

Entries travel as application/octet-stream; replace sends the old and new
values as a multivalue body. Every request goes through the backoff
transport.
"""

import json
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from ..codec import multivalue
from ..codec.hints import TypeHint
from ..codec.values import decode
from ..exceptions import KeyAlreadyExists, ServiceError, ValueMismatch
from ..transport.backoff import BackoffTransport
from .base import BaseCache, CacheStats

logger = logging.getLogger(__name__)

OCTET_STREAM = "application/octet-stream"
MULTIVALUE_OCTET_STREAM = "application/x-multivalue-octet-stream"


def ttl_param(ttl: Optional[float]) -> Dict[str, str]:
    """Query parameters for a TTL in seconds; the service expects milliseconds."""
    if ttl is None:
        return {}
    return {"ttl": str(max(1, round(ttl * 1000)))}


class RemoteCache(BaseCache):
    """
    Cache handle for a named cache on the remote caching service.

    Usage:
        async with RemoteCache("sessions", "http://cache-host:8080/ccs") as cache:
            await cache.put("user:1", {"name": "alice"})
            user = await cache.get("user:1")

    Attributes:
        name: The cache name
        url: URL of the cache on the service
        transport: The BackoffTransport used for every request
    """

    def __init__(
            self,
            name: str,
            base_url: str,
            client: Optional[httpx.AsyncClient] = None,
            transport: Optional[BackoffTransport] = None,
    ):
        """
        Initialize the handle.

        Args:
            name: Cache name
            base_url: Root URL of the caching service (e.g. http://host:8080/ccs)
            client: httpx.AsyncClient to send requests with
            transport: BackoffTransport to use (built around client if not provided)
        """
        super().__init__(name)
        self.url = base_url.rstrip("/") + "/" + quote(name, safe="")
        self.transport = transport if transport is not None else BackoffTransport(client=client)

    def _key_url(self, key: str) -> str:
        return self.url + "/" + quote(key, safe="")

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def _request(
            self,
            method: str,
            url: str,
            params: Optional[Dict[str, str]] = None,
            headers: Optional[Dict[str, str]] = None,
            content: Optional[bytes] = None,
    ) -> httpx.Response:
        request = httpx.Request(method, url, params=params, headers=headers, content=content)
        return await self.transport.execute(request)

    def _unexpected(self, response: httpx.Response, operation: str, key: str = None) -> ServiceError:
        context: Dict[str, Any] = {"cache": self.name, "status": response.status_code}
        if key is not None:
            context["key"] = key
        logger.error(f"Unexpected response to {operation} on cache {self.name}: {response.status_code}")
        return ServiceError(
            f"Caching service returned {response.status_code} for {operation}",
            status_code=response.status_code,
            context=context,
        )

    async def _get(self, key: str, hint: Optional[TypeHint]) -> Any:
        response = await self._request("GET", self._key_url(key))
        if response.status_code == 404:
            return None
        if not response.is_success:
            raise self._unexpected(response, "get", key)
        return decode(response.content, hint)

    async def _put(self, key: str, payload: bytes, ttl: Optional[float]) -> None:
        response = await self._request(
            "PUT",
            self._key_url(key),
            params=ttl_param(ttl),
            headers={"Content-Type": OCTET_STREAM},
            content=payload,
        )
        if not response.is_success:
            raise self._unexpected(response, "put", key)

    async def _put_if_absent(self, key: str, payload: bytes, ttl: Optional[float]) -> None:
        params = {"returnOld": "true"}
        params.update(ttl_param(ttl))
        response = await self._request(
            "POST",
            self._key_url(key),
            params=params,
            headers={"Content-Type": OCTET_STREAM, "X-Method": "putIfAbsent"},
            content=payload,
        )
        if response.status_code == 409:
            raise KeyAlreadyExists(
                "Did not insert entry, key already exists",
                context={"cache": self.name, "key": key},
            )
        if not response.is_success:
            raise self._unexpected(response, "putIfAbsent", key)

    async def _replace(self, key: str, payload: bytes, old_payload: bytes, ttl: Optional[float]) -> None:
        response = await self._request(
            "POST",
            self._key_url(key),
            params=ttl_param(ttl),
            headers={"Content-Type": MULTIVALUE_OCTET_STREAM, "X-Method": "replaceValue"},
            content=multivalue.encode([old_payload, payload]),
        )
        if response.status_code == 409:
            raise ValueMismatch(
                "Did not replace entry, cached value does not equal the old value supplied",
                context={"cache": self.name, "key": key},
            )
        if not response.is_success:
            raise self._unexpected(response, "replaceValue", key)

    async def _delete(self, key: str) -> None:
        response = await self._request("DELETE", self._key_url(key))
        if not response.is_success and response.status_code != 404:
            raise self._unexpected(response, "delete", key)

    async def _clear(self) -> None:
        response = await self._request("DELETE", self.url)
        if not response.is_success and response.status_code != 404:
            raise self._unexpected(response, "clear")

    async def _stats(self) -> CacheStats:
        response = await self._request("GET", self.url)
        if not response.is_success:
            raise self._unexpected(response, "stats")
        try:
            body = json.loads(response.content)
            return CacheStats(cache=self.name, count=int(body["count"]), size=int(body["size"]))
        except (ValueError, TypeError, KeyError) as e:
            raise ServiceError(
                "Caching service returned malformed stats",
                status_code=response.status_code,
                context={"cache": self.name, "error": str(e)},
            ) from e
