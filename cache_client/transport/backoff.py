"""
Backoff Transport Module

Adds retries to caching requests. While the caching service scales,
connections may be refused or fail to resolve for a window of roughly five
seconds, so connection-level failures are retried with an exponential
backoff: a base delay of 225ms doubled after every attempt, giving up after
5 retries (225 -> 450 -> 900 -> 1800 -> 3600 ms, a little over 7 seconds).

HTTP error statuses are never retried; the response is handed back as-is
for the caller to interpret.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config.settings import settings
from ..exceptions import TransportError

logger = logging.getLogger(__name__)

# DNS failures and refused connections surface as ConnectError
RETRYABLE_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)

WARN_CONN_FAILED = "Max retries met for request backoff! Caching service might be down!"


class BackoffTransport:
    """
    Executes one logical HTTP request with bounded exponential retry.

    No state is carried between calls: every call to execute() starts with
    a fresh retry budget, and exhausting it does not mark the service down.

    Usage:
        transport = BackoffTransport()
        response = await transport.execute(httpx.Request("GET", url))
        await transport.aclose()

    Attributes:
        base_delay: Delay before the first retry, in seconds
        max_retries: Retries after the initial attempt
        timeout: Per-attempt timeout for clients created by the transport
    """

    def __init__(
            self,
            client: Optional[httpx.AsyncClient] = None,
            base_delay: float = None,
            max_retries: int = None,
            timeout: float = None,
            sleep: Callable[[float], Awaitable[None]] = None,
    ):
        """
        Initialize the transport.

        Args:
            client: httpx.AsyncClient to send with (created lazily if not provided)
            base_delay: First retry delay in seconds (default from settings)
            max_retries: Retry budget (default from settings)
            timeout: Per-attempt timeout in seconds (default from settings)
            sleep: Coroutine used to wait between attempts (default asyncio.sleep)
        """
        self.base_delay = base_delay if base_delay is not None else settings.RETRY_BASE_DELAY
        self.max_retries = max_retries if max_retries is not None else settings.MAX_RETRIES
        self.timeout = timeout if timeout is not None else settings.REQUEST_TIMEOUT
        self._sleep = sleep if sleep is not None else asyncio.sleep

        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        """Close the HTTP client if the transport created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def execute(self, request: httpx.Request) -> httpx.Response:
        """
        Send a request, retrying connection failures.

        Args:
            request: The request to send (resent unchanged on retry)

        Returns:
            The response, whatever its status code

        Raises:
            TransportError: If the service could not be reached within the
                            retry budget, or the exchange failed mid-flight
        """
        client = await self._get_client()
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=self.base_delay, exp_base=2),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )

        try:
            return await retrying(self._send, client, request)
        except RETRYABLE_ERRORS as e:
            logger.warning(WARN_CONN_FAILED)
            raise TransportError(
                f"Could not connect to caching service: {e}",
                context={"method": request.method, "url": str(request.url)},
            ) from e
        except httpx.TransportError as e:
            raise TransportError(
                f"Request to caching service failed: {e}",
                context={"method": request.method, "url": str(request.url)},
            ) from e

    async def _send(self, client: httpx.AsyncClient, request: httpx.Request) -> httpx.Response:
        logger.debug(f"{request.method} {request.url}")
        response = await client.send(request)
        logger.debug(f"{request.method} {request.url} -> {response.status_code}")
        return response

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.debug(
            f"Connection attempt {retry_state.attempt_number} failed ({error!r}), "
            f"retrying in {delay * 1000:.0f}ms"
        )
