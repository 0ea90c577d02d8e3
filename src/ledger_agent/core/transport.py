"""HTTP transport with bounded retry.

Transient failures (5xx statuses and connection-level errors) are retried with linear backoff;
every other non-2xx status surfaces immediately as a classified ``ProviderHTTPError``.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable

import httpx
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt, wait_incrementing

from .exceptions import ProviderConnectionError, ProviderError, ProviderHTTPError

logger = logging.getLogger(__name__)


def is_transient(exc: BaseException) -> bool:
    """Whether a failure is worth another attempt."""
    if isinstance(exc, ProviderHTTPError):
        return exc.transient
    return isinstance(exc, ProviderConnectionError)


def _log_retry(retry_state: RetryCallState) -> None:
    ex = retry_state.outcome.exception() if retry_state.outcome else None
    delay = retry_state.next_action.sleep if retry_state.next_action else 0
    logger.warning(f"Attempt {retry_state.attempt_number} failed ({ex}); retrying in {delay:.1f}s")


class RetryingTransport:
    """POST JSON to a provider endpoint with a shared retry policy.

    Parameters
    ----------
    client : httpx.AsyncClient, optional
        Client to send requests with. One is created (and owned) when not supplied.
    max_retries : int
        Additional attempts after the first failure.
    retry_delay : float
        Backoff step in seconds; the wait before retry *n* is ``retry_delay * n``.
    timeout : float
        Timeout for a client created by the transport.
    sleep : Callable
        Awaitable sleep used between attempts.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        max_retries: int = 2,
        retry_delay: float = 1.0,
        timeout: float = 60.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if retry_delay < 0:
            raise ValueError("retry_delay must be >= 0")

        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.sleep = sleep

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_incrementing(start=self.retry_delay, increment=self.retry_delay),
            retry=retry_if_exception(is_transient),
            sleep=self.sleep,
            before_sleep=_log_retry,
            reraise=True,
        )

    async def _send(self, endpoint: str, headers: dict[str, str], content: bytes, attempt: int, stream: bool):
        logger.debug(
            f"POST {endpoint} (attempt {attempt}, {len(content)} bytes)",
            extra={"endpoint": endpoint, "attempt": attempt, "payload_size": len(content)},
        )
        request = self.client.build_request("POST", endpoint, headers=headers, content=content)
        try:
            response = await self.client.send(request, stream=stream)
        except httpx.TransportError as e:
            raise ProviderConnectionError(f"网络连接失败: {e}") from e

        if not response.is_success:
            try:
                await response.aread()
                detail = response.text[:500]
            except httpx.HTTPError:
                detail = None
            finally:
                await response.aclose()
            logger.debug(f"{endpoint} answered HTTP {response.status_code}: {detail}")
            raise ProviderHTTPError(response.status_code, detail)

        return response

    async def execute(self, endpoint: str, headers: dict[str, str], body: dict[str, Any]) -> httpx.Response:
        """Send a request and return the fully read response."""
        content = json.dumps(body, ensure_ascii=False).encode("utf-8")
        async for attempt in self._retrying():
            with attempt:
                return await self._send(
                    endpoint, headers, content, attempt.retry_state.attempt_number, stream=False
                )
        raise ProviderError("request was not attempted")  # unreachable with reraise=True

    @asynccontextmanager
    async def stream(
        self, endpoint: str, headers: dict[str, str], body: dict[str, Any]
    ) -> AsyncIterator[httpx.Response]:
        """Open a streaming response; the body is read by the caller.

        Only opening the response is retried; failures while reading the body propagate.
        """
        content = json.dumps(body, ensure_ascii=False).encode("utf-8")
        response = None
        async for attempt in self._retrying():
            with attempt:
                response = await self._send(
                    endpoint, headers, content, attempt.retry_state.attempt_number, stream=True
                )
        if response is None:
            raise ProviderError("request was not attempted")

        try:
            yield response
        finally:
            await response.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> RetryingTransport:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
