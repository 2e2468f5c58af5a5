"""
Request dispatcher: bounded-time transport with retry on transport failure.

Owns every suspension point of a call: the HTTP exchange, the timeout
race and the backoff sleep. Failures that happen before a response exists
are classified here, once; HTTP error statuses are successful exchanges
and are returned to the caller untouched.
"""

import asyncio
import dataclasses
import logging

import aiohttp

from pharmacy_client.errors.classifiers import classify_transport_error
from pharmacy_client.http.models import PreparedRequest, TransportResponse
from pharmacy_client.logging.context import get_log_context
from pharmacy_client.resilience.retry import (
    DEFAULT_RETRY,
    RetryConfig,
    SleepFunc,
    run_with_retry,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 60000


class RequestDispatcher:
    """
    Sends prepared requests over a shared aiohttp session.

    The session is created lazily and owned by the dispatcher unless one
    is injected, in which case the caller closes it.

    Usage:
        async with RequestDispatcher(base_url) as dispatcher:
            response = await dispatcher.send_with_retry(url, request)
    """

    def __init__(
        self,
        base_url: str,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        retry_config: RetryConfig | None = None,
        session: aiohttp.ClientSession | None = None,
        sleep: SleepFunc | None = None,
    ):
        self.base_url = base_url
        self.timeout_ms = timeout_ms
        self.retry_config = retry_config or DEFAULT_RETRY
        self._session = session
        self._owns_session = session is None
        self._sleep = sleep
        self._closed = False

    async def __aenter__(self) -> "RequestDispatcher":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._closed:
            raise RuntimeError("RequestDispatcher is closed, cannot create new session")
        if self._session is None or self._session.closed:
            # The per-request asyncio timeout is the only time budget
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=None),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        self._closed = True
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
            await asyncio.sleep(0)
        self._session = None

    @staticmethod
    def _get_context_ids() -> dict[str, str]:
        return {k: v for k, v in get_log_context().items() if v}

    async def send(
        self,
        url: str,
        request: PreparedRequest,
        timeout_ms: int | None = None,
    ) -> TransportResponse:
        """
        Perform one HTTP exchange bounded by ``timeout_ms``.

        When the budget expires the in-flight request is cancelled and a
        RequestTimeoutError is raised. Any other transport failure becomes
        a NetworkError or CorsError. Non-2xx statuses are returned, not
        raised.

        Args:
            url: Absolute request URL
            request: Method, final headers and body
            timeout_ms: Time budget (defaults to the dispatcher's)

        Returns:
            TransportResponse with the body already read
        """
        timeout_ms = self.timeout_ms if timeout_ms is None else timeout_ms
        session = await self._ensure_session()
        ctx = self._get_context_ids()

        logger.debug(
            "API request starting",
            extra={
                **ctx,
                "api_method": request.method,
                "http_url": url,
                "timeout_ms": timeout_ms,
            },
        )

        loop = asyncio.get_running_loop()
        start_time = loop.time()
        try:
            async with asyncio.timeout(timeout_ms / 1000):
                async with session.request(
                    request.method,
                    url,
                    headers=request.headers,
                    data=request.data,
                ) as response:
                    # Read inside the context so the connection is released
                    body = await response.read()
                    result = TransportResponse(
                        status=response.status,
                        body=body,
                        headers=dict(response.headers),
                        reason=response.reason,
                    )
        except (TimeoutError, aiohttp.ClientError, OSError) as e:
            duration_ms = (loop.time() - start_time) * 1000
            error = classify_transport_error(
                e,
                self.base_url,
                context={"url": url, "method": request.method},
            )
            logger.warning(
                "API request failed before a response: %s",
                error.kind.value,
                extra={
                    **ctx,
                    "api_method": request.method,
                    "http_url": url,
                    "error_category": error.kind.value,
                    "error_type": type(e).__name__,
                    "error_message": str(e)[:200],
                    "duration_ms": round(duration_ms, 1),
                },
            )
            raise error from e

        duration_ms = (loop.time() - start_time) * 1000
        log_level = logging.INFO if duration_ms > 2000 else logging.DEBUG
        logger.log(
            log_level,
            "Slow API request" if duration_ms > 2000 else "API request completed",
            extra={
                **ctx,
                "api_method": request.method,
                "http_url": url,
                "http_status": result.status,
                "duration_ms": round(duration_ms, 1),
            },
        )
        return result

    async def send_with_retry(
        self,
        url: str,
        request: PreparedRequest,
        max_attempts: int | None = None,
        timeout_ms: int | None = None,
    ) -> TransportResponse:
        """
        Send with sequential retries on retryable transport failures.

        Timeouts are terminal. Network and CORS failures back off
        ``base * exponential_base ** attempt`` seconds between attempts.
        The last failure propagates.
        """
        config = self.retry_config
        if max_attempts is not None and max_attempts != config.max_attempts:
            config = dataclasses.replace(config, max_attempts=max_attempts)

        return await run_with_retry(
            lambda: self.send(url, request, timeout_ms),
            config=config,
            operation=f"{request.method} {url}",
            sleep=self._sleep,
        )


__all__ = ["RequestDispatcher", "DEFAULT_TIMEOUT_MS"]
