"""
Pharmacy backend API client.

Every feature call funnels through ``ApiClient``:

    URL normalizer -> header decoration -> dispatcher (timeout + retry)
    -> session guard -> error classifier -> result normalizer

``call()`` is the entry point for feature code and always returns an
outcome envelope; ``request()`` is the raising variant for callers that
need to tell failures apart.
"""

import json
import logging
import uuid
from typing import Any

import aiohttp

from pharmacy_client.auth.session import ACCESS_TOKEN_KEY, SessionGuard
from pharmacy_client.auth.storage import FileStorage
from pharmacy_client.auth.token_store import TokenStore
from pharmacy_client.config import ClientConfig, get_config
from pharmacy_client.errors.classifiers import classify_http_failure
from pharmacy_client.errors.exceptions import ClientError, UnclassifiedError
from pharmacy_client.http.dispatcher import RequestDispatcher
from pharmacy_client.http.headers import build_headers
from pharmacy_client.http.models import (
    ApiResult,
    PreparedRequest,
    RequestBody,
    RequestDescriptor,
    TransportResponse,
)
from pharmacy_client.http.url import normalize_url
from pharmacy_client.logging.context import LogContext
from pharmacy_client.resilience.retry import RetryConfig, SleepFunc
from pharmacy_client.types import Navigator

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "An error occurred during the API call"
INVALID_JSON_MESSAGE = "Invalid JSON response from server"


def _encode_body(body: RequestBody) -> str | bytes | aiohttp.FormData | None:
    if isinstance(body, (dict, list)):
        return json.dumps(body)
    return body


def _decode_success_body(response: TransportResponse) -> dict[str, Any]:
    """Decode a 2xx body into the payload spread into the envelope."""
    if not response.body.strip():
        return {}
    try:
        data = json.loads(response.body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise UnclassifiedError(
            INVALID_JSON_MESSAGE,
            status_code=response.status,
            cause=e,
        ) from e
    if isinstance(data, dict):
        return data
    # Arrays and scalars cannot be spread into the envelope
    return {"data": data}


class ApiClient:
    """
    Async client for the pharmacy backend.

    Owns the aiohttp session (through the dispatcher), the token store
    and the session guard. Use as an async context manager or call
    ``close()`` when done.

    Args:
        config: Client configuration (defaults to the loaded singleton)
        token_store: Session store (defaults to a file-backed store at
            ``config.storage_path``)
        navigator: Optional navigable context for the login redirect
        session: Injected aiohttp session, closed by the caller
        sleep: Backoff sleep, injectable for tests
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        token_store: TokenStore | None = None,
        navigator: Navigator | None = None,
        session: aiohttp.ClientSession | None = None,
        sleep: SleepFunc | None = None,
    ):
        self.config = config or get_config()
        self.token_store = token_store or TokenStore(FileStorage(self.config.storage_path))
        self.guard = SessionGuard(
            self.token_store,
            navigator=navigator,
            login_path=self.config.login_path,
            public_endpoints=self.config.public_endpoints,
        )
        self.dispatcher = RequestDispatcher(
            self.config.base_url,
            timeout_ms=self.config.timeout_ms,
            retry_config=RetryConfig(
                max_attempts=self.config.max_attempts,
                base_delay=self.config.backoff_base_seconds,
                exponential_base=self.config.backoff_exponential_base,
                jitter=self.config.backoff_jitter,
            ),
            session=session,
            sleep=sleep,
        )

        logger.debug(
            "ApiClient initialized",
            extra={
                "base_url": self.config.base_url,
                "timeout_seconds": self.config.timeout_seconds,
                "max_attempts": self.config.max_attempts,
            },
        )

    @property
    def base_url(self) -> str:
        return self.config.base_url

    async def __aenter__(self) -> "ApiClient":
        await self.dispatcher.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        await self.dispatcher.close()

    def _prepare(self, descriptor: RequestDescriptor) -> PreparedRequest:
        access_token = None
        if not descriptor.skip_auth:
            access_token = self.token_store.get(ACCESS_TOKEN_KEY)
        return PreparedRequest(
            method=descriptor.method.upper(),
            headers=build_headers(descriptor, access_token),
            data=_encode_body(descriptor.body),
        )

    async def _execute(self, descriptor: RequestDescriptor) -> dict[str, Any]:
        url = normalize_url(self.config.base_url, descriptor.endpoint)
        prepared = self._prepare(descriptor)

        response = await self.dispatcher.send_with_retry(url, prepared)

        # 401 on a protected endpoint tears the session down and raises
        self.guard.inspect(descriptor.endpoint, response)

        if not response.ok:
            error = classify_http_failure(
                response.status,
                response.body,
                context={"endpoint": descriptor.endpoint, "method": prepared.method},
            )
            logger.warning(
                "API request failed",
                extra={
                    "api_endpoint": descriptor.endpoint,
                    "api_method": prepared.method,
                    "http_status": response.status,
                    "error_category": error.kind.value,
                    "error_message": error.message[:200],
                },
            )
            raise error

        return _decode_success_body(response)

    async def execute(self, descriptor: RequestDescriptor) -> ApiResult:
        """
        Run one call through the full pipeline.

        Never raises: every failure, including unexpected ones, is returned
        as a failed ApiResult carrying a classified ClientError.
        """
        with LogContext(
            request_id=uuid.uuid4().hex,
            endpoint=descriptor.endpoint,
            operation=f"{descriptor.method.upper()} {descriptor.endpoint}",
        ):
            try:
                return ApiResult.success(await self._execute(descriptor))
            except ClientError as e:
                return ApiResult.failure(e)
            except Exception as e:
                logger.exception(
                    "Unexpected error during API call",
                    extra={
                        "api_endpoint": descriptor.endpoint,
                        "api_method": descriptor.method,
                        "error_type": type(e).__name__,
                    },
                )
                return ApiResult.failure(
                    UnclassifiedError(DEFAULT_ERROR_MESSAGE, cause=e)
                )

    async def request(
        self,
        endpoint: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: RequestBody = None,
        skip_auth: bool = False,
        skip_content_type: bool = False,
    ) -> dict[str, Any]:
        """
        Run a call and return the decoded payload.

        Raises:
            ClientError: Classified failure
        """
        result = await self.execute(
            RequestDescriptor(
                endpoint=endpoint,
                method=method,
                headers=dict(headers or {}),
                body=body,
                skip_auth=skip_auth,
                skip_content_type=skip_content_type,
            )
        )
        if not result.ok:
            raise result.error
        return result.payload

    async def call(
        self,
        endpoint: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: RequestBody = None,
        skip_auth: bool = False,
        skip_content_type: bool = False,
    ) -> dict[str, Any]:
        """
        Run a call and return its outcome envelope.

        Returns:
            ``{"success": True, **payload}`` or
            ``{"success": False, "message": str}``
        """
        result = await self.execute(
            RequestDescriptor(
                endpoint=endpoint,
                method=method,
                headers=dict(headers or {}),
                body=body,
                skip_auth=skip_auth,
                skip_content_type=skip_content_type,
            )
        )
        return result.to_envelope()


__all__ = ["ApiClient", "DEFAULT_ERROR_MESSAGE", "INVALID_JSON_MESSAGE"]
