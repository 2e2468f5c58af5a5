"""Request, response and result models shared by the HTTP layer."""

from dataclasses import dataclass, field
from typing import Any

import aiohttp

from pharmacy_client.errors.exceptions import ClientError

# Body types accepted by the dispatcher. dict/list bodies are JSON-encoded
# by the ApiClient before dispatch.
RequestBody = str | bytes | aiohttp.FormData | dict | list | None


@dataclass(frozen=True)
class RequestDescriptor:
    """
    One API call as issued by feature code.

    Never mutated after dispatch; header decoration produces a new dict.

    Attributes:
        endpoint: Path relative to the configured base URL
        method: HTTP verb
        headers: Caller headers, winning over computed ones
        body: Payload (str, bytes, FormData, or dict/list for JSON)
        skip_auth: Do not attach the bearer credential
        skip_content_type: Do not set Content-Type (multipart uploads)
    """

    endpoint: str
    method: str = "GET"
    headers: dict[str, str] = field(default_factory=dict)
    body: RequestBody = None
    skip_auth: bool = False
    skip_content_type: bool = False

    @property
    def has_body(self) -> bool:
        return self.body is not None


@dataclass(frozen=True)
class PreparedRequest:
    """Fully decorated request ready for the transport."""

    method: str
    headers: dict[str, str]
    data: str | bytes | aiohttp.FormData | None = None


@dataclass(frozen=True)
class TransportResponse:
    """Completed HTTP exchange, body already read."""

    status: int
    body: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


@dataclass
class ApiResult:
    """
    Internal outcome of one API call.

    Either ``payload`` (success) or ``error`` (failure) is meaningful.
    Feature code never sees this type, only ``to_envelope()``.
    """

    ok: bool
    payload: dict[str, Any] = field(default_factory=dict)
    error: ClientError | None = None

    @classmethod
    def success(cls, payload: dict[str, Any]) -> "ApiResult":
        return cls(ok=True, payload=payload)

    @classmethod
    def failure(cls, error: ClientError) -> "ApiResult":
        return cls(ok=False, error=error)

    def to_envelope(self) -> dict[str, Any]:
        if self.ok:
            # Server fields win, including its own "success" flag
            return {"success": True, **self.payload}
        message = self.error.message if self.error else "Unknown error"
        return {"success": False, "message": message}


__all__ = [
    "RequestBody",
    "RequestDescriptor",
    "PreparedRequest",
    "TransportResponse",
    "ApiResult",
]
