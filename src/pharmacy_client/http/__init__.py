"""HTTP layer: URL joining, header decoration, dispatch and the API client."""

from pharmacy_client.http.models import (
    ApiResult,
    PreparedRequest,
    RequestDescriptor,
    TransportResponse,
)
from pharmacy_client.http.url import normalize_url
from pharmacy_client.http.headers import build_headers
from pharmacy_client.http.dispatcher import RequestDispatcher
from pharmacy_client.http.client import ApiClient

__all__ = [
    "ApiClient",
    "ApiResult",
    "PreparedRequest",
    "RequestDescriptor",
    "RequestDispatcher",
    "TransportResponse",
    "build_headers",
    "normalize_url",
]
