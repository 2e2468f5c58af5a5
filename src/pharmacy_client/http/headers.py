"""Header decoration: content type and bearer credential."""

from pharmacy_client.http.models import RequestDescriptor

JSON_CONTENT_TYPE = "application/json"


def build_headers(
    descriptor: RequestDescriptor, access_token: str | None
) -> dict[str, str]:
    """
    Compute the final header set for a request.

    Content-Type is set only when a body exists and the caller did not
    opt out (multipart bodies need the transport to pick the boundary).
    The bearer credential is attached only when auth is not skipped and
    a token exists. Caller headers override computed ones, compared
    case-insensitively.
    """
    headers: dict[str, str] = {}

    if descriptor.has_body and not descriptor.skip_content_type:
        headers["Content-Type"] = JSON_CONTENT_TYPE

    if not descriptor.skip_auth and access_token:
        headers["Authorization"] = f"Bearer {access_token}"

    if descriptor.headers:
        overridden = {key.lower() for key in descriptor.headers}
        headers = {k: v for k, v in headers.items() if k.lower() not in overridden}
        headers.update(descriptor.headers)

    return headers


__all__ = ["build_headers", "JSON_CONTENT_TYPE"]
