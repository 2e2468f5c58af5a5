"""URL joining for the configured backend."""


def normalize_url(base_url: str, endpoint: str) -> str:
    """
    Join base URL and endpoint with exactly one slash.

    No scheme or host validation is done; a malformed base yields a
    malformed URL and the transport reports it.

    Example:
        >>> normalize_url("http://api.test///", "///auth/login")
        'http://api.test/auth/login'
    """
    return f"{base_url.rstrip('/')}/{endpoint.lstrip('/')}"


__all__ = ["normalize_url"]
