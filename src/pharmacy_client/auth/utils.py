"""Auth helpers: role landing pages, JWT expiry checks, auth error wording."""

import logging
import time
from typing import Any, Optional

import jwt

logger = logging.getLogger(__name__)

ROLE_REDIRECTS = {
    "admin": "/admin/dashboard",
    "manager": "/manager/dashboard",
    "pharmacist": "/pharmacist/inventory",
    "cashier": "/cashier/payments",
}
DEFAULT_REDIRECT = "/auth/login"

# (markers, user-facing message), first match wins
AUTH_ERROR_MESSAGES = [
    (
        ("cors", "cross-origin"),
        "Connection error: Unable to reach the authentication server. This may "
        "be due to network restrictions or browser security settings.",
    ),
    (
        ("network error", "failed to fetch"),
        "Network error: Unable to connect to the server. Please check your "
        "internet connection and try again.",
    ),
    (
        ("timeout", "took too long", "cancelled"),
        "Connection timeout: The server is taking too long to respond. Please "
        "check your internet connection and try again.",
    ),
    (
        ("too many", "rate limit"),
        "Too many login attempts. Please wait 15 minutes before trying again.",
    ),
    (
        ("pending admin activation",),
        "Your account is pending approval from an administrator. You will "
        "receive an email once your account is activated.",
    ),
    (
        ("not activated", "verify your email"),
        "Your account is not yet active. Please verify your email or contact "
        "your manager for assistance.",
    ),
    (
        ("inactive account", "account is inactive"),
        "Your account has been deactivated. Please contact your administrator "
        "for assistance.",
    ),
]


def role_redirect(role: Optional[str]) -> str:
    """Landing path for a role; unknown roles go back to login."""
    if role is None:
        return DEFAULT_REDIRECT
    # Accept UserRole members as well as plain strings
    return ROLE_REDIRECTS.get(getattr(role, "value", role), DEFAULT_REDIRECT)


def decode_jwt_payload(token: Optional[str]) -> Optional[dict[str, Any]]:
    """
    Decode a JWT payload without verifying its signature.

    Only for client-side expiry hints; the server remains the authority.
    Returns None for anything that is not a well-formed JWT.
    """
    if not token or not isinstance(token, str):
        return None
    try:
        return jwt.decode(token, options={"verify_signature": False, "verify_exp": False})
    except jwt.PyJWTError as e:
        logger.debug("Could not decode JWT payload: %s", e)
        return None


def is_token_expired(token: Optional[str], now: Optional[float] = None) -> bool:
    """
    Check a JWT's ``exp`` claim.

    Missing or undecodable tokens count as expired. A token without a
    numeric ``exp`` claim carries no expiry and is not expired.
    """
    payload = decode_jwt_payload(token)
    if payload is None:
        return True

    exp = payload.get("exp")
    if not isinstance(exp, (int, float)) or isinstance(exp, bool):
        return False

    current = time.time() if now is None else now
    return current >= exp


def friendly_auth_error(error: BaseException | str) -> str:
    """Map an auth failure to wording suitable for the login screen."""
    message = str(error)
    lower_message = message.lower()
    for markers, friendly in AUTH_ERROR_MESSAGES:
        if any(marker in lower_message for marker in markers):
            return friendly
    return message


__all__ = [
    "ROLE_REDIRECTS",
    "role_redirect",
    "decode_jwt_payload",
    "is_token_expired",
    "friendly_auth_error",
]
