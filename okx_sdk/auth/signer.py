"""
Request signer for the OKX v5 API.

The signature is base64(HMAC-SHA256(secret, timestamp + METHOD + path + body)).
``path`` includes the query string for REST calls; the WebSocket login signs
the fixed path ``/users/self/verify`` with an empty body.
"""

import base64
import hashlib
import hmac

from ..errors import SigningError

LOGIN_METHOD = "GET"
LOGIN_PATH = "/users/self/verify"


def _require_text(name: str, value: object) -> str:
    if not isinstance(value, str):
        raise SigningError(
            f"{name} must be a string, got {type(value).__name__}",
            field=name,
        )
    return value


def prehash(timestamp: str, method: str, path: str, body: str = "") -> str:
    """Build the exact string that gets signed."""
    _require_text("timestamp", timestamp)
    _require_text("method", method)
    _require_text("path", path)
    _require_text("body", body)
    return f"{timestamp}{method.upper()}{path}{body}"


def login_prehash(timestamp: str) -> str:
    """Prehash string for the WebSocket login frame."""
    return prehash(timestamp, LOGIN_METHOD, LOGIN_PATH, "")


def sign(secret: str, timestamp: str, method: str, path: str, body: str = "") -> str:
    """
    Produce the base64-encoded HMAC-SHA256 signature for a request.

    Args:
        secret: API secret key
        timestamp: Timestamp string sent alongside the signature
        method: HTTP method; upper-cased before signing
        path: Request path including query string
        body: Serialized request body, empty string if none

    Returns:
        Base64 signature string

    Raises:
        SigningError: If any input is not a string or cannot be UTF-8 encoded
    """
    _require_text("secret", secret)
    message = prehash(timestamp, method, path, body)
    try:
        key_bytes = secret.encode("utf-8")
        message_bytes = message.encode("utf-8")
    except UnicodeEncodeError as e:
        raise SigningError(f"Signing input is not valid UTF-8: {e.reason}") from None

    digest = hmac.new(key_bytes, message_bytes, digestmod=hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def sign_login(secret: str, timestamp: str) -> str:
    """Signature for the WebSocket login frame."""
    return sign(secret, timestamp, LOGIN_METHOD, LOGIN_PATH, "")
