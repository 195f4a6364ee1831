"""
Error classification for the OKX client.

Errors are split by where they surface: REST errors are returned to the
caller per call, streaming errors are handled by the session state machine
and only escalate when recovery is impossible.
"""

from .base import (
    OkxError,
    SigningError,
    ConfigurationError,
)
from .api import (
    ApiError,
    HttpError,
    ExchangeError,
)
from .stream import (
    StreamError,
    TransportError,
    AuthError,
    ReconnectExhaustedError,
    SessionClosedError,
    StateTransitionError,
    PERMANENT_AUTH_CODES,
)

__all__ = [
    # Base
    "OkxError",
    "SigningError",
    "ConfigurationError",
    # REST
    "ApiError",
    "HttpError",
    "ExchangeError",
    # Streaming
    "StreamError",
    "TransportError",
    "AuthError",
    "ReconnectExhaustedError",
    "SessionClosedError",
    "StateTransitionError",
    "PERMANENT_AUTH_CODES",
]
