"""
Streaming error classifications.

Transport errors drive the session into reconnection and are not surfaced.
Only permanent auth rejections and an exhausted retry budget reach the caller.
"""

from typing import Optional

from .base import OkxError

# Login/auth rejection codes where a retry with the same credentials and
# clock can never succeed.
PERMANENT_AUTH_CODES = frozenset({
    "50100",  # API frozen
    "50101",  # APIKey does not match current environment
    "50102",  # Timestamp request expired
    "50103",  # OK-ACCESS-KEY header missing
    "50104",  # OK-ACCESS-PASSPHRASE header missing
    "50105",  # OK-ACCESS-PASSPHRASE incorrect
    "50111",  # Invalid OK-ACCESS-KEY
    "50113",  # Invalid sign
    "60004",  # Invalid timestamp
    "60005",  # Invalid apiKey
    "60006",  # Timestamp request expired
    "60007",  # Invalid sign
    "60024",  # Wrong passphrase
})


class StreamError(OkxError):
    """Base class for streaming session errors."""


class TransportError(StreamError):
    """Connection could not be opened, dropped, or stopped answering pings."""

    def __init__(self, message: str, url: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.url = url
        self.recoverable = True


class AuthError(StreamError):
    """Login rejected by the exchange."""

    def __init__(self, message: str, code: Optional[str] = None,
                 permanent: Optional[bool] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.code = code
        if permanent is None:
            permanent = code in PERMANENT_AUTH_CODES
        self.permanent = permanent
        self.recoverable = not permanent


class ReconnectExhaustedError(StreamError):
    """Configured reconnect budget used up without reaching READY."""

    def __init__(self, message: str, attempts: int = 0, **kwargs):
        super().__init__(message, **kwargs)
        self.attempts = attempts


class SessionClosedError(StreamError):
    """Operation attempted on, or pending in, a closed session."""


class StateTransitionError(StreamError):
    """Illegal state machine transition. Indicates a programming error."""

    def __init__(self, message: str, current_state: Optional[str] = None,
                 attempted_transition: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.current_state = current_state
        self.attempted_transition = attempted_transition
