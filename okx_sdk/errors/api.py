"""
REST error classifications.

These are surfaced per call; retry policy belongs to the caller.
"""

from typing import Optional

from .base import OkxError


class ApiError(OkxError):
    """Base class for failures of a single REST call."""


class HttpError(ApiError):
    """Non-2xx HTTP status, undecodable body or network failure.

    ``status`` is None when no HTTP response was received at all.
    """

    def __init__(self, message: str, status: Optional[int] = None,
                 body: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status = status
        self.body = body
        self.recoverable = status is None or status >= 500


class ExchangeError(ApiError):
    """Business-level rejection reported in a 2xx JSON body."""

    def __init__(self, message: str, code: str = "", exchange_message: str = "",
                 **kwargs):
        super().__init__(message, **kwargs)
        self.code = code
        self.exchange_message = exchange_message
