"""
Base error classes shared by the REST and streaming layers.

Every error carries a context dictionary and a ``recoverable`` flag. Context
must never contain secret material (api secret, passphrase, signatures).
"""

from typing import Any, Dict, Optional


class OkxError(Exception):
    """Base class for all errors raised by the OKX client."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = False


class SigningError(OkxError):
    """Signature could not be produced. Always a programming error."""

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.field = field


class ConfigurationError(OkxError):
    """Required configuration is missing or invalid."""

    def __init__(self, message: str, setting: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.setting = setting
