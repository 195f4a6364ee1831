"""Configuration validation utilities."""

from dataclasses import dataclass
from typing import Any
from urllib.parse import urlparse


@dataclass(frozen=True)
class ValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    value: Any


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate_rest_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate REST parameters."""
        errors = []

        if "base_url" in params:
            value = params["base_url"]
            parsed = urlparse(value) if isinstance(value, str) else None
            if parsed is None or parsed.scheme not in ("http", "https") or not parsed.netloc:
                errors.append(ValidationError(
                    field="rest.base_url",
                    message="Must be an http(s) URL",
                    value=value
                ))

        if "timeout_ms" in params:
            value = params["timeout_ms"]
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                errors.append(ValidationError(
                    field="rest.timeout_ms",
                    message="Must be a positive integer",
                    value=value
                ))

        if params.get("request_expiration_ms") is not None:
            value = params["request_expiration_ms"]
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                errors.append(ValidationError(
                    field="rest.request_expiration_ms",
                    message="Must be a positive integer or null",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_stream_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate streaming session parameters."""
        errors = []

        for name in ("public_url", "private_url", "business_url"):
            if name in params:
                value = params[name]
                parsed = urlparse(value) if isinstance(value, str) else None
                if parsed is None or parsed.scheme not in ("ws", "wss") or not parsed.netloc:
                    errors.append(ValidationError(
                        field=f"stream.{name}",
                        message="Must be a ws(s) URL",
                        value=value
                    ))

        for name in ("open_timeout_s", "ping_interval_s", "pong_timeout_s",
                     "login_timeout_s", "backoff_factor"):
            if name in params:
                value = params[name]
                if not _is_number(value) or value <= 0:
                    errors.append(ValidationError(
                        field=f"stream.{name}",
                        message="Must be a positive number",
                        value=value
                    ))

        for name in ("backoff_initial_s", "backoff_max_s"):
            if name in params:
                value = params[name]
                if not _is_number(value) or value < 0:
                    errors.append(ValidationError(
                        field=f"stream.{name}",
                        message="Must be a non-negative number",
                        value=value
                    ))

        if "backoff_jitter" in params:
            value = params["backoff_jitter"]
            if not _is_number(value) or value < 0 or value > 1:
                errors.append(ValidationError(
                    field="stream.backoff_jitter",
                    message="Must be a number between 0 and 1",
                    value=value
                ))

        for name in ("max_auth_failures", "decode_error_threshold"):
            if name in params:
                value = params[name]
                if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                    errors.append(ValidationError(
                        field=f"stream.{name}",
                        message="Must be a positive integer",
                        value=value
                    ))

        if "queue_maxsize" in params:
            value = params["queue_maxsize"]
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                errors.append(ValidationError(
                    field="stream.queue_maxsize",
                    message="Must be a non-negative integer (0 = unbounded)",
                    value=value
                ))

        if params.get("max_reconnect_attempts") is not None:
            value = params["max_reconnect_attempts"]
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                errors.append(ValidationError(
                    field="stream.max_reconnect_attempts",
                    message="Must be a non-negative integer or null",
                    value=value
                ))

        return errors

    @staticmethod
    def validate_config(config: dict[str, Any]) -> list[ValidationError]:
        """Validate a complete merged configuration dictionary."""
        errors = []
        errors.extend(ConfigValidator.validate_rest_params(config.get("rest", {})))
        errors.extend(ConfigValidator.validate_stream_params(config.get("stream", {})))
        return errors
