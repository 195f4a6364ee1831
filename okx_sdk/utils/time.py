"""
Time helpers for request signing and message bookkeeping.

OKX rejects requests whose timestamp drifts too far from server time, so
every helper here reads the clock at call time and nothing is cached.
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """Current wall-clock time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_iso_ms(ts: datetime) -> str:
    """
    Format a datetime as ISO-8601 UTC with millisecond precision.

    Args:
        ts: Datetime to format; naive values are assumed to be UTC

    Returns:
        String like ``2020-12-08T09:08:57.715Z``
    """
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    ts = ts.astimezone(timezone.utc)
    return ts.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ts.microsecond // 1000:03d}Z"


def generate_timestamp(now: Optional[datetime] = None) -> str:
    """Fresh ISO-8601 millisecond timestamp for the OK-ACCESS-TIMESTAMP header."""
    return format_iso_ms(now or utc_now())


def generate_epoch_timestamp(now: Optional[datetime] = None) -> str:
    """Fresh Unix epoch timestamp in seconds, used by the WebSocket login."""
    return str(int((now or utc_now()).timestamp()))


def generate_expiration_ms(expiration_ms: int, now: Optional[datetime] = None) -> int:
    """Epoch milliseconds after which the exchange should discard the request."""
    current = now or utc_now()
    return int(current.timestamp() * 1000) + expiration_ms


def is_time_synchronized(server_time_ms: int, allowed_diff_ms: int,
                         now: Optional[datetime] = None) -> bool:
    """
    Check whether local clock is within tolerance of the server clock.

    Args:
        server_time_ms: Server time in epoch milliseconds
        allowed_diff_ms: Maximum tolerated absolute skew
        now: Local time override for testing

    Returns:
        True if the absolute skew is within tolerance
    """
    local_ms = int((now or utc_now()).timestamp() * 1000)
    return abs(local_ms - server_time_ms) <= allowed_diff_ms


def ms_to_datetime(timestamp_ms: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(timestamp_ms / 1000.0, tz=timezone.utc)
