"""Default configuration parameters for the OKX client."""

from dataclasses import dataclass, field
from typing import Optional

DEFAULT_API_URL = "https://www.okx.com"
DEFAULT_PUBLIC_WS_URL = "wss://ws.okx.com:8443/ws/v5/public"
DEFAULT_PRIVATE_WS_URL = "wss://ws.okx.com:8443/ws/v5/private"
DEFAULT_BUSINESS_WS_URL = "wss://ws.okx.com:8443/ws/v5/business"


@dataclass(frozen=True)
class RestParams:
    """REST invoker parameters."""
    base_url: str = DEFAULT_API_URL
    timeout_ms: int = 5000                          # Total request timeout
    request_expiration_ms: Optional[int] = None     # expTime header offset; None disables it
    accept_language: Optional[str] = None           # e.g. "en-US", "zh-CN"


@dataclass(frozen=True)
class StreamParams:
    """Streaming session parameters."""
    public_url: str = DEFAULT_PUBLIC_WS_URL
    private_url: str = DEFAULT_PRIVATE_WS_URL
    business_url: str = DEFAULT_BUSINESS_WS_URL
    fallback_urls: tuple[str, ...] = field(default_factory=tuple)

    # Transport
    open_timeout_s: float = 10.0

    # Heartbeat: ping after this much silence, reconnect if nothing answers
    ping_interval_s: float = 20.0
    pong_timeout_s: float = 10.0

    # Login
    login_timeout_s: float = 10.0
    max_auth_failures: int = 3                      # Consecutive transient failures tolerated

    # Reconnect backoff
    backoff_initial_s: float = 1.0
    backoff_factor: float = 2.0
    backoff_max_s: float = 30.0
    backoff_jitter: float = 0.2                     # Fraction of delay randomly shaved off
    max_reconnect_attempts: Optional[int] = None    # None retries transient failures forever

    # Inbound frames
    decode_error_threshold: int = 10                # Consecutive undecodable frames before reconnect
    queue_maxsize: int = 10000                      # Per-subscription delivery queue bound


@dataclass(frozen=True)
class DefaultConfig:
    """Complete default configuration."""
    rest: RestParams
    stream: StreamParams
    simulated_trading: bool = True                  # Demo trading unless explicitly disabled


def get_default_config() -> DefaultConfig:
    """Get the default configuration instance."""
    return DefaultConfig(
        rest=RestParams(),
        stream=StreamParams(),
    )
