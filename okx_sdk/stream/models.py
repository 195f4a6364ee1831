"""
Streaming data models.

Immutable value types for channel subscriptions, inbound messages and the
session lifecycle states.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping, Optional, Union


class SessionState(str, Enum):
    """Streaming session lifecycle states."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    AUTHENTICATING = "authenticating"
    READY = "ready"
    RECONNECTING = "reconnecting"
    CLOSED = "closed"


class ChannelType(str, Enum):
    """Known OKX WebSocket channel names."""
    TICKERS = "tickers"
    BOOKS = "books"
    BOOKS5 = "books5"
    BOOKS_L2_TBT = "books-l2-tbt"
    BOOKS50_L2_TBT = "books50-l2-tbt"
    BBO_TBT = "bbo-tbt"
    TRADES = "trades"
    FUNDING_RATE = "funding-rate"
    INDEX_TICKERS = "index-tickers"
    MARK_PRICE = "mark-price"
    PRICE_LIMIT = "price-limit"
    ESTIMATED_PRICE = "estimated-price"
    OPEN_INTEREST = "open-interest"
    STATUS = "status"
    BLOCK_TICKERS = "block-tickers"

    # Private
    ACCOUNT = "account"
    POSITIONS = "positions"
    BALANCE_AND_POSITION = "balance_and_position"
    ORDERS = "orders"
    POSITION_RISK = "liquidation-warning"
    GREEKS = "account-greeks"
    DEPOSIT_INFO = "deposit-info"
    WITHDRAWAL_INFO = "withdrawal-info"

    # Private, business endpoint
    ORDERS_ALGO = "orders-algo"
    ALGO_ADVANCE = "algo-advance"


PRIVATE_CHANNELS = frozenset({
    ChannelType.ACCOUNT.value,
    ChannelType.POSITIONS.value,
    ChannelType.BALANCE_AND_POSITION.value,
    ChannelType.ORDERS.value,
    ChannelType.POSITION_RISK.value,
    ChannelType.GREEKS.value,
    ChannelType.DEPOSIT_INFO.value,
    ChannelType.WITHDRAWAL_INFO.value,
    ChannelType.ORDERS_ALGO.value,
    ChannelType.ALGO_ADVANCE.value,
})

BUSINESS_CHANNELS = frozenset({
    ChannelType.ORDERS_ALGO.value,
    ChannelType.ALGO_ADVANCE.value,
})

CANDLE_PREFIXES = ("candle", "mark-price-candle", "index-candle")


def candle_channel(bar: str) -> str:
    """Candlestick channel name, e.g. ``candle1m``."""
    return f"candle{bar}"


def mark_price_candle_channel(bar: str) -> str:
    return f"mark-price-candle{bar}"


def index_candle_channel(bar: str) -> str:
    return f"index-candle{bar}"


def requires_auth(channel: str) -> bool:
    """Whether subscribing to ``channel`` needs a logged-in connection."""
    return channel in PRIVATE_CHANNELS


def endpoint_kind(channel: str) -> str:
    """Which OKX WebSocket endpoint serves ``channel``: public, private or business."""
    if channel in BUSINESS_CHANNELS or channel.startswith(CANDLE_PREFIXES):
        return "business"
    if channel in PRIVATE_CHANNELS:
        return "private"
    return "public"


@dataclass(frozen=True)
class ChannelSubscription:
    """A desired channel subscription.

    Identity is (channel_type, instrument_id, other_args); ``other_args`` is
    stored as a sorted tuple of pairs so instances are hashable. An ``instId``
    passed among the extra args is folded into ``instrument_id``, so both
    spellings name the same wire channel.
    """
    channel_type: str
    instrument_id: Optional[str] = None
    other_args: tuple[tuple[str, str], ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        extra = dict(self.other_args)
        inst_id = extra.pop("instId", None)
        if inst_id is None:
            return
        if self.instrument_id is not None and self.instrument_id != inst_id:
            raise ValueError(
                f"Conflicting instrument ids {self.instrument_id!r} and {inst_id!r}"
            )
        object.__setattr__(self, "instrument_id", inst_id)
        object.__setattr__(self, "other_args", tuple(sorted(extra.items())))

    @classmethod
    def create(
        cls,
        channel: Union[ChannelType, str],
        instrument_id: Optional[str] = None,
        other_args: Optional[Mapping[str, str]] = None,
        **params: str,
    ) -> "ChannelSubscription":
        """Build a subscription from a channel name and keyword arguments."""
        merged = dict(other_args or {})
        merged.update(params)
        name = channel.value if isinstance(channel, ChannelType) else str(channel)
        pairs = tuple(sorted((str(k), str(v)) for k, v in merged.items()))
        return cls(channel_type=name, instrument_id=instrument_id, other_args=pairs)

    @property
    def args(self) -> dict[str, str]:
        return dict(self.other_args)

    @property
    def key(self) -> tuple:
        return (self.channel_type, self.instrument_id or "", self.other_args)

    @property
    def requires_auth(self) -> bool:
        return requires_auth(self.channel_type)

    @property
    def specificity(self) -> int:
        """Number of arguments that must match an inbound frame."""
        return len(self.other_args) + (1 if self.instrument_id else 0)

    def to_arg(self) -> dict[str, str]:
        """Wire representation used in subscribe/unsubscribe frames."""
        arg = {"channel": self.channel_type}
        if self.instrument_id:
            arg["instId"] = self.instrument_id
        arg.update(self.other_args)
        return arg

    def matches(self, arg: Mapping[str, Any]) -> bool:
        """True if an inbound frame ``arg`` belongs to this subscription."""
        if arg.get("channel") != self.channel_type:
            return False
        if self.instrument_id and arg.get("instId") != self.instrument_id:
            return False
        return all(str(arg.get(k)) == v for k, v in self.other_args)

    def __str__(self) -> str:
        parts = [self.channel_type]
        if self.instrument_id:
            parts.append(self.instrument_id)
        parts.extend(f"{k}={v}" for k, v in self.other_args)
        return "/".join(parts)


@dataclass(frozen=True)
class InboundMessage:
    """A data frame delivered to a subscription queue."""
    channel_type: str
    instrument_id: Optional[str]
    payload: Any
    received_at: datetime
    action: Optional[str] = None                    # "snapshot" or "update" for order books
    arg: Mapping[str, Any] = field(default_factory=dict)
