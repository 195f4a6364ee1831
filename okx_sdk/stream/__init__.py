"""
Streaming session, subscription registry and message routing.

A session walks DISCONNECTED -> CONNECTING -> CONNECTED -> (AUTHENTICATING) ->
READY and falls back through RECONNECTING whenever the transport fails,
resubscribing the registry snapshot each time READY is re-entered.
"""
from .manager import StreamManager
from .models import ChannelSubscription, ChannelType, InboundMessage, SessionState
from .registry import SubscriptionRegistry
from .router import MessageRouter, RouteOutcome
from .session import StreamingSession

__all__ = [
    "ChannelSubscription",
    "ChannelType",
    "InboundMessage",
    "MessageRouter",
    "RouteOutcome",
    "SessionState",
    "StreamManager",
    "StreamingSession",
    "SubscriptionRegistry",
]
