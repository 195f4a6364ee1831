"""Public/private/business session manager.

OKX serves channels from three WebSocket endpoints. The manager keeps at
most one session per endpoint, creates it on first use and picks the
endpoint from the subscribed channel.
"""

import asyncio
from typing import Any, Optional

from ..auth.credentials import Credentials
from ..config.defaults import StreamParams
from ..errors import ConfigurationError
from ..logging.config import get_logger
from .models import ChannelSubscription, InboundMessage, SessionState, endpoint_kind
from .session import StreamingSession
from .transport import Transport

logger = get_logger(__name__)


class StreamManager:
    """Routes subscriptions to lazily created per-endpoint sessions."""

    def __init__(
        self,
        credentials: Optional[Credentials] = None,
        params: Optional[StreamParams] = None,
        transport: Optional[Transport] = None,
    ):
        self.credentials = credentials
        self.params = params or StreamParams()
        self.transport = transport
        self.sessions: dict[str, StreamingSession] = {}
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> "StreamManager":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _create_session(self, kind: str) -> StreamingSession:
        if kind == "private":
            if self.credentials is None:
                raise ConfigurationError("Private channels require credentials")
            return StreamingSession.private(self.credentials, self.params, transport=self.transport)
        if kind == "business":
            return StreamingSession.business(self.credentials, self.params, transport=self.transport)
        return StreamingSession.public(self.params, transport=self.transport)

    async def subscribe(self, sub: ChannelSubscription) -> bool:
        """Subscribe on the endpoint serving ``sub``, connecting it if needed."""
        if sub.requires_auth and self.credentials is None:
            raise ConfigurationError(f"Channel {sub.channel_type} requires credentials")
        kind = endpoint_kind(sub.channel_type)
        async with self._lock:
            session = self.sessions.get(kind)
            if session is None:
                session = self._create_session(kind)
                self.sessions[kind] = session
                logger.info("session_created", endpoint=kind, session_id=session.session_id)

        # Connect outside the manager lock; endpoints connect independently.
        added = await session.subscribe(sub)
        if session.state is SessionState.DISCONNECTED:
            await session.connect()
        return added

    async def unsubscribe(self, sub: ChannelSubscription) -> bool:
        session = self.sessions.get(endpoint_kind(sub.channel_type))
        if session is None:
            return False
        return await session.unsubscribe(sub)

    def session_for(self, sub: ChannelSubscription) -> StreamingSession:
        """The session serving ``sub``; KeyError if none was created."""
        return self.sessions[endpoint_kind(sub.channel_type)]

    async def receive(self, sub: ChannelSubscription,
                      timeout: Optional[float] = None) -> InboundMessage:
        return await self.session_for(sub).receive(sub, timeout)

    async def close(self) -> None:
        """Close every session. Idempotent."""
        sessions = list(self.sessions.values())
        await asyncio.gather(*(session.close() for session in sessions))
