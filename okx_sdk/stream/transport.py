"""WebSocket transport and endpoint URL pool.

The session talks to the network only through the small ``Transport`` and
``Connection`` protocols defined here, so tests can substitute an in-memory
transport.
"""

import asyncio
from typing import Iterable, Optional, Protocol, Union
from urllib.parse import urlsplit, urlunsplit

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from ..errors import TransportError
from ..logging.config import get_logger

logger = get_logger(__name__)


class Connection(Protocol):
    """One open bidirectional text-frame connection."""

    async def send(self, message: str) -> None: ...

    async def recv(self) -> str: ...

    async def close(self) -> None: ...


class Transport(Protocol):
    """Factory for connections."""

    async def connect(self, url: str) -> Connection: ...


class WebsocketsConnection:
    """Adapts a ``websockets`` client connection and maps its errors."""

    def __init__(self, ws, url: str):
        self._ws = ws
        self.url = url

    async def send(self, message: str) -> None:
        try:
            await self._ws.send(message)
        except ConnectionClosed as e:
            raise TransportError(f"Connection closed while sending: {e}", url=self.url) from e

    async def recv(self) -> str:
        try:
            message: Union[str, bytes] = await self._ws.recv()
        except ConnectionClosed as e:
            raise TransportError(f"Connection closed: {e}", url=self.url) from e
        if isinstance(message, bytes):
            return message.decode("utf-8", errors="replace")
        return message

    async def close(self) -> None:
        try:
            await self._ws.close()
        except (ConnectionClosed, OSError) as e:
            logger.debug("transport_close_error", url=self.url, error=str(e))


class WebsocketsTransport:
    """Opens connections with the ``websockets`` client.

    Protocol-level pings are disabled; the session runs OKX's text
    ``ping``/``pong`` heartbeat itself.
    """

    def __init__(self, open_timeout: float = 10.0, close_timeout: float = 5.0):
        self.open_timeout = open_timeout
        self.close_timeout = close_timeout

    async def connect(self, url: str) -> WebsocketsConnection:
        try:
            ws = await websockets.connect(
                url,
                open_timeout=self.open_timeout,
                close_timeout=self.close_timeout,
                ping_interval=None,
                max_size=None,
            )
        except (OSError, asyncio.TimeoutError, InvalidHandshake, InvalidURI) as e:
            raise TransportError(f"Failed to connect: {type(e).__name__}: {e}", url=url) from e
        return WebsocketsConnection(ws, url)


def build_url_pool(primary: str, fallbacks: Optional[Iterable[str]] = None) -> list[str]:
    """
    Build the ordered list of endpoint URLs a session cycles through.

    Port 8443 is blocked on some networks, so a ``wss://host:8443/...`` URL
    is followed by the same URL on the default port. Configured fallbacks
    come last. Duplicates and URLs without a host are skipped.

    Args:
        primary: Configured endpoint URL
        fallbacks: Additional full URLs to try

    Returns:
        Non-empty list of URLs, primary first
    """
    urls: list[str] = []

    def push(candidate: str) -> None:
        candidate = candidate.strip()
        if not candidate or not urlsplit(candidate).hostname:
            return
        if candidate not in urls:
            urls.append(candidate)

    push(primary)
    parts = urlsplit(primary)
    if parts.scheme == "wss" and parts.port == 8443 and parts.hostname:
        push(urlunsplit((parts.scheme, parts.hostname, parts.path, parts.query, parts.fragment)))

    for url in fallbacks or ():
        push(url)

    if not urls:
        urls.append(primary)
    return urls
