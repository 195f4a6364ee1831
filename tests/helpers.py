"""In-memory stand-ins for the WebSocket transport and aiohttp session."""

import asyncio
import json
from typing import Any, Optional, Union

from okx_sdk.errors import TransportError

LOGIN_OK = {"event": "login", "code": "0", "msg": ""}


class FakeConnection:
    """In-memory connection. Frames queued with ``feed`` come out of ``recv``."""

    def __init__(self, url: str, login_reply: Optional[dict] = None, auto_pong: bool = True):
        self.url = url
        self.login_reply = login_reply
        self.auto_pong = auto_pong
        self.sent: list[str] = []
        self.closed = False
        self._inbox: asyncio.Queue = asyncio.Queue()

    async def send(self, message: str) -> None:
        if self.closed:
            raise TransportError("Connection closed while sending", url=self.url)
        self.sent.append(message)
        if message == "ping":
            if self.auto_pong:
                self._inbox.put_nowait("pong")
            return
        frame = json.loads(message)
        if frame.get("op") == "login" and self.login_reply is not None:
            self._inbox.put_nowait(json.dumps(self.login_reply))

    async def recv(self) -> str:
        item = await self._inbox.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._inbox.put_nowait(TransportError("Connection closed", url=self.url))

    def feed(self, frame: Union[str, dict]) -> None:
        self._inbox.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def drop(self) -> None:
        """Simulate the remote end going away."""
        self._inbox.put_nowait(TransportError("Connection reset by peer", url=self.url))

    def sent_frames(self, op: Optional[str] = None) -> list[dict]:
        """Decoded JSON frames sent so far, optionally filtered by ``op``."""
        frames = [json.loads(m) for m in self.sent if m != "ping"]
        if op is None:
            return frames
        return [f for f in frames if f.get("op") == op]

    def subscribed_args(self) -> list[dict]:
        return [arg for f in self.sent_frames("subscribe") for arg in f["args"]]


class FakeTransport:
    """Hands out FakeConnection objects and can be told to fail."""

    def __init__(self, login_reply: Optional[dict] = LOGIN_OK, auto_pong: bool = True):
        self.login_reply = login_reply
        self.auto_pong = auto_pong
        self.connections: list[FakeConnection] = []
        self.urls: list[str] = []
        self.fail_next = 0
        self.fail_always = False

    async def connect(self, url: str) -> FakeConnection:
        self.urls.append(url)
        if self.fail_always or self.fail_next > 0:
            self.fail_next = max(0, self.fail_next - 1)
            raise TransportError("Connection refused", url=url)
        conn = FakeConnection(url, self.login_reply, self.auto_pong)
        self.connections.append(conn)
        return conn

    @property
    def current(self) -> FakeConnection:
        return self.connections[-1]


class FakeResponse:
    def __init__(self, status: int, text: str, text_error: Optional[BaseException] = None):
        self.status = status
        self._text = text
        self._text_error = text_error

    async def text(self) -> str:
        if self._text_error is not None:
            raise self._text_error
        return self._text

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        return None


class FakeHttpSession:
    """Stands in for aiohttp.ClientSession and records every request."""

    def __init__(self, status: int = 200, text: str = '{"code":"0","msg":"","data":[]}',
                 error: Optional[BaseException] = None,
                 text_error: Optional[BaseException] = None):
        self.status = status
        self.text = text
        self.error = error
        self.text_error = text_error
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def request(self, method: str, url: str, data: Optional[str] = None,
                headers: Optional[dict] = None) -> FakeResponse:
        self.calls.append({"method": method, "url": url, "data": data, "headers": headers or {}})
        if self.error is not None:
            raise self.error
        return FakeResponse(self.status, self.text, self.text_error)

    async def close(self) -> None:
        self.closed = True


async def wait_until(predicate, timeout: float = 2.0, interval: float = 0.005) -> None:
    """Poll ``predicate`` until it is true or fail the test."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met within timeout")
        await asyncio.sleep(interval)


def run(coro, timeout: float = 5.0):
    """Run ``coro`` on a fresh event loop with an overall timeout."""
    return asyncio.run(asyncio.wait_for(coro, timeout))


