"""
Streaming session state machine.

One session owns one physical connection and a single reader task. The
reader drives every state change:

    DISCONNECTED -> CONNECTING -> CONNECTED -> [AUTHENTICATING] -> READY
    READY -> RECONNECTING -> CONNECTING -> ...
    AUTHENTICATING -> RECONNECTING -> CLOSED      (login rejected for good)
    any -> CLOSED

The subscription registry holds the caller's intent; entering READY is the
only place where that intent is written to the wire, so every registry entry
is subscribed exactly once per connection.
"""

import asyncio
import json
import random
import uuid
from typing import Any, Optional, Sequence

from ..auth.credentials import Credentials
from ..auth.signer import sign_login
from ..config.defaults import StreamParams
from ..errors import (
    AuthError,
    ConfigurationError,
    ReconnectExhaustedError,
    SessionClosedError,
    TransportError,
)
from ..logging.config import get_session_logger, log_dropped_frame, log_state_transition
from ..utils.time import generate_epoch_timestamp
from .models import ChannelSubscription, InboundMessage, SessionState
from .registry import SubscriptionRegistry
from .router import MessageRouter
from .transitions import validate_transition
from .transport import Connection, Transport, WebsocketsTransport, build_url_pool

state_logger = get_session_logger(__name__)

PING_FRAME = "ping"
PONG_FRAME = "pong"
SUBSCRIBE_BATCH_SIZE = 50


def backoff_delay(attempt: int, params: StreamParams,
                  rng: Optional[random.Random] = None) -> float:
    """
    Delay before reconnect attempt number ``attempt`` (1-based).

    Exponential in the attempt number, capped at ``backoff_max_s``, then
    reduced by a random fraction of up to ``backoff_jitter``.
    """
    exponent = min(max(attempt - 1, 0), 64)
    delay = min(params.backoff_max_s, params.backoff_initial_s * params.backoff_factor ** exponent)
    if params.backoff_jitter:
        delay *= 1.0 - params.backoff_jitter * (rng or random).random()
    return delay


class StreamingSession:
    """A self-healing WebSocket session bound to one OKX endpoint."""

    def __init__(
        self,
        url: str,
        credentials: Optional[Credentials] = None,
        *,
        params: Optional[StreamParams] = None,
        registry: Optional[SubscriptionRegistry] = None,
        router: Optional[MessageRouter] = None,
        transport: Optional[Transport] = None,
        requires_auth: Optional[bool] = None,
        session_id: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ):
        self.params = params or StreamParams()
        self.urls = build_url_pool(url, self.params.fallback_urls)
        self.credentials = credentials
        self.requires_auth = credentials is not None if requires_auth is None else requires_auth
        if self.requires_auth and credentials is None:
            raise ConfigurationError("An authenticated session requires credentials")

        self.registry = registry if registry is not None else SubscriptionRegistry()
        self.router = router if router is not None else MessageRouter(self.params.queue_maxsize)
        for sub in self.registry.snapshot():
            self.router.register(sub)

        self.transport = transport or WebsocketsTransport(open_timeout=self.params.open_timeout_s)
        self.session_id = session_id or uuid.uuid4().hex[:8]
        self.logger = state_logger.bind(session_id=self.session_id)
        self._rng = rng or random.Random()

        self._state = SessionState.DISCONNECTED
        self._conn: Optional[Connection] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._connect_lock = asyncio.Lock()
        self._wire_lock = asyncio.Lock()
        self._ready_event = asyncio.Event()
        self._closed_event = asyncio.Event()
        self._active: set[ChannelSubscription] = set()
        self._error: Optional[BaseException] = None
        self._url_index = 0
        self._attempt = 0
        self._auth_failures = 0
        self.reconnect_count = 0

    # -- constructors -----------------------------------------------------

    @classmethod
    def public(cls, params: Optional[StreamParams] = None, **kwargs: Any) -> "StreamingSession":
        params = params or StreamParams()
        return cls(params.public_url, params=params, requires_auth=False, **kwargs)

    @classmethod
    def private(cls, credentials: Credentials, params: Optional[StreamParams] = None,
                **kwargs: Any) -> "StreamingSession":
        params = params or StreamParams()
        return cls(params.private_url, credentials, params=params, requires_auth=True, **kwargs)

    @classmethod
    def business(cls, credentials: Optional[Credentials] = None,
                 params: Optional[StreamParams] = None, **kwargs: Any) -> "StreamingSession":
        params = params or StreamParams()
        return cls(params.business_url, credentials, params=params, **kwargs)

    # -- introspection ----------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def url(self) -> str:
        return self.urls[self._url_index]

    @property
    def error(self) -> Optional[BaseException]:
        """Fatal error that closed the session, if any."""
        return self._error

    @property
    def active_subscriptions(self) -> frozenset[ChannelSubscription]:
        """Subscriptions sent on the current connection."""
        return frozenset(self._active)

    @property
    def is_ready(self) -> bool:
        return self._state is SessionState.READY

    def _transition(self, target: SessionState, trigger: str, **context: Any) -> None:
        validate_transition(self._state, target)
        log_state_transition(
            self.logger,
            session_id=self.session_id,
            from_state=self._state.value,
            to_state=target.value,
            trigger=trigger,
            context=context or None,
        )
        if self._state is SessionState.READY:
            self._ready_event.clear()
        self._state = target

    # -- public API -------------------------------------------------------

    async def __aenter__(self) -> "StreamingSession":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def connect(self) -> None:
        """
        Open the connection and wait until the session is READY.

        Raises:
            TransportError: If the very first connection attempt fails; the
                session returns to DISCONNECTED and is not retried
            AuthError: If the exchange permanently rejects the credentials
            ReconnectExhaustedError: If the retry budget runs out first
            SessionClosedError: If the session is, or becomes, closed
        """
        async with self._connect_lock:
            if self._state is SessionState.CLOSED:
                raise SessionClosedError("Session is closed")
            if self._reader_task is None:
                self._transition(SessionState.CONNECTING, "connect", url=self.url)
                try:
                    conn = await self._open()
                except TransportError as e:
                    if self._state is SessionState.CLOSED:
                        raise SessionClosedError("Session closed while connecting") from e
                    self._transition(SessionState.DISCONNECTED, "connect_failed", url=self.url)
                    raise
                self._reader_task = asyncio.create_task(
                    self._run(conn), name=f"okx-session-{self.session_id}"
                )
        await self._wait_ready()

    async def subscribe(self, sub: ChannelSubscription) -> bool:
        """
        Record ``sub`` as desired and, if READY, subscribe on the wire.

        Returns:
            True if the subscription was newly added to the registry
        """
        if self._state is SessionState.CLOSED:
            raise SessionClosedError("Session is closed")
        if sub.requires_auth and not self.requires_auth:
            raise ValueError(f"Channel {sub.channel_type} requires an authenticated session")

        async with self._wire_lock:
            added = self.registry.add(sub)
            self.router.register(sub)
            if self._state is SessionState.READY and sub not in self._active:
                await self._send_subscriptions("subscribe", [sub])
        return added

    async def unsubscribe(self, sub: ChannelSubscription) -> bool:
        """
        Remove ``sub`` from the registry and, if it is live, unsubscribe on the wire.

        Returns:
            True if the subscription was present
        """
        async with self._wire_lock:
            removed = self.registry.remove(sub)
            if self._state is SessionState.READY and sub in self._active:
                await self._send_subscriptions("unsubscribe", [sub])
            self._active.discard(sub)
            self.router.unregister(sub)
        return removed

    async def receive(self, sub: ChannelSubscription,
                      timeout: Optional[float] = None) -> InboundMessage:
        """Next message for ``sub``; raises SessionClosedError once the session closes."""
        return await self.router.receive(sub, timeout)

    async def close(self) -> None:
        """Drive the session to CLOSED from any state. Idempotent."""
        await self._shutdown(None, "close")

    async def wait_closed(self) -> None:
        """Wait until the session is CLOSED and re-raise the fatal error, if any."""
        await self._closed_event.wait()
        if self._error is not None:
            raise self._error

    # -- reader task ------------------------------------------------------

    async def _wait_ready(self) -> None:
        ready = asyncio.ensure_future(self._ready_event.wait())
        closed = asyncio.ensure_future(self._closed_event.wait())
        try:
            await asyncio.wait({ready, closed}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            ready.cancel()
            closed.cancel()

        if self._closed_event.is_set():
            if self._error is not None:
                raise self._error
            raise SessionClosedError("Session closed before becoming ready")

    async def _open(self) -> Connection:
        url = self.url
        conn = await self.transport.connect(url)
        if self._state is SessionState.CLOSED:
            await conn.close()
            raise SessionClosedError("Session closed while connecting")
        self._transition(SessionState.CONNECTED, "transport_open", url=url)
        return conn

    async def _run(self, conn: Connection) -> None:
        try:
            while True:
                failure = await self._serve(conn)

                fatal = self._fatal_error(failure)
                if fatal is not None:
                    # A rejected login is held in RECONNECTING before the close.
                    self._transition(SessionState.RECONNECTING, "auth_rejected")
                    await self._shutdown(fatal, "fatal_error")
                    return

                self.logger.warning("connection_lost", error=str(failure),
                                    error_type=type(failure).__name__)
                self._transition(SessionState.RECONNECTING, type(failure).__name__)
                reopened = await self._reconnect()
                if reopened is None:
                    return
                conn = reopened
        except Exception as e:
            self.logger.exception("reader_crashed")
            await self._shutdown(e, "reader_crashed")

    async def _serve(self, conn: Connection) -> BaseException:
        """Authenticate, enter READY and read until the connection fails."""
        self._conn = conn
        try:
            if self.requires_auth:
                self._transition(SessionState.AUTHENTICATING, "private_endpoint")
                await self._login(conn)
                self._auth_failures = 0
            await self._enter_ready()
            self._attempt = 0
            await self._read_loop(conn)
        except (TransportError, AuthError) as e:
            return e
        finally:
            self._conn = None
            self._active.clear()
            await conn.close()
        return TransportError("Read loop ended", url=self.url)

    def _fatal_error(self, failure: BaseException) -> Optional[BaseException]:
        if not isinstance(failure, AuthError):
            return None
        self._auth_failures += 1
        if failure.permanent:
            return failure
        if self._auth_failures >= self.params.max_auth_failures:
            return AuthError(
                f"Login failed {self._auth_failures} times in a row: {failure}",
                code=failure.code,
                permanent=True,
            )
        return None

    async def _reconnect(self) -> Optional[Connection]:
        """Back off and reopen the transport; None if the session was closed."""
        while True:
            self._attempt += 1
            limit = self.params.max_reconnect_attempts
            if limit is not None and self._attempt > limit:
                await self._shutdown(
                    ReconnectExhaustedError(
                        f"Gave up after {limit} reconnect attempts", attempts=limit
                    ),
                    "reconnect_exhausted",
                )
                return None

            delay = backoff_delay(self._attempt, self.params, self._rng)
            self.logger.info("reconnect_backoff", attempt=self._attempt, delay_s=round(delay, 3))
            await asyncio.sleep(delay)

            self._url_index = (self._url_index + 1) % len(self.urls)
            self._transition(SessionState.CONNECTING, "backoff_elapsed",
                             attempt=self._attempt, url=self.url)
            try:
                conn = await self._open()
            except TransportError as e:
                self.logger.warning("reconnect_failed", attempt=self._attempt, error=str(e))
                self._transition(SessionState.RECONNECTING, "connect_failed")
                continue
            self.reconnect_count += 1
            return conn

    async def _login(self, conn: Connection) -> None:
        timestamp = generate_epoch_timestamp()
        frame = {
            "op": "login",
            "args": [{
                "apiKey": self.credentials.api_key,
                "passphrase": self.credentials.passphrase,
                "timestamp": timestamp,
                "sign": sign_login(self.credentials.api_secret, timestamp),
            }],
        }
        await conn.send(json.dumps(frame))
        self.logger.info("login_sent", timestamp=timestamp)

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.params.login_timeout_s
        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise AuthError("Login timed out", permanent=False)
            try:
                raw = await asyncio.wait_for(conn.recv(), remaining)
            except asyncio.TimeoutError:
                raise AuthError("Login timed out", permanent=False) from None

            try:
                reply = json.loads(raw)
            except ValueError:
                continue
            if not isinstance(reply, dict):
                continue

            event = reply.get("event")
            if event == "login":
                code = str(reply.get("code", "0"))
                if code == "0":
                    self.logger.info("login_acknowledged")
                    return
                raise AuthError(f"Login rejected ({code}): {reply.get('msg', '')}", code=code)
            if event == "error":
                code = str(reply.get("code", ""))
                raise AuthError(f"Login error ({code}): {reply.get('msg', '')}", code=code)

    async def _enter_ready(self) -> None:
        async with self._wire_lock:
            trigger = "authenticated" if self.requires_auth else "connected"
            self._transition(SessionState.READY, trigger)
            self._active.clear()
            snapshot = self.registry.snapshot()
            if snapshot:
                await self._send_subscriptions("subscribe", snapshot)
            self.logger.info("resubscribed", count=len(snapshot))
        self._ready_event.set()

    async def _send_subscriptions(self, op: str, subs: Sequence[ChannelSubscription]) -> None:
        """Send ``op`` frames for ``subs`` and update the active set. Caller holds the lock."""
        conn = self._conn
        if conn is None:
            return
        for start in range(0, len(subs), SUBSCRIBE_BATCH_SIZE):
            batch = subs[start:start + SUBSCRIBE_BATCH_SIZE]
            frame = {"op": op, "args": [sub.to_arg() for sub in batch]}
            try:
                await conn.send(json.dumps(frame))
            except TransportError as e:
                # The reader notices the dead connection and resubscribes later.
                self.logger.warning("send_failed", op=op, error=str(e))
                return
            if op == "subscribe":
                self._active.update(batch)
            else:
                self._active.difference_update(batch)

    async def _read_loop(self, conn: Connection) -> None:
        waiting_pong = False
        decode_errors = 0

        while True:
            timeout = self.params.pong_timeout_s if waiting_pong else self.params.ping_interval_s
            try:
                raw = await asyncio.wait_for(conn.recv(), timeout)
            except asyncio.TimeoutError:
                if waiting_pong:
                    raise TransportError(
                        f"Heartbeat missed: no reply within {self.params.pong_timeout_s}s",
                        url=self.url,
                    ) from None
                await conn.send(PING_FRAME)
                waiting_pong = True
                continue

            waiting_pong = False
            if raw == PONG_FRAME:
                continue

            try:
                frame = json.loads(raw)
            except ValueError:
                decode_errors += 1
                log_dropped_frame(self.logger, "decode_error", raw,
                                  context={"consecutive": decode_errors})
                if decode_errors >= self.params.decode_error_threshold:
                    raise TransportError(
                        f"{decode_errors} consecutive undecodable frames", url=self.url
                    ) from None
                continue

            decode_errors = 0
            self._handle_frame(frame)

    def _handle_frame(self, frame: Any) -> None:
        event = frame.get("event") if isinstance(frame, dict) else None
        if event is None:
            self.router.route(frame)
        elif event == "error":
            self.logger.warning("server_error", code=frame.get("code"), msg=frame.get("msg"))
        elif event == "notice":
            raise TransportError(
                f"Server notice ({frame.get('code')}): {frame.get('msg', '')}", url=self.url
            )
        else:
            self.logger.debug("server_event", server_event=event, arg=frame.get("arg"))

    # -- shutdown ---------------------------------------------------------

    async def _shutdown(self, error: Optional[BaseException], trigger: str) -> None:
        if self._state is SessionState.CLOSED:
            return

        if error is not None:
            self._error = error
            self.logger.error("session_failed", error=str(error), error_type=type(error).__name__)
        self._transition(SessionState.CLOSED, trigger)

        task, self._reader_task = self._reader_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            await asyncio.wait({task})

        conn, self._conn = self._conn, None
        if conn is not None:
            await conn.close()

        self._active.clear()
        self.router.close(error)
        self._closed_event.set()
