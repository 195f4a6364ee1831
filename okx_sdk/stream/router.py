"""Inbound frame demultiplexer.

Data frames look like ``{"arg": {"channel": ..., "instId": ...}, "data": [...]}``.
Each is matched to the most specific registered subscription and appended to
that subscription's queue. Frames that cannot be decoded or matched are
dropped with a diagnostic event; they never raise into the reader task.
"""

import asyncio
import json
from enum import Enum
from typing import Any, Optional, Union

from ..errors import SessionClosedError
from ..logging.config import get_logger, log_dropped_frame
from ..utils.time import utc_now
from .models import ChannelSubscription, InboundMessage

logger = get_logger(__name__)


class RouteOutcome(str, Enum):
    """Result of routing one inbound frame."""
    DELIVERED = "delivered"
    UNROUTABLE = "unroutable"
    DECODE_ERROR = "decode_error"


class _Closed:
    """Queue sentinel that wakes receivers once a queue is shut."""

    def __init__(self, reason: str, error: Optional[BaseException] = None):
        self.reason = reason
        self.error = error


class MessageRouter:
    """Routes decoded frames to per-subscription asyncio queues."""

    def __init__(self, queue_maxsize: int = 0):
        self.queue_maxsize = queue_maxsize
        self._queues: dict[ChannelSubscription, asyncio.Queue] = {}
        self._closed: Optional[_Closed] = None
        self.dropped = 0
        self.delivered = 0

    @property
    def closed(self) -> bool:
        return self._closed is not None

    def register(self, sub: ChannelSubscription) -> None:
        """Create a delivery queue for ``sub`` if it does not have one."""
        if sub not in self._queues:
            self._queues[sub] = asyncio.Queue(maxsize=self.queue_maxsize)

    def unregister(self, sub: ChannelSubscription) -> None:
        """Drop the queue for ``sub`` and wake anyone waiting on it."""
        queue = self._queues.pop(sub, None)
        if queue is not None:
            self._force_put(queue, _Closed(f"unsubscribed from {sub}"))

    def is_registered(self, sub: ChannelSubscription) -> bool:
        return sub in self._queues

    def route(self, frame: Union[str, bytes, dict]) -> RouteOutcome:
        """Decode ``frame`` if needed and deliver it to its subscription queue."""
        if isinstance(frame, (str, bytes)):
            try:
                frame = json.loads(frame)
            except ValueError:
                self.dropped += 1
                log_dropped_frame(logger, "decode_error", frame)
                return RouteOutcome.DECODE_ERROR

        arg = frame.get("arg") if isinstance(frame, dict) else None
        if not isinstance(arg, dict) or "data" not in frame:
            self.dropped += 1
            log_dropped_frame(logger, "unroutable", frame)
            return RouteOutcome.UNROUTABLE

        sub = self._match(arg)
        if sub is None:
            self.dropped += 1
            log_dropped_frame(logger, "unroutable", frame,
                              context={"channel": arg.get("channel"), "instId": arg.get("instId")})
            return RouteOutcome.UNROUTABLE

        message = InboundMessage(
            channel_type=arg["channel"],
            instrument_id=arg.get("instId"),
            payload=frame["data"],
            received_at=utc_now(),
            action=frame.get("action"),
            arg=arg,
        )
        queue = self._queues[sub]
        if queue.full():
            queue.get_nowait()
            self.dropped += 1
            log_dropped_frame(logger, "overflow", str(sub))
        queue.put_nowait(message)
        self.delivered += 1
        return RouteOutcome.DELIVERED

    def _match(self, arg: dict[str, Any]) -> Optional[ChannelSubscription]:
        candidates = [sub for sub in self._queues if sub.matches(arg)]
        if not candidates:
            return None
        return max(candidates, key=lambda s: s.specificity)

    async def receive(self, sub: ChannelSubscription,
                      timeout: Optional[float] = None) -> InboundMessage:
        """
        Wait for the next message on ``sub``.

        Raises:
            SessionClosedError: If the router was closed or ``sub`` unsubscribed
            asyncio.TimeoutError: If ``timeout`` elapses first
            KeyError: If ``sub`` was never registered
        """
        queue = self._get_queue(sub)
        if timeout is None:
            item = await queue.get()
        else:
            item = await asyncio.wait_for(queue.get(), timeout)
        return self._unwrap(queue, item)

    def get_nowait(self, sub: ChannelSubscription) -> Optional[InboundMessage]:
        """Next queued message for ``sub`` or None if the queue is empty."""
        queue = self._get_queue(sub)
        try:
            item = queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        return self._unwrap(queue, item)

    def pending(self, sub: ChannelSubscription) -> int:
        queue = self._queues.get(sub)
        return queue.qsize() if queue is not None else 0

    def close(self, error: Optional[BaseException] = None) -> None:
        """Shut every queue; pending and future receives raise SessionClosedError."""
        if self._closed is not None:
            return
        self._closed = _Closed("session closed", error)
        for queue in self._queues.values():
            self._force_put(queue, self._closed)

    def _get_queue(self, sub: ChannelSubscription) -> asyncio.Queue:
        queue = self._queues.get(sub)
        if queue is None:
            if self._closed is not None:
                self._raise_closed(self._closed)
            raise KeyError(f"Not subscribed: {sub}")
        return queue

    def _unwrap(self, queue: asyncio.Queue, item: Any) -> InboundMessage:
        if isinstance(item, _Closed):
            # Leave the sentinel in place so later receivers also wake.
            self._force_put(queue, item)
            self._raise_closed(item)
        return item

    @staticmethod
    def _raise_closed(closed: _Closed) -> None:
        raise SessionClosedError(closed.reason) from closed.error

    @staticmethod
    def _force_put(queue: asyncio.Queue, item: Any) -> None:
        if queue.full():
            queue.get_nowait()
        queue.put_nowait(item)
