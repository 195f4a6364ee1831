"""Desired-subscription registry.

The registry records what the caller *wants* to be subscribed to, whether or
not a connection currently exists. The session rebuilds the wire state from
``snapshot()`` every time it becomes READY.
"""

import threading
from typing import Iterator

from .models import ChannelSubscription


class SubscriptionRegistry:
    """Thread-safe set of ChannelSubscription."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: set[ChannelSubscription] = set()

    def add(self, sub: ChannelSubscription) -> bool:
        """Add ``sub``; returns False if it was already present."""
        with self._lock:
            if sub in self._subscriptions:
                return False
            self._subscriptions.add(sub)
            return True

    def remove(self, sub: ChannelSubscription) -> bool:
        """Remove ``sub``; returns False if it was not present."""
        with self._lock:
            if sub not in self._subscriptions:
                return False
            self._subscriptions.discard(sub)
            return True

    def snapshot(self) -> list[ChannelSubscription]:
        """Stable, sorted copy of the current subscriptions."""
        with self._lock:
            return sorted(self._subscriptions, key=lambda s: s.key)

    def clear(self) -> None:
        with self._lock:
            self._subscriptions.clear()

    def __contains__(self, sub: object) -> bool:
        with self._lock:
            return sub in self._subscriptions

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    def __iter__(self) -> Iterator[ChannelSubscription]:
        return iter(self.snapshot())
