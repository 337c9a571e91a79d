"""Inspector broadcaster: pushes cell state events to subscribers.

Each subscriber owns an unbounded queue. A streaming cell publishes as
fast as it produces; nothing bounds a slow subscriber's queue.
"""

from __future__ import annotations

import asyncio
import threading
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from canvasflow.runtime.values import StateEvent


@dataclass(frozen=True, slots=True)
class Subscription:
    """A connected inspector.

    Attributes:
        client_id: Unique identifier for this subscription.
        queue: Events waiting to be read by the subscriber.

    """

    client_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    queue: asyncio.Queue[Any] = field(default_factory=asyncio.Queue, compare=False, hash=False)


_CLOSED = object()


class Broadcaster:
    """Fans runtime state events out to every subscriber.

    Thread-safe: the subscriber set is protected by a lock.

    """

    def __init__(self) -> None:
        self._subscribers: set[Subscription] = set()
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, subscription: Subscription | None = None) -> Subscription:
        subscription = subscription or Subscription()
        with self._lock:
            self._subscribers.add(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscribers.discard(subscription)

    def get_subscribers(self) -> frozenset[Subscription]:
        """Snapshot of current subscribers (no lock held on return)."""
        with self._lock:
            return frozenset(self._subscribers)

    def publish(self, event: StateEvent) -> int:
        """Enqueue ``event`` for every subscriber. Returns the number notified."""
        count = 0
        for subscription in self.get_subscribers():
            subscription.queue.put_nowait(event)
            count += 1
        return count

    def close(self) -> None:
        """End every subscriber's ``events()`` stream."""
        for subscription in self.get_subscribers():
            subscription.queue.put_nowait(_CLOSED)

    async def events(self, subscription: Subscription | None = None) -> AsyncIterator[StateEvent]:
        """Async generator of state events for one subscriber.

        Subscribes on first iteration and unsubscribes when the consumer
        stops, is cancelled, or the broadcaster is closed.
        """
        subscription = self.subscribe(subscription)
        try:
            while True:
                event = await subscription.queue.get()
                if event is _CLOSED:
                    return
                yield event
        finally:
            self.unsubscribe(subscription)
