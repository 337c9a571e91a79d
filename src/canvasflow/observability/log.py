"""Event log: bounded, thread-safe store of pipeline events.

Keeps the most recent ``FlowEvent`` objects in a ring buffer. Besides
filtered queries it answers the question the CLI's ``--trace`` output
asks: which states did each cell pass through, in order.

Thread Safety:
    All methods are protected by a ``threading.Lock``.  The watcher
    thread and the event loop may both append.

"""

import threading
from collections import deque

from canvasflow.observability.events import CellStateChanged, FlowEvent


class EventLog:
    """Bounded event store with query support.

    When the buffer is full, the oldest events are discarded, so a
    cell's timeline only covers the events still retained.

    Args:
        max_events: Maximum number of events to retain.

    """

    __slots__ = ("_events", "_lock")

    def __init__(self, max_events: int = 10_000) -> None:
        self._events: deque[FlowEvent] = deque(maxlen=max_events)
        self._lock = threading.Lock()

    def append(self, event: FlowEvent) -> None:
        """Record an event in the log."""
        with self._lock:
            self._events.append(event)

    def query(
        self,
        *,
        event_type: type | None = None,
        since_ns: int = 0,
        cell_id: str | None = None,
        limit: int = 100,
    ) -> list[FlowEvent]:
        """Query events with optional filters.

        Args:
            event_type: Only return events of this type.
            since_ns: Only return events after this timestamp (nanoseconds).
            cell_id: Only return cell events for this exact cell.
            limit: Maximum number of events to return.

        Returns:
            List of matching events, most recent first.

        """
        with self._lock:
            results: list[FlowEvent] = []
            for event in reversed(self._events):
                if len(results) >= limit:
                    break

                if event_type is not None and not isinstance(event, event_type):
                    continue

                if since_ns and event.timestamp_ns < since_ns:
                    continue

                if cell_id is not None and getattr(event, "cell_id", None) != cell_id:
                    continue

                results.append(event)

            return results

    def timelines(self) -> dict[str, list[str]]:
        """Every cell's state timeline, keyed in first-seen order."""
        result: dict[str, list[str]] = {}
        with self._lock:
            for event in self._events:
                if isinstance(event, CellStateChanged):
                    result.setdefault(event.cell_id, []).append(event.state)
        return result

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
