"""Snapshot watcher: triggers a reload when the canvas file changes.

The canvas snapshot is rewritten by whatever syncs the document to disk.
The watcher runs watchfiles in a background thread and bridges events to
an asyncio queue for consumption by the harness.
"""

from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from watchfiles import Change

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from canvasflow.config import FlowConfig


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    """A change to the snapshot file.

    Attributes:
        path: Absolute path to the changed file.
        kind: Type of filesystem change.

    """

    path: Path
    kind: Literal["created", "modified", "deleted"]


_CHANGE_KIND_MAP: dict[Change, Literal["created", "modified", "deleted"]] = {
    Change.added: "created",
    Change.modified: "modified",
    Change.deleted: "deleted",
}


def is_snapshot_change(path: Path, config: FlowConfig) -> bool:
    """Whether a changed path is the configured snapshot file."""
    return path.resolve() == config.source_path.resolve()


class CanvasWatcher:
    """Watches the snapshot file and yields ChangeEvent objects.

    Watches the snapshot's parent directory (editors and sync tools often
    replace files rather than write in place) and filters to the file.

    """

    def __init__(self, config: FlowConfig) -> None:
        self._config = config
        self._queue: asyncio.Queue[ChangeEvent] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        """Whether the watcher background thread is active."""
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start watching in a background thread. Must be called from the event loop."""
        if self.is_running:
            return

        self._loop = asyncio.get_running_loop()
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._watch_loop,
            name="canvasflow-watcher",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        """Signal the watcher to stop and wait for the thread to finish."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None

    async def changes(self) -> AsyncIterator[ChangeEvent]:
        """Async iterator that yields ChangeEvent objects as they occur."""
        while self.is_running or not self._queue.empty():
            try:
                event = await asyncio.wait_for(self._queue.get(), timeout=0.5)
                yield event
            except TimeoutError:
                if not self.is_running:
                    break

    def _watch_loop(self) -> None:
        """Background thread: run watchfiles and push events to the queue."""
        from watchfiles import watch

        watch_path = self._config.source_path.parent
        watch_path.mkdir(parents=True, exist_ok=True)

        for raw_changes in watch(
            watch_path,
            stop_event=self._stop_event,
            debounce=self._config.debounce_ms,
            step=100,
        ):
            for change_type, path_str in raw_changes:
                path = Path(path_str)
                if not is_snapshot_change(path, self._config):
                    continue
                event = ChangeEvent(path=path, kind=_CHANGE_KIND_MAP.get(change_type, "modified"))
                if self._loop is not None:
                    self._loop.call_soon_threadsafe(self._queue.put_nowait, event)
