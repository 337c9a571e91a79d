"""Harness: runs a canvas snapshot file as a live dataflow program.

Connects the canvas layer to the runtime through the change feed:

    snapshot file -> diff_records -> GraphExtractor -> Compiler
        -> FeedPublisher -> DataflowRuntime

The first load publishes the ``original`` message. Every later reload
diffs the new record set against the previous one, feeds the batch to
the live extractor, recompiles, and publishes a ``changed`` message that
carries only the nodes whose compiled digest moved.

A failed first load raises. A failed reload is reported to stderr and the
runtime keeps running the last good program.
"""

from __future__ import annotations

import asyncio
import sys
from typing import TYPE_CHECKING

from canvasflow._errors import CanvasflowError
from canvasflow.canvas.differ import diff_records
from canvasflow.canvas.extractor import GraphExtractor
from canvasflow.canvas.snapshot import load_snapshot
from canvasflow.canvas.watcher import CanvasWatcher
from canvasflow.compiler.compiler import Compiler
from canvasflow.compiler.feed import FeedPublisher
from canvasflow.observability.collector import FlowCollector
from canvasflow.observability.log import EventLog
from canvasflow.runtime.definition import SourceExecStrategy
from canvasflow.runtime.runtime import DataflowRuntime

if TYPE_CHECKING:
    from canvasflow.canvas.snapshot import CanvasSnapshot
    from canvasflow.compiler.compiler import CompiledCanvas
    from canvasflow.compiler.feed import FeedMessage
    from canvasflow.config import FlowConfig
    from canvasflow.runtime.runtime import OnChange


class Harness:
    """One canvas snapshot file driving one runtime.

    Must be used from a running event loop.

    Args:
        config: Process configuration (snapshot path, dialect, preloads).
        runtime: Runtime to drive (built from ``config`` by default).
        collector: Observability collector shared by every stage.
        on_change: Cell state callback, used when the runtime is built here.

    """

    def __init__(
        self,
        config: FlowConfig,
        *,
        runtime: DataflowRuntime | None = None,
        collector: FlowCollector | None = None,
        on_change: OnChange | None = None,
    ) -> None:
        self._config = config
        self._collector = collector or FlowCollector(EventLog(config.max_events))
        self._runtime = runtime or DataflowRuntime(
            strategy=SourceExecStrategy(config.preload_modules),
            on_change=on_change,
            collector=self._collector,
        )
        self._compiler = Compiler(
            languages=config.languages,
            shape_type=config.shape_type,
            collector=self._collector,
        )
        self._publisher = FeedPublisher()
        self._snapshot: CanvasSnapshot | None = None
        self._extractor: GraphExtractor | None = None
        self._consumer: asyncio.Task[None] | None = None

    @property
    def config(self) -> FlowConfig:
        return self._config

    @property
    def runtime(self) -> DataflowRuntime:
        return self._runtime

    @property
    def collector(self) -> FlowCollector:
        return self._collector

    @property
    def snapshot(self) -> CanvasSnapshot | None:
        """The snapshot the extractor currently reflects."""
        return self._snapshot

    @property
    def clock(self) -> int:
        return self._snapshot.clock if self._snapshot is not None else 0

    async def load(self) -> CompiledCanvas:
        """Read the snapshot, compile it, and run it.

        Raises:
            CanvasflowError: The snapshot cannot be read or compiled.

        """
        snapshot = load_snapshot(self._config.source_path)
        extractor = GraphExtractor(snapshot.records, collector=self._collector)
        canvas = self._compiler.compile(snapshot.records, extractor.dependencies)

        self._snapshot = snapshot
        self._extractor = extractor
        if self._consumer is None:
            self._consumer = asyncio.create_task(
                self._runtime.consume(self._publisher.messages()),
                name="canvasflow-feed",
            )
        self._publisher.publish(canvas)
        await self._delivered()
        return canvas

    async def reload(self) -> FeedMessage | None:
        """Apply the current snapshot file as a change.

        Returns the feed message that was sent, or None if nothing changed
        or the new snapshot failed to compile.
        """
        if self._snapshot is None or self._extractor is None:
            await self.load()
            return None

        try:
            snapshot = load_snapshot(self._config.source_path)
            batch = diff_records(self._snapshot.records, snapshot.records)
            self._snapshot = snapshot
            if batch.is_empty:
                return None
            self._extractor.apply(batch)
            canvas = self._compiler.compile(snapshot.records, self._extractor.dependencies)
        except CanvasflowError as exc:
            print(f"  Compile error: {exc}", file=sys.stderr)
            return None

        message = self._publisher.publish(canvas)
        if message is not None:
            await self._delivered()
        return message

    async def watch(self) -> None:
        """Reload on every change to the snapshot file until cancelled."""
        watcher = CanvasWatcher(self._config)
        watcher.start()
        try:
            async for event in watcher.changes():
                if event.kind == "deleted":
                    continue
                await self.reload()
        finally:
            watcher.stop()

    async def settled(self) -> None:
        await self._runtime.settled()

    async def aclose(self) -> None:
        """End the feed and dispose every cell."""
        self._publisher.close()
        if self._consumer is not None:
            await asyncio.gather(self._consumer, return_exceptions=True)
            self._consumer = None
        await self._runtime.aclose()

    async def _delivered(self) -> None:
        """Wait for the runtime to apply every published message.

        Re-raises the consumer's error if it died first.
        """
        assert self._consumer is not None
        drained = asyncio.ensure_future(self._publisher.drained())
        done, _ = await asyncio.wait(
            {drained, self._consumer},
            return_when=asyncio.FIRST_COMPLETED,
        )
        if drained not in done:
            drained.cancel()
            self._consumer.result()
