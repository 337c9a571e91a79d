"""Dataflow runtime: the live cell registry.

Installs compiled nodes as cells and keeps them computing:

    1. ``update_node`` compares the node's compiled digest with the
       installed cell's; an identical digest is a no-op, so recompiling
       unchanged source never disturbs a running (possibly endless) cell.
    2. A new or changed node disposes the old cell, installs a new one,
       and starts a propagation wave from it.
    3. A wave marks the cell and every transitive dependent ``pending``;
       each recomputes once all of its direct inputs have settled, so no
       cell ever reads an input left over from another wave.
    4. A streaming cell re-fulfills per item; each item after the first
       starts a new wave over its dependents only.

Failures stay inside the failing cell: its exception becomes its
``rejected`` state, and dependents reject with a ``DependencyError``.
All state changes go out through one channel: the broadcaster, plus an
optional ``on_change(id, value)`` callback.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import AsyncIterable, Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

from canvasflow._errors import CycleError, DependencyError, FeedError, UndefinedCellError
from canvasflow.compiler.feed import ChangedMessage, OriginalMessage, parse_message
from canvasflow.runtime.broadcaster import Broadcaster
from canvasflow.runtime.cell import Cell
from canvasflow.runtime.definition import (
    ExecutionStrategy,
    SourceExecStrategy,
    Stream,
    failed_definition,
)
from canvasflow.runtime.values import Fulfilled, Pending, Rejected, RuntimeValue, StateEvent

if TYPE_CHECKING:
    from canvasflow.compiler.feed import FeedMessage
    from canvasflow.compiler.hashing import CompiledNode
    from canvasflow.observability.collector import FlowCollector

type OnChange = Callable[[str, RuntimeValue], None]


class DataflowRuntime:
    """Owns the cells of one execution context.

    Must be driven from a running asyncio event loop: installing a cell
    starts its computation as a task.

    Args:
        strategy: Turns compiled nodes into cell definitions.
        on_change: Called with ``(id, value)`` on every state change.
        broadcaster: Inspector fan-out (a fresh one by default).
        collector: Optional observability collector.

    """

    def __init__(
        self,
        *,
        strategy: ExecutionStrategy | None = None,
        on_change: OnChange | None = None,
        broadcaster: Broadcaster | None = None,
        collector: FlowCollector | None = None,
    ) -> None:
        self._strategy = strategy or SourceExecStrategy()
        self._on_change = on_change
        self._broadcaster = broadcaster or Broadcaster()
        self._collector = collector
        self._cells: dict[str, Cell] = {}
        self._values: dict[str, RuntimeValue] = {}
        self._received_original = False
        self._retired: set[asyncio.Task[None]] = set()

    # ----- Inspection -----

    @property
    def broadcaster(self) -> Broadcaster:
        return self._broadcaster

    @property
    def values(self) -> dict[str, RuntimeValue]:
        """Latest state of every cell (snapshot)."""
        return dict(self._values)

    @property
    def cell_ids(self) -> tuple[str, ...]:
        return tuple(self._cells)

    def value_of(self, cell_id: str) -> RuntimeValue | None:
        return self._values.get(cell_id)

    def digest_of(self, cell_id: str) -> str | None:
        cell = self._cells.get(cell_id)
        return cell.digest if cell is not None else None

    def __contains__(self, cell_id: object) -> bool:
        return cell_id in self._cells

    def __len__(self) -> int:
        return len(self._cells)

    # ----- Installation -----

    def update_node(self, node: CompiledNode) -> bool:
        """Install or redefine one node. Returns False if it was a no-op."""
        cell = self._install(node)
        if cell is None:
            return False
        self._invalidate([cell])
        return True

    def load(self, nodes: Iterable[CompiledNode]) -> int:
        """Install a batch of nodes in one wave. Returns how many were (re)defined."""
        installed = [cell for cell in map(self._install, nodes) if cell is not None]
        self._invalidate(installed)
        return len(installed)

    def remove_node(self, cell_id: str) -> bool:
        """Dispose and forget a cell. Its dependents recompute (and reject)."""
        cell = self._cells.pop(cell_id, None)
        if cell is None:
            return False
        self._retire(cell, reason="removed")
        self._values.pop(cell_id, None)
        self._invalidate(self._dependents(cell_id))
        return True

    def apply_message(self, message: FeedMessage | Mapping[str, Any]) -> None:
        """Apply one change-feed message.

        Raises:
            FeedError: The message breaks the original-then-changed protocol.

        """
        if not isinstance(message, OriginalMessage | ChangedMessage):
            message = parse_message(message)
        if isinstance(message, OriginalMessage):
            if self._received_original:
                msg = "feed sent a second original message"
                raise FeedError(msg)
            self._received_original = True
            self.load(message.original)
            return
        if not self._received_original:
            msg = "feed sent a changed message before the original"
            raise FeedError(msg)
        keep = set(message.code_names)
        for cell_id in [c for c in self._cells if c not in keep]:
            self.remove_node(cell_id)
        self.load(message.changed)

    async def consume(self, feed: AsyncIterable[FeedMessage | Mapping[str, Any]]) -> None:
        """Apply feed messages until the feed ends."""
        async for message in feed:
            self.apply_message(message)

    async def settled(self) -> None:
        """Wait until every cell has a terminal value for its current wave."""
        while True:
            pending = [c for c in self._cells.values() if not c.settled]
            if not pending:
                return
            await pending[0].wait_settled()

    async def aclose(self) -> None:
        """Dispose every cell and wait for their computations to unwind."""
        for cell in list(self._cells.values()):
            self._retire(cell, reason="closed")
        self._cells.clear()
        if self._retired:
            await asyncio.gather(*self._retired, return_exceptions=True)
        self._broadcaster.close()

    def _install(self, node: CompiledNode) -> Cell | None:
        digest = node.compiled_code_hash()
        current = self._cells.get(node.id)
        if current is not None and current.digest == digest:
            if self._collector is not None:
                self._collector.record_skipped(node.id, digest)
            return None
        if current is not None:
            self._retire(current, reason="redefined")

        try:
            definition = self._strategy.load(node)
        except Exception as exc:
            definition = failed_definition(node, exc)

        cell = Cell(definition, digest)
        self._cells[node.id] = cell
        if self._collector is not None:
            self._collector.record_defined(node.id, digest)
        return cell

    def _retire(self, cell: Cell, *, reason: str) -> None:
        self._track(cell.dispose())
        if self._collector is not None:
            self._collector.record_disposed(cell.name, reason)

    def _track(self, task: asyncio.Task[None] | None) -> None:
        """Keep a cancelled computation reachable until it has unwound."""
        if task is not None and not task.done():
            self._retired.add(task)
            task.add_done_callback(self._retired.discard)

    # ----- Propagation -----

    def _dependents(self, cell_id: str) -> list[Cell]:
        return [c for c in self._cells.values() if cell_id in c.inputs]

    def _wave(self, roots: Iterable[Cell]) -> list[Cell]:
        """Roots plus every transitive dependent, breadth-first, no repeats."""
        order: list[Cell] = []
        seen: set[str] = set()
        queue = deque(roots)
        while queue:
            cell = queue.popleft()
            if cell.name in seen:
                continue
            seen.add(cell.name)
            order.append(cell)
            queue.extend(self._dependents(cell.name))
        return order

    def _invalidate(self, roots: Iterable[Cell]) -> None:
        wave = self._wave(roots)
        for cell in wave:
            self._track(cell.reset())
            self._emit(cell.name, Pending())
        for cell in wave:
            cell.start(self._compute(cell))

    def _cycle_through(self, cell_id: str) -> tuple[str, ...] | None:
        """Input path leading from ``cell_id`` back to itself, if any."""
        stack: list[tuple[str, tuple[str, ...]]] = [(cell_id, (cell_id,))]
        visited: set[str] = set()
        while stack:
            name, path = stack.pop()
            cell = self._cells.get(name)
            if cell is None:
                continue
            for dependency in cell.inputs:
                if dependency == cell_id:
                    return (*path, dependency)
                if dependency not in visited:
                    visited.add(dependency)
                    stack.append((dependency, (*path, dependency)))
        return None

    async def _compute(self, cell: Cell) -> None:
        cycle = self._cycle_through(cell.name)
        if cycle is not None:
            self._settle(cell, Rejected(CycleError(cycle)))
            return

        bindings: dict[str, Any] = {}
        for name in cell.inputs:
            source = self._cells.get(name)
            if source is None:
                self._settle(cell, Rejected(UndefinedCellError(name)))
                return
            await source.wait_settled()
            value = source.value
            if isinstance(value, Rejected):
                self._settle(cell, Rejected(DependencyError(cell.name, name)))
                return
            if not isinstance(value, Fulfilled):
                self._settle(cell, Rejected(UndefinedCellError(name)))
                return
            bindings[name] = value.value

        try:
            evaluation = cell.definition.evaluate(bindings)
        except Exception as exc:
            self._settle(cell, Rejected(exc))
            return

        if isinstance(evaluation, Stream):
            await self._run_stream(cell, evaluation)
            return

        try:
            result = await evaluation.awaitable
        except Exception as exc:
            self._settle(cell, Rejected(exc))
            return
        self._settle(cell, Fulfilled(result))

    async def _run_stream(self, cell: Cell, stream: Stream) -> None:
        iterator = stream.iterator
        produced = False
        try:
            while True:
                try:
                    item = await anext(iterator)
                except StopAsyncIteration:
                    break
                except Exception as exc:
                    self._settle(cell, Rejected(exc))
                    return
                produced = True
                self._settle(cell, Fulfilled(item))
            if not produced:
                self._settle(cell, Fulfilled(None))
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

    def _settle(self, cell: Cell, value: Fulfilled | Rejected) -> None:
        if cell.disposed:
            return
        resettled = cell.settled
        cell.settle(value)
        self._emit(cell.name, value)
        if resettled:
            self._invalidate(self._dependents(cell.name))

    def _emit(self, cell_id: str, value: RuntimeValue) -> None:
        self._values[cell_id] = value
        self._broadcaster.publish(StateEvent(id=cell_id, value=value))
        if self._collector is not None:
            self._collector.record_state(cell_id, value.state)
        if self._on_change is not None:
            self._on_change(cell_id, value)
