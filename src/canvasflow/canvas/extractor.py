"""Graph extractor: maintains the dependency map of a canvas.

Consumes the canvas record set as an initial batch followed by
incremental ``added`` / ``removed`` / ``updated`` batches and keeps a
``DependencyState``: node id -> ordered, duplicate-free tuple of the node
ids it depends on.

State transitions go through a pure reducer over two actions,
``AddDependency`` and ``RemoveNode`` (plus ``RemoveDependency`` for a
deleted edge), so every batch produces a new state object and the
previous one is never mutated.

Within a batch, removals (and the "before" half of updates) are applied
before additions (and the "after" half), so a record that moved never
transiently double-counts.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from canvasflow.canvas import records as rec
from canvasflow.canvas.differ import RecordBatch

if TYPE_CHECKING:
    from canvasflow._types import DependencyState, Record
    from canvasflow.observability.collector import FlowCollector


# ---------------------------------------------------------------------------
# Reducer
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class AddDependency:
    """``id`` consumes the value of ``dependency``."""

    id: str
    dependency: str


@dataclass(frozen=True, slots=True)
class RemoveDependency:
    id: str
    dependency: str


@dataclass(frozen=True, slots=True)
class RemoveNode:
    """Drop ``id``'s own entry and every reference to it."""

    id: str


type Action = AddDependency | RemoveDependency | RemoveNode


def reduce_dependencies(state: DependencyState, action: Action) -> DependencyState:
    """Apply one action, returning a new state.

    A key only exists while its node has at least one dependency, so
    entries emptied by a removal are dropped.
    """
    match action:
        case AddDependency(id=node_id, dependency=dependency):
            current = state.get(node_id, ())
            if dependency in current:
                return state
            return {**state, node_id: (*current, dependency)}

        case RemoveDependency(id=node_id, dependency=dependency):
            current = state.get(node_id, ())
            if dependency not in current:
                return state
            remaining = tuple(d for d in current if d != dependency)
            if remaining:
                return {**state, node_id: remaining}
            return {k: v for k, v in state.items() if k != node_id}

        case RemoveNode(id=node_id):
            result = {}
            for key, dependencies in state.items():
                if key == node_id:
                    continue
                kept = tuple(d for d in dependencies if d != node_id)
                if kept:
                    result[key] = kept
            return result

    return state


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------


class GraphExtractor:
    """Dependency map of one canvas document, kept current by record batches.

    Besides the dependency state, the extractor remembers the live node ids
    and the bindings of every edge. An edge contributes a dependency only
    when both its ``start`` and ``end`` bindings exist and point at live
    nodes; partial edges are ignored, never raised.

    Remembering bindings lets a batch that touches only a node record (a
    code edit) or only an edge (an arrow deleted) re-derive exactly the
    dependencies that record participates in.

    Args:
        records: Initial full record set.
        on_change: Called with the new state whenever a batch changes it.
        collector: Optional observability collector.

    """

    def __init__(
        self,
        records: Iterable[Record] = (),
        *,
        on_change: Callable[[DependencyState], None] | None = None,
        collector: FlowCollector | None = None,
    ) -> None:
        self._state: DependencyState = {}
        self._on_change = on_change
        self._collector = collector
        self._nodes: set[str] = set()
        # edge id -> binding id -> binding record
        self._edges: dict[str, dict[str, Record]] = defaultdict(dict)
        self.apply(RecordBatch(added=tuple(records)))

    @property
    def dependencies(self) -> DependencyState:
        """Current dependency state (a copy; the extractor owns the original)."""
        return dict(self._state)

    def dependencies_of(self, node_id: str) -> tuple[str, ...]:
        return self._state.get(node_id, ())

    def dependents_of(self, node_id: str) -> tuple[str, ...]:
        """Node ids that consume ``node_id``, in state order."""
        return tuple(k for k, deps in self._state.items() if node_id in deps)

    def apply(self, batch: RecordBatch) -> bool:
        """Apply one change batch. Returns True if the dependency state changed."""
        before = self._state
        renewed: set[str] = set()
        reprocess: set[str] = set()
        consumers: set[str] = set()

        for record in (*batch.removed, *(old for old, _ in batch.updated)):
            if not rec.is_document_record(record):
                continue
            self._remove_record(record, reprocess, consumers)

        for record in (*(new for _, new in batch.updated), *batch.added):
            if not rec.is_document_record(record):
                continue
            self._add_record(record, renewed, reprocess)

        resolved = list(self._resolved_edges())
        touched = set(consumers)
        for edge, (consumer, dependency) in resolved:
            if edge in reprocess or consumer in renewed or dependency in renewed:
                touched.add(consumer)
        for consumer in touched:
            self._rebuild(consumer, [d for _, (c, d) in resolved if c == consumer])

        changed = self._state != before
        if changed:
            if self._collector is not None:
                self._collector.record_extract(
                    nodes=len(self._state),
                    dependencies=sum(len(d) for d in self._state.values()),
                )
            if self._on_change is not None:
                self._on_change(self.dependencies)
        return changed

    def _dispatch(self, action: Action) -> None:
        self._state = reduce_dependencies(self._state, action)

    def _rebuild(self, consumer: str, wanted: list[str]) -> None:
        """Re-derive one consumer's entry from its live edges, in edge order."""
        target = tuple(dict.fromkeys(wanted))
        current = self._state.get(consumer, ())
        if current == target:
            return
        for dependency in current:
            self._dispatch(RemoveDependency(id=consumer, dependency=dependency))
        for dependency in target:
            self._dispatch(AddDependency(id=consumer, dependency=dependency))

    def _remove_record(self, record: Record, reprocess: set[str], consumers: set[str]) -> None:
        rid = rec.record_id(record)
        if rec.is_binding(record):
            edge = rec.edge_id(record)
            if edge is not None:
                resolved = self._resolve(edge)
                if resolved is not None:
                    consumer, dependency = resolved
                    self._dispatch(RemoveDependency(id=consumer, dependency=dependency))
                    consumers.add(consumer)
                members = self._edges.get(edge)
                if members is not None:
                    members.pop(rid, None)
                    if not members:
                        del self._edges[edge]
                reprocess.add(edge)
        else:
            self._nodes.discard(rid)
        self._dispatch(RemoveNode(id=rid))

    def _add_record(self, record: Record, renewed: set[str], reprocess: set[str]) -> None:
        rid = rec.record_id(record)
        if rec.is_binding(record):
            edge = rec.edge_id(record)
            if edge is not None:
                self._edges[edge][rid] = record
                reprocess.add(edge)
        else:
            self._nodes.add(rid)
            renewed.add(rid)

    def _resolve(self, edge: str) -> tuple[str, str] | None:
        """(consumer, dependency) for a complete edge, else None."""
        by_terminal: dict[str, str | None] = {}
        for binding in self._edges.get(edge, {}).values():
            term = rec.terminal(binding)
            if term is not None:
                by_terminal[term] = rec.target(binding)
        end = by_terminal.get("end")
        start = by_terminal.get("start")
        if not end or not start:
            return None
        if end not in self._nodes or start not in self._nodes:
            return None
        return end, start

    def _resolved_edges(self) -> Iterable[tuple[str, tuple[str, str]]]:
        for edge in list(self._edges):
            resolved = self._resolve(edge)
            if resolved is not None:
                yield edge, resolved


# ---------------------------------------------------------------------------
# Cycle detection
# ---------------------------------------------------------------------------

_WHITE, _GREY, _BLACK = 0, 1, 2


def find_cycle(dependencies: Mapping[str, Sequence[str]]) -> tuple[str, ...] | None:
    """Find one dependency cycle by three-colour DFS.

    Returns the cycle as a path whose first id is repeated at the end
    (``("a", "b", "a")``), or None when the graph is acyclic.
    """
    color: dict[str, int] = {}
    for root in dependencies:
        if color.get(root, _WHITE) != _WHITE:
            continue
        path: list[str] = [root]
        stack: list[Iterable[str]] = [iter(dependencies.get(root, ()))]
        color[root] = _GREY
        while stack:
            advanced = False
            for child in stack[-1]:
                state = color.get(child, _WHITE)
                if state == _GREY:
                    start = path.index(child)
                    return (*path[start:], child)
                if state == _WHITE:
                    color[child] = _GREY
                    path.append(child)
                    stack.append(iter(dependencies.get(child, ())))
                    advanced = True
                    break
            if not advanced:
                color[path.pop()] = _BLACK
                stack.pop()
    return None
