"""Unified event model for the dataflow pipeline.

Defines event types for graph extraction, compilation, and the cell
lifecycle inside the runtime.

All events are frozen dataclasses with:
- ``timestamp_ns``: Monotonic nanosecond timestamp
- Descriptive fields for the specific event type

Thread Safety:
    All events are frozen (immutable) and safe to share across threads.

"""

import time
from dataclasses import dataclass
from typing import Literal


# ---------------------------------------------------------------------------
# Canvas and compiler events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class GraphExtracted:
    """A record batch changed the dependency state.

    Attributes:
        nodes: Number of nodes that have at least one dependency.
        dependencies: Total number of dependency edges.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    nodes: int
    dependencies: int
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class CanvasCompiled:
    """A canvas snapshot was compiled into runtime definitions.

    Attributes:
        nodes: Number of compiled code nodes.
        duration_ms: Time spent compiling in milliseconds.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    nodes: int
    duration_ms: float
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Runtime events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class CellDefined:
    """A cell was (re)defined from a compiled node.

    Attributes:
        cell_id: Code name of the cell.
        digest: Compiled code hash of the installed definition.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    cell_id: str
    digest: str
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class CellSkipped:
    """An update carried an unchanged definition and was ignored."""

    cell_id: str
    digest: str
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class CellDisposed:
    """A cell was torn down.

    Attributes:
        cell_id: Code name of the cell.
        reason: ``"redefined"`` when replaced, ``"removed"`` when deleted,
            ``"closed"`` on runtime shutdown.
        timestamp_ns: Monotonic nanosecond timestamp.

    """

    cell_id: str
    reason: Literal["redefined", "removed", "closed"]
    timestamp_ns: int


@dataclass(frozen=True, slots=True)
class CellStateChanged:
    """A cell reported a new lifecycle state."""

    cell_id: str
    state: Literal["pending", "fulfilled", "rejected"]
    timestamp_ns: int


# ---------------------------------------------------------------------------
# Union type
# ---------------------------------------------------------------------------

type FlowEvent = (
    GraphExtracted
    | CanvasCompiled
    | CellDefined
    | CellSkipped
    | CellDisposed
    | CellStateChanged
)


def now_ns() -> int:
    """Return the current monotonic clock value in nanoseconds."""
    return time.monotonic_ns()
