"""Pipeline observability: one event model from canvas to cells.

Aggregates events from:
- **Extractor**: dependency state changes
- **Compiler**: compilation passes
- **Runtime**: cell definitions, disposals, and state transitions

All events are frozen dataclasses with nanosecond timestamps.

Quick Start:
    >>> from canvasflow.observability import FlowCollector, EventLog
    >>> log = EventLog()
    >>> collector = FlowCollector(log)
    >>> # Pass collector to GraphExtractor, Compiler and DataflowRuntime

"""

from canvasflow.observability.collector import FlowCollector
from canvasflow.observability.events import (
    CanvasCompiled,
    CellDefined,
    CellDisposed,
    CellSkipped,
    CellStateChanged,
    FlowEvent,
    GraphExtracted,
    now_ns,
)
from canvasflow.observability.log import EventLog

__all__ = [
    "CanvasCompiled",
    "CellDefined",
    "CellDisposed",
    "CellSkipped",
    "CellStateChanged",
    "EventLog",
    "FlowCollector",
    "FlowEvent",
    "GraphExtracted",
    "now_ns",
]
