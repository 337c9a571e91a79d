"""Flow collector: one entry point for recording pipeline events.

The extractor, the compiler, and the runtime each take an optional
collector and call the matching ``record_*`` method; the collector
stamps the event and appends it to its ``EventLog``.

Thread Safety:
    The collector delegates to ``EventLog`` which is internally locked.

"""

from __future__ import annotations

from canvasflow.observability.events import (
    CanvasCompiled,
    CellDefined,
    CellDisposed,
    CellSkipped,
    CellStateChanged,
    GraphExtracted,
    now_ns,
)
from canvasflow.observability.log import EventLog


class FlowCollector:
    """Unified event collector for the dataflow pipeline.

    Args:
        log: The EventLog to store events in.

    """

    __slots__ = ("_log",)

    def __init__(self, log: EventLog | None = None) -> None:
        self._log = log if log is not None else EventLog()

    @property
    def log(self) -> EventLog:
        """The underlying event log."""
        return self._log

    # ----- Canvas and compiler events -----

    def record_extract(self, *, nodes: int = 0, dependencies: int = 0) -> None:
        self._log.append(
            GraphExtracted(nodes=nodes, dependencies=dependencies, timestamp_ns=now_ns())
        )

    def record_compile(self, *, nodes: int = 0, duration_ms: float = 0.0) -> None:
        """Record a finished compilation pass."""
        self._log.append(
            CanvasCompiled(nodes=nodes, duration_ms=duration_ms, timestamp_ns=now_ns())
        )

    # ----- Cell lifecycle events -----

    def record_defined(self, cell_id: str, digest: str) -> None:
        self._log.append(CellDefined(cell_id=cell_id, digest=digest, timestamp_ns=now_ns()))

    def record_skipped(self, cell_id: str, digest: str) -> None:
        self._log.append(CellSkipped(cell_id=cell_id, digest=digest, timestamp_ns=now_ns()))

    def record_disposed(self, cell_id: str, reason: str) -> None:
        """Record a cell teardown (``redefined``, ``removed`` or ``closed``)."""
        self._log.append(
            CellDisposed(
                cell_id=cell_id,
                reason=reason,  # type: ignore[arg-type]
                timestamp_ns=now_ns(),
            )
        )

    def record_state(self, cell_id: str, state: str) -> None:
        self._log.append(
            CellStateChanged(
                cell_id=cell_id,
                state=state,  # type: ignore[arg-type]
                timestamp_ns=now_ns(),
            )
        )
