"""Runtime: reactive cells, propagation waves, and the inspector feed."""

from canvasflow.runtime.broadcaster import Broadcaster, Subscription
from canvasflow.runtime.cell import Cell
from canvasflow.runtime.definition import (
    CellDefinition,
    ExecutionStrategy,
    Once,
    SourceExecStrategy,
    Stream,
)
from canvasflow.runtime.runtime import DataflowRuntime
from canvasflow.runtime.values import Fulfilled, Pending, Rejected, RuntimeValue, StateEvent

__all__ = [
    "Broadcaster",
    "Cell",
    "CellDefinition",
    "DataflowRuntime",
    "ExecutionStrategy",
    "Fulfilled",
    "Once",
    "Pending",
    "Rejected",
    "RuntimeValue",
    "SourceExecStrategy",
    "Stream",
    "StateEvent",
    "Subscription",
]
