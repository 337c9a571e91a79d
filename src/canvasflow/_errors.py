"""Canvasflow error hierarchy.

All canvasflow-specific errors inherit from CanvasflowError for easy catching.
"""

from __future__ import annotations


class CanvasflowError(Exception):
    """Base error for all canvasflow operations."""


class ConfigError(CanvasflowError):
    """Invalid or missing configuration."""


class GraphError(CanvasflowError):
    """Error reading canvas records or a snapshot file."""


class CompileError(CanvasflowError):
    """A node could not be transformed into a cell definition.

    Attributes:
        node_id: Code name of the node that failed.

    """

    def __init__(self, node_id: str, message: str) -> None:
        super().__init__(f"Failed to transform node {node_id}: {message}")
        self.node_id = node_id


class CrossReferenceError(CanvasflowError):
    """A code name could not be matched back to a canvas record."""


class CycleError(CanvasflowError):
    """The dependency graph contains a cycle.

    Attributes:
        cycle: The node ids on the cycle, first id repeated at the end.

    """

    def __init__(self, cycle: tuple[str, ...]) -> None:
        super().__init__(f"Circular dependency: {' -> '.join(cycle)}")
        self.cycle = cycle


class FeedError(CanvasflowError):
    """The compiled-node change feed broke its message protocol."""


class CellError(CanvasflowError):
    """Base error for failures reported through a cell's rejected state."""


class DependencyError(CellError):
    """An input of the cell is rejected."""

    def __init__(self, cell_id: str, dependency: str) -> None:
        super().__init__(f"{cell_id}: input {dependency!r} is rejected")
        self.cell_id = cell_id
        self.dependency = dependency


class UndefinedCellError(CellError):
    """An input of the cell names a cell that does not exist."""

    def __init__(self, name: str) -> None:
        super().__init__(f"{name} is not defined")
        self.name = name
