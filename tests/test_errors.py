"""Tests for canvasflow._errors."""

import pytest

from canvasflow._errors import (
    CanvasflowError,
    CellError,
    CompileError,
    ConfigError,
    CrossReferenceError,
    CycleError,
    DependencyError,
    FeedError,
    GraphError,
    UndefinedCellError,
)


class TestErrorHierarchy:
    """All canvasflow errors inherit from CanvasflowError."""

    def test_base_is_exception(self) -> None:
        assert issubclass(CanvasflowError, Exception)

    @pytest.mark.parametrize(
        "error_cls",
        [ConfigError, GraphError, CompileError, CrossReferenceError, CycleError, FeedError, CellError],
    )
    def test_inherits_base(self, error_cls: type) -> None:
        assert issubclass(error_cls, CanvasflowError)

    def test_cell_errors(self) -> None:
        assert issubclass(DependencyError, CellError)
        assert issubclass(UndefinedCellError, CellError)


class TestErrorMessages:
    def test_compile_error_names_node(self) -> None:
        err = CompileError("age", "invalid syntax (line 1)")
        assert str(err) == "Failed to transform node age: invalid syntax (line 1)"
        assert err.node_id == "age"

    def test_cycle_error_path(self) -> None:
        err = CycleError(("a", "b", "a"))
        assert str(err) == "Circular dependency: a -> b -> a"
        assert err.cycle == ("a", "b", "a")

    def test_dependency_error(self) -> None:
        err = DependencyError("age", "birthdate")
        assert str(err) == "age: input 'birthdate' is rejected"
        assert err.cell_id == "age"
        assert err.dependency == "birthdate"

    def test_undefined_cell_error(self) -> None:
        err = UndefinedCellError("now")
        assert str(err) == "now is not defined"
        assert err.name == "now"
