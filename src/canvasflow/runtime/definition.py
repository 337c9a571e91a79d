"""Cell definitions and the strategy that produces them.

A compiled node is source text. An ``ExecutionStrategy`` turns it into a
``CellDefinition``: a callable plus the names of its inputs. Inputs are
bound explicitly, by keyword, from a name -> value table.

Calling a definition yields one of two shapes, decided once when the
result comes back::

    Once(awaitable)      resolves to a single value
    Stream(iterator)     an async iterator; each item re-fulfills the cell

Plain return values and coroutines are ``Once``; async generators, async
iterators and plain generators are ``Stream``.
"""

from __future__ import annotations

import asyncio
import builtins
import importlib
import inspect
import linecache
from collections.abc import AsyncIterator, Awaitable, Callable, Generator, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from canvasflow._errors import CompileError

if TYPE_CHECKING:
    from canvasflow.compiler.hashing import CompiledNode


@dataclass(frozen=True, slots=True)
class Once:
    awaitable: Awaitable[Any]


@dataclass(frozen=True, slots=True)
class Stream:
    iterator: AsyncIterator[Any]


type Evaluation = Once | Stream


@dataclass(frozen=True, slots=True)
class CellDefinition:
    """A callable cell body and the names it reads.

    Attributes:
        name: Cell name.
        inputs: Names of the cells whose values are passed in, in order.
        function: Called with one keyword argument per input.

    """

    name: str
    inputs: tuple[str, ...]
    function: Callable[..., Any]

    def evaluate(self, bindings: Mapping[str, Any]) -> Evaluation:
        """Call the body with ``bindings`` and classify what it returned."""
        return as_evaluation(self.function(**{n: bindings[n] for n in self.inputs}))


def as_evaluation(result: Any) -> Evaluation:
    if isinstance(result, AsyncIterator):
        return Stream(result)
    if inspect.isgenerator(result):
        return Stream(_drain(result))
    if inspect.isawaitable(result):
        return Once(result)
    return Once(_resolved(result))


async def _resolved(value: Any) -> Any:
    return value


async def _drain(generator: Generator[Any, Any, Any]) -> AsyncIterator[Any]:
    """Adapt a plain generator, yielding to the loop between items."""
    try:
        for item in generator:
            yield item
            await asyncio.sleep(0)
    finally:
        generator.close()


class ExecutionStrategy(Protocol):
    """Turns compiled nodes into runnable definitions."""

    def load(self, node: CompiledNode) -> CellDefinition: ...


class SourceExecStrategy:
    """Executes compiled source text in a fresh namespace per cell.

    The namespace holds the builtins and the ``preload_modules``, so a
    cell can use e.g. ``datetime`` or ``asyncio`` without importing.
    Sources are registered with ``linecache`` so tracebacks through a
    cell show its code.

    This is not a sandbox: a cell runs with the full privileges of the
    process.

    """

    def __init__(self, preload_modules: tuple[str, ...] = ("asyncio", "datetime", "math", "time")) -> None:
        self._preload_modules = preload_modules
        self._modules: dict[str, Any] | None = None

    def _namespace(self) -> dict[str, Any]:
        if self._modules is None:
            self._modules = {
                name.rpartition(".")[2]: importlib.import_module(name)
                for name in self._preload_modules
            }
        return {"__builtins__": builtins, "__name__": "canvasflow.cells", **self._modules}

    def load(self, node: CompiledNode) -> CellDefinition:
        filename = f"<cell {node.id} {node.compiled_code_hash()[:12]}>"
        source = node.compiled_code
        linecache.cache[filename] = (len(source), None, source.splitlines(True), filename)
        try:
            code = compile(source, filename, "exec", dont_inherit=True)
        except SyntaxError as exc:
            raise CompileError(node.id, exc.msg) from exc
        namespace = self._namespace()
        exec(code, namespace)  # noqa: S102
        function = namespace.get(node.id)
        module = (self._modules or {}).get(node.id)
        if module is not None:
            # a cell named after a preloaded module still sees the module
            namespace[node.id] = module
        if function is module or not callable(function):
            raise CompileError(node.id, "compiled code does not define a function")
        return CellDefinition(name=node.id, inputs=tuple(node.dependencies), function=function)


def failed_definition(node: CompiledNode, error: Exception) -> CellDefinition:
    """A definition that rejects with ``error`` (for nodes that failed to load)."""

    def _raise(**_: Any) -> Any:
        raise error

    return CellDefinition(name=node.id, inputs=tuple(node.dependencies), function=_raise)
