"""Cell: one live reactive computation.

A cell holds the definition it was installed with, the compiled digest
of that definition, its current state, and the task computing it. The
``settled`` flag is cleared when the cell joins a propagation wave and
set once the cell has a terminal value for that wave, which is what
dependents wait on before reading it.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from canvasflow.runtime.values import Fulfilled, Pending, Rejected

if TYPE_CHECKING:
    from collections.abc import Coroutine
    from typing import Any

    from canvasflow.runtime.definition import CellDefinition
    from canvasflow.runtime.values import RuntimeValue


class Cell:
    """A named, installed cell definition and its lifecycle state.

    Args:
        definition: The callable body and its input names.
        digest: Compiled-code digest the definition was installed with.

    """

    __slots__ = ("_settled", "_task", "definition", "digest", "disposed", "value")

    def __init__(self, definition: CellDefinition, digest: str) -> None:
        self.definition = definition
        self.digest = digest
        self.value: RuntimeValue = Pending()
        self.disposed = False
        self._settled = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def inputs(self) -> tuple[str, ...]:
        return self.definition.inputs

    @property
    def settled(self) -> bool:
        """Whether the cell has a terminal value for the current wave."""
        return self._settled.is_set()

    async def wait_settled(self) -> None:
        await self._settled.wait()

    def reset(self) -> asyncio.Task[None] | None:
        """Cancel the current computation and mark the cell pending.

        Returns the cancelled task, if any.
        """
        task = self._cancel()
        self._settled.clear()
        self.value = Pending()
        return task

    def start(self, computation: Coroutine[Any, Any, None]) -> None:
        self._task = asyncio.get_running_loop().create_task(
            computation, name=f"canvasflow-cell-{self.name}"
        )

    def settle(self, value: Fulfilled | Rejected) -> None:
        self.value = value
        self._settled.set()

    def dispose(self) -> asyncio.Task[None] | None:
        """Cancel the computation for good. Returns the cancelled task, if any.

        Waiters are released so nothing blocks on a cell that will never
        settle again.
        """
        task = self._cancel()
        self.disposed = True
        self._settled.set()
        return task

    def _cancel(self) -> asyncio.Task[None] | None:
        task = self._task
        if task is not None and not task.done():
            task.cancel()
        self._task = None
        return task

    def __repr__(self) -> str:
        return f"Cell({self.name!r}, {self.value.state}, digest={self.digest[:12]})"
