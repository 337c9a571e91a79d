"""Runtime values: the lifecycle states a cell reports.

Every cell is always in exactly one of three states::

    Pending()            computation in flight
    Fulfilled(value)     computation produced a value (re-fired per stream item)
    Rejected(error)      the cell, or one of its inputs, failed

State changes are published as ``StateEvent(id, value)``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar


@dataclass(frozen=True, slots=True)
class Pending:
    state: ClassVar[str] = "pending"

    def to_dict(self) -> dict[str, Any]:
        return {"state": self.state}


@dataclass(frozen=True, slots=True)
class Fulfilled:
    value: Any
    state: ClassVar[str] = "fulfilled"

    def to_dict(self) -> dict[str, Any]:
        return {"state": self.state, "value": self.value}


@dataclass(frozen=True, slots=True)
class Rejected:
    error: BaseException
    state: ClassVar[str] = "rejected"

    def to_dict(self) -> dict[str, Any]:
        return {"state": self.state, "error": self.error}


type RuntimeValue = Pending | Fulfilled | Rejected


@dataclass(frozen=True, slots=True)
class StateEvent:
    """A cell changed state.

    Attributes:
        id: Cell name.
        value: The new state.

    """

    id: str
    value: RuntimeValue

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "value": self.value.to_dict()}
