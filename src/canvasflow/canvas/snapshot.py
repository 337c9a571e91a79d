"""Canvas snapshot files.

A snapshot is the JSON form of a canvas document at one clock value::

    {"clock": 7271, "documents": [{"state": {...record...}}, ...]}

Only the record states matter to canvasflow; other top-level keys
(schema, tombstones) are kept untouched when the file is rewritten.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from canvasflow._errors import GraphError
from canvasflow.compiler.hashing import hash_text

if TYPE_CHECKING:
    from pathlib import Path

    from canvasflow._types import Record


@dataclass(frozen=True, slots=True)
class CanvasSnapshot:
    """An immutable view of a canvas document.

    Attributes:
        clock: Document clock the snapshot was taken at (0 for an empty canvas).
        records: Record states in document order.
        extra: Remaining top-level keys of the snapshot file.

    """

    clock: int = 0
    records: tuple[Record, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, data: object) -> CanvasSnapshot:
        if not isinstance(data, dict):
            msg = "snapshot must be a JSON object"
            raise GraphError(msg)
        documents = data.get("documents", [])
        if not isinstance(documents, list):
            msg = "snapshot 'documents' must be a list"
            raise GraphError(msg)
        records: list[Record] = []
        for document in documents:
            state = document.get("state") if isinstance(document, dict) else None
            if not isinstance(state, dict) or "id" not in state:
                msg = f"malformed snapshot document: {document!r:.80}"
                raise GraphError(msg)
            records.append(state)
        clock = data.get("clock", 0)
        if isinstance(clock, str) and clock.isascii() and clock.isdigit():
            clock = int(clock)
        if not isinstance(clock, int) or isinstance(clock, bool):
            msg = f"snapshot 'clock' must be an integer, got {clock!r:.40}"
            raise GraphError(msg)
        extra = {k: v for k, v in data.items() if k not in ("clock", "documents")}
        return cls(clock=clock, records=tuple(records), extra=extra)

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.extra,
            "clock": self.clock,
            "documents": [{"state": record} for record in self.records],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    @property
    def digest(self) -> str:
        """Content digest of the canonical JSON form."""
        return hash_text(self.to_json())


def load_snapshot(path: Path) -> CanvasSnapshot:
    """Read a snapshot file, creating an empty one if it does not exist."""
    if not path.exists():
        snapshot = CanvasSnapshot()
        save_snapshot(path, snapshot)
        return snapshot
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        msg = f"Cannot read snapshot {path.name}: {exc}"
        raise GraphError(msg) from exc
    return CanvasSnapshot.from_dict(data)


def save_snapshot(path: Path, snapshot: CanvasSnapshot) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(snapshot.to_dict(), indent=2) + "\n", encoding="utf-8")
