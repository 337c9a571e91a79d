"""Record differ: change batches between two canvas record sets.

Compares two record sets by id and produces a ``RecordBatch`` describing
which records were added, removed, or updated. Records are plain
mappings decoded from JSON, so equality is structural (``==``) and
unchanged records are skipped without inspecting their fields.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from canvasflow._types import Record


@dataclass(frozen=True, slots=True)
class RecordBatch:
    """One batch of canvas changes.

    Attributes:
        added: Records that did not exist before.
        removed: Records that no longer exist.
        updated: ``(before, after)`` pairs for records whose content changed.

    """

    added: tuple[Record, ...] = ()
    removed: tuple[Record, ...] = ()
    updated: tuple[tuple[Record, Record], ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.updated)

    def __len__(self) -> int:
        return len(self.added) + len(self.removed) + len(self.updated)


def diff_records(old: Iterable[Record], new: Iterable[Record]) -> RecordBatch:
    """Diff two record sets keyed by ``id``.

    ``added`` and ``updated`` follow the order of ``new``; ``removed``
    follows the order of ``old``. Records without an id are ignored.
    """
    old_by_id = {str(r["id"]): r for r in old if "id" in r}
    new_by_id = {str(r["id"]): r for r in new if "id" in r}

    added: list[Record] = []
    updated: list[tuple[Record, Record]] = []
    for rid, record in new_by_id.items():
        previous = old_by_id.get(rid)
        if previous is None:
            added.append(record)
        elif previous != record:
            updated.append((previous, record))

    removed = [record for rid, record in old_by_id.items() if rid not in new_by_id]

    return RecordBatch(added=tuple(added), removed=tuple(removed), updated=tuple(updated))
