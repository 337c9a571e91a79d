"""Canvas record accessors.

Records are plain mappings decoded from the canvas document. Two kinds
matter here: *node* records (shapes, some of which carry code) and
*binding* records, which attach one terminal of an arrow to a node::

    {"id": "binding:...", "typeName": "binding", "fromId": "shape:<arrow>",
     "toId": "shape:<node>", "props": {"terminal": "start"}}

An arrow drawn from node A to node B becomes two bindings sharing the
arrow's id as ``fromId``: the ``start`` binding points at A and the
``end`` binding points at B.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from canvasflow._types import Record, Terminal

# Per-user session state that never belongs to the document scope.
EPHEMERAL_TYPES = frozenset(
    {"camera", "instance", "instance_page_state", "instance_presence", "pointer"}
)


@dataclass(frozen=True, slots=True)
class CodeNode:
    """A named source snippet, the unit of compilation.

    Attributes:
        id: The node's title, also the cell name at runtime.
        code: Raw source text as typed on the canvas.
        dependencies: Code names whose values the snippet consumes, in order.

    """

    id: str
    code: str
    dependencies: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class CodeSource:
    """A code-bearing canvas record, before dependencies are attached."""

    record_id: str
    title: str
    code: str


def record_id(record: Record) -> str:
    return str(record["id"])


def props(record: Record) -> dict[str, Any]:
    value = record.get("props")
    return value if isinstance(value, dict) else {}


def is_document_record(record: Record) -> bool:
    """Whether the record belongs to the document (not presence/session state)."""
    return record.get("typeName") not in EPHEMERAL_TYPES


def is_binding(record: Record) -> bool:
    return record.get("typeName") == "binding"


def edge_id(record: Record) -> str | None:
    """Id of the edge object a binding belongs to."""
    value = record.get("fromId")
    return str(value) if value else None


def terminal(record: Record) -> Terminal | None:
    value = props(record).get("terminal")
    if value in ("start", "end"):
        return value
    return None


def target(record: Record) -> str | None:
    """Node id a binding's terminal points at."""
    value = record.get("toId")
    return str(value) if value else None


def is_code_record(
    record: Record,
    *,
    languages: tuple[str, ...],
    shape_type: str = "IDE",
) -> bool:
    """Whether a record qualifies as a code node.

    The record must be a shape of ``shape_type`` whose language tag is one
    of ``languages`` and whose title is non-empty.
    """
    if record.get("typeName", "shape") != "shape" or record.get("type") != shape_type:
        return False
    p = props(record)
    return p.get("language") in languages and bool(p.get("title"))


def extract_code(
    records: Iterable[Record],
    *,
    languages: tuple[str, ...] = ("python", "py"),
    shape_type: str = "IDE",
) -> list[CodeSource]:
    """Collect code sources in record order; ineligible records are skipped."""
    sources: list[CodeSource] = []
    for record in records:
        if not is_code_record(record, languages=languages, shape_type=shape_type):
            continue
        p = props(record)
        code = p.get("code")
        sources.append(
            CodeSource(
                record_id=record_id(record),
                title=str(p["title"]),
                code=code if isinstance(code, str) else "",
            )
        )
    return sources
