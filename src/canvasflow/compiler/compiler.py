"""Compiler: canvas records to compiled cell definitions.

Ties the canvas layer to the transformer:

    1. Extract the dependency state (record id -> record ids)
    2. Collect code sources (eligible code shapes, in record order)
    3. Map code names <-> record ids (titles are unique per canvas)
    4. Translate dependencies to code names, dropping non-code ones
    5. Reject dependency cycles
    6. Transform every node and wrap the results as CompiledNodes

Cross-reference failures are asymmetric: a code name that cannot be
matched back to its record is fatal, while a dependency on a record that
is not a code node is silently dropped.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from canvasflow._errors import CrossReferenceError, CycleError
from canvasflow.canvas.extractor import GraphExtractor, find_cycle
from canvasflow.canvas.records import CodeNode, CodeSource, extract_code
from canvasflow.compiler.hashing import CompiledNode
from canvasflow.compiler.transformer import SourceTransformer

if TYPE_CHECKING:
    from canvasflow._types import DependencyState, Record
    from canvasflow.canvas.snapshot import CanvasSnapshot
    from canvasflow.observability.collector import FlowCollector


@dataclass(slots=True)
class CompiledCanvas:
    """Ordered collection of compiled nodes for one canvas."""

    nodes: list[CompiledNode] = field(default_factory=list)

    def add_node(
        self,
        *,
        id: str,  # noqa: A002
        input_code: str,
        compiled_code: str,
        dependencies: Iterable[str],
    ) -> CompiledCanvas:
        self.nodes.append(
            CompiledNode(
                id=id,
                input_code=input_code,
                compiled_code=compiled_code,
                dependencies=tuple(dependencies),
            )
        )
        return self

    @property
    def ids(self) -> tuple[str, ...]:
        return tuple(node.id for node in self.nodes)

    def get(self, node_id: str) -> CompiledNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def __iter__(self) -> Iterator[CompiledNode]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)


class Compiler:
    """Compiles a canvas record set into a ``CompiledCanvas``.

    Args:
        languages: Language tags of the compiled dialect.
        shape_type: Record type of code-bearing shapes.
        transformer: Source transformer (a fresh one by default).
        collector: Optional observability collector.

    """

    def __init__(
        self,
        *,
        languages: tuple[str, ...] = ("python", "py"),
        shape_type: str = "IDE",
        transformer: SourceTransformer | None = None,
        collector: FlowCollector | None = None,
    ) -> None:
        self._languages = languages
        self._shape_type = shape_type
        self._transformer = transformer or SourceTransformer()
        self._collector = collector

    def compile(
        self,
        records: Iterable[Record],
        dependencies: DependencyState | None = None,
    ) -> CompiledCanvas:
        """Compile a record set.

        Args:
            records: Every record of the canvas document.
            dependencies: Dependency state keyed by record id. Extracted from
                ``records`` when not given (a live extractor passes its own).

        Raises:
            CompileError: A node could not be transformed.
            CrossReferenceError: Two code records share a title.
            CycleError: The code dependency graph has a cycle.

        """
        start = time.perf_counter()
        records = list(records)
        if dependencies is None:
            dependencies = GraphExtractor(records).dependencies

        sources = extract_code(records, languages=self._languages, shape_type=self._shape_type)
        name_to_record = self._code_name_index(sources)
        record_to_name = {rid: name for name, rid in name_to_record.items()}
        name_dependencies = _translate(dependencies, record_to_name)

        cycle = find_cycle(name_dependencies)
        if cycle is not None:
            raise CycleError(cycle)

        nodes = [
            CodeNode(
                id=source.title,
                code=source.code,
                dependencies=name_dependencies.get(source.title, ()),
            )
            for source in sources
        ]
        compiled = self._transformer.transform(nodes)

        canvas = CompiledCanvas()
        for node in nodes:
            canvas.add_node(
                id=node.id,
                input_code=node.code,
                compiled_code=compiled[node.id],
                dependencies=node.dependencies,
            )

        if self._collector is not None:
            self._collector.record_compile(
                nodes=len(canvas),
                duration_ms=(time.perf_counter() - start) * 1000,
            )
        return canvas

    def compile_snapshot(self, snapshot: CanvasSnapshot) -> CompiledCanvas:
        return self.compile(snapshot.records)

    def _code_name_index(self, sources: list[CodeSource]) -> dict[str, str]:
        """Map each code name to the id of the record that carries it."""
        index: dict[str, str] = {}
        for source in sources:
            if source.title in index:
                msg = f"Duplicate code name: {source.title}"
                raise CrossReferenceError(msg)
            index[source.title] = source.record_id
        return index


def _translate(
    dependencies: DependencyState,
    record_to_name: dict[str, str],
) -> dict[str, tuple[str, ...]]:
    """Record-id dependency state -> code-name dependency state."""
    result: dict[str, tuple[str, ...]] = {}
    for rid, deps in dependencies.items():
        name = record_to_name.get(rid)
        if name is None:
            continue
        result[name] = tuple(record_to_name[d] for d in deps if d in record_to_name)
    return result
