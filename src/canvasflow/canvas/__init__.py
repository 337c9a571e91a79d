"""Canvas layer: records, dependency extraction, and snapshot files.

Turns the mutable record set of a canvas document into a dependency map
and the code sources that feed the compiler.
"""

from canvasflow.canvas.differ import RecordBatch, diff_records
from canvasflow.canvas.extractor import GraphExtractor, find_cycle
from canvasflow.canvas.records import CodeNode, CodeSource, extract_code
from canvasflow.canvas.snapshot import CanvasSnapshot, load_snapshot, save_snapshot

__all__ = [
    "CanvasSnapshot",
    "CodeNode",
    "CodeSource",
    "GraphExtractor",
    "RecordBatch",
    "diff_records",
    "extract_code",
    "find_cycle",
    "load_snapshot",
    "save_snapshot",
]
