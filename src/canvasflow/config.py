"""Canvasflow configuration.

FlowConfig is the central configuration object, frozen after creation.
"""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True, slots=True)
class FlowConfig:
    """Configuration for a canvasflow runtime process.

    Attributes:
        root: Project directory. Always resolved to an absolute path on construction.
        source: Canvas snapshot file, relative to ``root`` unless absolute.
        languages: Language tags that mark a node as a compiled code node.
        shape_type: Record ``type`` of code-bearing shapes.
        preload_modules: Modules importable by name inside every cell body.
        max_events: Capacity of the observability event log.
        debounce_ms: Debounce window for snapshot file watching.

    """

    root: Path = field(default_factory=Path.cwd)
    source: Path = field(default_factory=lambda: Path("canvas.json"))
    languages: tuple[str, ...] = ("python", "py")
    shape_type: str = "IDE"
    preload_modules: tuple[str, ...] = ("asyncio", "datetime", "math", "time")
    max_events: int = 10_000
    debounce_ms: int = 300

    def __post_init__(self) -> None:
        # watchfiles reports absolute paths; compare against an absolute root.
        if not self.root.is_absolute():
            object.__setattr__(self, "root", self.root.resolve())
        if not isinstance(self.source, Path):
            object.__setattr__(self, "source", Path(str(self.source)))
        for name in ("languages", "preload_modules"):
            value = getattr(self, name)
            if not isinstance(value, tuple):
                object.__setattr__(self, name, tuple(value))

    @property
    def source_path(self) -> Path:
        """Absolute path to the canvas snapshot file."""
        if self.source.is_absolute():
            return self.source
        return self.root / self.source
