"""Content addressing: stable digests of source text.

Digests are SHA-256 over the UTF-8 bytes of the exact text, hex-encoded.
A ``CompiledNode`` carries two of them (raw input and compiled output);
each is computed on first access and cached for the life of the node.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Any


def hash_text(text: str) -> str:
    """SHA-256 hex digest of ``text``."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class LazyDigest:
    """Digest of a fixed text, computed at most once.

    Call the instance to get the digest::

        digest = LazyDigest("1 + 2")
        digest()  # hashes
        digest()  # cached

    """

    __slots__ = ("_text", "_value")

    def __init__(self, text: str) -> None:
        self._text = text
        self._value: str | None = None

    def __call__(self) -> str:
        if self._value is None:
            self._value = hash_text(self._text)
        return self._value

    @property
    def computed(self) -> bool:
        """Whether the digest has been computed yet."""
        return self._value is not None

    def __repr__(self) -> str:
        state = self._value[:12] if self._value is not None else "pending"
        return f"LazyDigest({state})"


@dataclass(frozen=True, slots=True)
class CompiledNode:
    """A code node after transformation.

    Attributes:
        id: Code name (cell name at runtime).
        input_code: Raw source as typed on the canvas.
        compiled_code: Wrapped function source.
        dependencies: Code names bound as the function's parameters, in order.
        input_code_hash: Digest accessor for ``input_code``.
        compiled_code_hash: Digest accessor for ``compiled_code``.

    """

    id: str
    input_code: str
    compiled_code: str
    dependencies: tuple[str, ...] = ()
    input_code_hash: LazyDigest = field(init=False, repr=False, compare=False)
    compiled_code_hash: LazyDigest = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "dependencies", tuple(self.dependencies))
        object.__setattr__(self, "input_code_hash", LazyDigest(self.input_code))
        object.__setattr__(self, "compiled_code_hash", LazyDigest(self.compiled_code))

    def to_dict(self) -> dict[str, Any]:
        """Wire form used by the change feed."""
        return {
            "codeName": self.id,
            "inputCode": self.input_code,
            "compiledCode": self.compiled_code,
            "compiledCodeHash": self.compiled_code_hash(),
            "dependencies": list(self.dependencies),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CompiledNode:
        return cls(
            id=str(data["codeName"]),
            input_code=str(data.get("inputCode", "")),
            compiled_code=str(data["compiledCode"]),
            dependencies=tuple(data.get("dependencies", ())),
        )
