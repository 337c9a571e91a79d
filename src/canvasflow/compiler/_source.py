"""Source text helpers for the transformer.

Cell snippets are pasted into a function body, so their layout matters:
comments are stripped, the snippet is dedented, and every line is
re-indented under the ``def`` header. Lines that begin inside a
multi-line string literal belong to the string's value and are never
touched.
"""

from __future__ import annotations

import io
import tokenize
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class _Layout:
    """Token-level facts about a snippet.

    Attributes:
        comments: Row -> column where a ``#`` comment starts (1-based rows).
        string_rows: Rows whose first character is inside a string literal.

    """

    comments: dict[int, int]
    string_rows: frozenset[int]


def _scan(source: str) -> _Layout:
    """Tokenize a snippet. Raises ``tokenize.TokenError`` or ``SyntaxError``."""
    comments: dict[int, int] = {}
    string_rows: set[int] = set()
    fstring_starts: list[int] = []
    for tok in tokenize.generate_tokens(io.StringIO(source).readline):
        if tok.type == tokenize.COMMENT and not fstring_starts:
            comments[tok.start[0]] = tok.start[1]
        elif tok.type == tokenize.STRING:
            string_rows.update(range(tok.start[0] + 1, tok.end[0] + 1))
        elif tok.type == tokenize.FSTRING_START:
            fstring_starts.append(tok.start[0])
        elif tok.type == tokenize.FSTRING_END and fstring_starts:
            string_rows.update(range(fstring_starts.pop() + 1, tok.end[0] + 1))
    return _Layout(comments=comments, string_rows=frozenset(string_rows))


def strip_comments(source: str) -> str:
    """Remove ``#`` comments, dedent, and trim blank edge lines.

    Lines that held only a comment are dropped; trailing whitespace is
    removed from code lines. ``#`` inside string literals is preserved.
    """
    layout = _scan(source)
    kept: list[tuple[str, bool]] = []
    for row, line in enumerate(source.splitlines(), start=1):
        col = layout.comments.get(row)
        if row in layout.string_rows:
            # a comment here follows the closing quote
            kept.append((line if col is None else line[:col].rstrip(), True))
            continue
        if col is None:
            kept.append((line.rstrip(), False))
            continue
        code = line[:col].rstrip()
        if code:
            kept.append((code, False))

    while kept and not kept[0][1] and not kept[0][0]:
        kept.pop(0)
    while kept and not kept[-1][1] and not kept[-1][0]:
        kept.pop()

    margin = min(
        (len(line) - len(line.lstrip()) for line, in_string in kept if not in_string and line),
        default=0,
    )
    return "\n".join(
        line if in_string else line[margin:] for line, in_string in kept
    )


def indent(source: str, prefix: str = "    ") -> str:
    """Indent every code line of ``source`` by ``prefix``.

    Blank lines stay blank. ``source`` must already tokenize cleanly.
    """
    string_rows = _scan(source).string_rows
    return "\n".join(
        line if row in string_rows or not line else prefix + line
        for row, line in enumerate(source.splitlines(), start=1)
    )
