"""Compiler: source classification, wrapping, and content addressing."""

from canvasflow.compiler.compiler import CompiledCanvas, Compiler
from canvasflow.compiler.feed import (
    ChangedMessage,
    FeedMessage,
    FeedPublisher,
    OriginalMessage,
    diff_compiled,
    parse_message,
)
from canvasflow.compiler.hashing import CompiledNode, LazyDigest, hash_text
from canvasflow.compiler.transformer import SourceTransformer, classify

__all__ = [
    "ChangedMessage",
    "CompiledCanvas",
    "CompiledNode",
    "Compiler",
    "FeedMessage",
    "FeedPublisher",
    "LazyDigest",
    "OriginalMessage",
    "SourceTransformer",
    "classify",
    "diff_compiled",
    "hash_text",
    "parse_message",
]
