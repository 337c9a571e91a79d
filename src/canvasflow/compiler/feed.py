"""Change feed: delivers compiled nodes to a runtime.

The feed is an ordered stream with exactly one leading ``original``
message followed by any number of ``changed`` messages::

    {"type": "original", "original": [node, ...]}
    {"type": "changed", "codeNames": ["a", "b"], "changed": [node, ...]}

``changed`` holds only nodes whose compiled digest differs from the last
one published for that id; ``codeNames`` lists every code name that
currently exists, so a consumer can drop cells for names that vanished.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from canvasflow._errors import FeedError
from canvasflow.compiler.hashing import CompiledNode


@dataclass(frozen=True, slots=True)
class OriginalMessage:
    original: tuple[CompiledNode, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"type": "original", "original": [n.to_dict() for n in self.original]}


@dataclass(frozen=True, slots=True)
class ChangedMessage:
    code_names: tuple[str, ...]
    changed: tuple[CompiledNode, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "changed",
            "codeNames": list(self.code_names),
            "changed": [n.to_dict() for n in self.changed],
        }


type FeedMessage = OriginalMessage | ChangedMessage


def parse_message(data: Mapping[str, Any]) -> FeedMessage:
    """Decode a wire-form feed message."""
    kind = data.get("type")
    try:
        if kind == "original":
            return OriginalMessage(
                original=tuple(CompiledNode.from_dict(n) for n in data["original"]),
            )
        if kind == "changed":
            return ChangedMessage(
                code_names=tuple(str(n) for n in data["codeNames"]),
                changed=tuple(CompiledNode.from_dict(n) for n in data["changed"]),
            )
    except (KeyError, TypeError) as exc:
        msg = f"Malformed {kind} message: {exc}"
        raise FeedError(msg) from exc
    msg = f"Unknown feed message type: {kind!r}"
    raise FeedError(msg)


def diff_compiled(
    previous: Iterable[CompiledNode],
    latest: Iterable[CompiledNode],
) -> ChangedMessage:
    """Build the ``changed`` message between two compiled node sets.

    A node is changed when its id is new or its compiled digest differs
    from the previous digest for that id.
    """
    seen = {node.id: node.compiled_code_hash() for node in previous}
    latest = tuple(latest)
    changed = tuple(
        node for node in latest if seen.get(node.id) != node.compiled_code_hash()
    )
    return ChangedMessage(code_names=tuple(n.id for n in latest), changed=changed)


class FeedPublisher:
    """Producer side of the change feed.

    The first ``publish`` emits the original message; later calls emit a
    ``changed`` message against the previously published nodes, skipping
    diffs that change nothing. Messages are consumed through ``messages()``.

    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[FeedMessage | None] = asyncio.Queue()
        self._last: tuple[CompiledNode, ...] | None = None
        self._closed = False

    @property
    def started(self) -> bool:
        """Whether the original message has been published."""
        return self._last is not None

    def publish(self, nodes: Iterable[CompiledNode]) -> FeedMessage | None:
        """Publish the latest compiled nodes. Returns the message sent, if any."""
        if self._closed:
            msg = "feed is closed"
            raise FeedError(msg)
        nodes = tuple(nodes)
        message: FeedMessage
        if self._last is None:
            message = OriginalMessage(original=nodes)
        else:
            message = diff_compiled(self._last, nodes)
            if not message.changed and message.code_names == tuple(n.id for n in self._last):
                return None
        self._last = nodes
        self._queue.put_nowait(message)
        return message

    def close(self) -> None:
        """End the stream once queued messages are consumed."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    async def drained(self) -> None:
        """Wait until every published message has been consumed."""
        await self._queue.join()

    async def messages(self) -> AsyncIterator[FeedMessage]:
        while True:
            message = await self._queue.get()
            try:
                if message is None:
                    return
                yield message
            finally:
                self._queue.task_done()
