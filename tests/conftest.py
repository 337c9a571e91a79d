"""Shared test fixtures for canvasflow."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import pytest

from canvasflow.config import FlowConfig


def code_shape(
    title: str,
    code: str,
    *,
    record_id: str | None = None,
    language: str = "python",
) -> dict[str, Any]:
    """A code-bearing shape record titled ``title``."""
    return {
        "id": record_id or f"shape:{title}",
        "typeName": "shape",
        "type": "IDE",
        "props": {"title": title, "language": language, "code": code},
    }


def arrow(start: str, end: str, *, edge: str | None = None) -> list[dict[str, Any]]:
    """Arrow record plus its two bindings: ``end`` consumes ``start``.

    ``start`` and ``end`` are record ids.
    """
    edge = edge or f"shape:arrow-{start}-{end}"
    return [
        {"id": edge, "typeName": "shape", "type": "arrow", "props": {}},
        binding(edge, start, "start"),
        binding(edge, end, "end"),
    ]


def binding(edge: str, node: str, terminal: str) -> dict[str, Any]:
    return {
        "id": f"binding:{edge}:{terminal}",
        "typeName": "binding",
        "type": "arrow",
        "fromId": edge,
        "toId": node,
        "props": {"terminal": terminal},
    }


def snapshot_data(records: list[dict[str, Any]], *, clock: Any = 1) -> dict[str, Any]:
    return {"clock": clock, "documents": [{"state": r} for r in records]}


def write_snapshot(path: Path, records: list[dict[str, Any]], *, clock: Any = 1) -> Path:
    path.write_text(json.dumps(snapshot_data(records, clock=clock)), encoding="utf-8")
    return path


async def wait_until(predicate: Any, *, timeout: float = 2.0) -> None:
    """Poll ``predicate`` on the event loop until it holds."""

    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout=timeout)


@pytest.fixture
def age_records() -> list[dict[str, Any]]:
    """Three cells: ``age`` consumes ``birthdate`` then ``now``."""
    return [
        code_shape("birthdate", "datetime.date(1990, 6, 1)"),
        code_shape("now", "datetime.date(2020, 6, 1)"),
        code_shape("age", "(now - birthdate).days // 365"),
        *arrow("shape:birthdate", "shape:age"),
        *arrow("shape:now", "shape:age"),
    ]


@pytest.fixture
def canvas_config(tmp_path: Path) -> FlowConfig:
    return FlowConfig(root=tmp_path, source=Path("canvas.json"))
