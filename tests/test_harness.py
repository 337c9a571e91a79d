"""Tests for canvasflow.harness: snapshot files driving a live runtime."""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import pytest

from canvasflow._errors import CompileError
from canvasflow.canvas.watcher import ChangeEvent
from canvasflow.compiler.feed import ChangedMessage
from canvasflow.config import FlowConfig
from canvasflow.harness import Harness
from canvasflow.observability import CanvasCompiled, CellStateChanged
from canvasflow.runtime import Fulfilled
from tests.conftest import arrow, code_shape, write_snapshot


def _with_now(records: list[dict[str, Any]], code: str) -> list[dict[str, Any]]:
    return [code_shape("now", code) if r["id"] == "shape:now" else r for r in records]


class TestLoad:
    @pytest.mark.asyncio
    async def test_runs_snapshot(self, canvas_config: FlowConfig, age_records: list[dict[str, Any]]) -> None:
        write_snapshot(canvas_config.source_path, age_records, clock=12)
        harness = Harness(canvas_config)
        canvas = await harness.load()
        await harness.settled()

        assert canvas.ids == ("birthdate", "now", "age")
        assert harness.clock == 12
        assert harness.runtime.value_of("age") == Fulfilled(30)
        await harness.aclose()

    @pytest.mark.asyncio
    async def test_missing_snapshot_created(self, canvas_config: FlowConfig) -> None:
        harness = Harness(canvas_config)
        canvas = await harness.load()
        assert len(canvas) == 0
        assert canvas_config.source_path.exists()
        assert harness.clock == 0
        await harness.aclose()

    @pytest.mark.asyncio
    async def test_compile_error_raises(self, canvas_config: FlowConfig) -> None:
        write_snapshot(canvas_config.source_path, [code_shape("bad", "1 +")])
        harness = Harness(canvas_config)
        with pytest.raises(CompileError):
            await harness.load()
        assert harness.snapshot is None
        await harness.aclose()

    @pytest.mark.asyncio
    async def test_events_logged(self, canvas_config: FlowConfig, age_records: list[dict[str, Any]]) -> None:
        write_snapshot(canvas_config.source_path, age_records)
        harness = Harness(canvas_config)
        await harness.load()
        await harness.settled()
        log = harness.collector.log
        assert len(log.query(event_type=CanvasCompiled)) == 1
        assert log.query(event_type=CellStateChanged, cell_id="age")[0].state == "fulfilled"  # type: ignore[union-attr]
        await harness.aclose()


class TestReload:
    @pytest.mark.asyncio
    async def test_edit_recomputes(self, canvas_config: FlowConfig, age_records: list[dict[str, Any]]) -> None:
        write_snapshot(canvas_config.source_path, age_records)
        harness = Harness(canvas_config)
        await harness.load()
        await harness.settled()

        write_snapshot(canvas_config.source_path, _with_now(age_records, "datetime.date(2030, 6, 1)"), clock=2)
        message = await harness.reload()
        await harness.settled()

        assert isinstance(message, ChangedMessage)
        assert [n.id for n in message.changed] == ["now"]
        assert harness.runtime.value_of("age") == Fulfilled(40)
        assert harness.clock == 2
        await harness.aclose()

    @pytest.mark.asyncio
    async def test_unchanged_file(self, canvas_config: FlowConfig, age_records: list[dict[str, Any]]) -> None:
        write_snapshot(canvas_config.source_path, age_records)
        harness = Harness(canvas_config)
        await harness.load()
        assert await harness.reload() is None
        await harness.aclose()

    @pytest.mark.asyncio
    async def test_compile_error_keeps_last_program(
        self,
        canvas_config: FlowConfig,
        age_records: list[dict[str, Any]],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        write_snapshot(canvas_config.source_path, age_records)
        harness = Harness(canvas_config)
        await harness.load()
        await harness.settled()

        write_snapshot(canvas_config.source_path, _with_now(age_records, "datetime.date(2030,"))
        assert await harness.reload() is None
        assert "Compile error: Failed to transform node now" in capsys.readouterr().err
        assert harness.runtime.value_of("age") == Fulfilled(30)

        write_snapshot(canvas_config.source_path, _with_now(age_records, "datetime.date(2030, 6, 1)"))
        await harness.reload()
        await harness.settled()
        assert harness.runtime.value_of("age") == Fulfilled(40)
        await harness.aclose()

    @pytest.mark.asyncio
    async def test_bad_clock_keeps_last_program(
        self,
        canvas_config: FlowConfig,
        age_records: list[dict[str, Any]],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        write_snapshot(canvas_config.source_path, age_records, clock=5)
        harness = Harness(canvas_config)
        await harness.load()
        await harness.settled()

        write_snapshot(canvas_config.source_path, age_records, clock=None)
        assert await harness.reload() is None
        assert "Compile error: snapshot 'clock' must be an integer" in capsys.readouterr().err
        assert harness.clock == 5
        assert harness.runtime.value_of("age") == Fulfilled(30)
        await harness.aclose()

    @pytest.mark.asyncio
    async def test_deleted_arrow_drops_parameter(self, canvas_config: FlowConfig) -> None:
        records = [
            code_shape("a", "1"),
            code_shape("b", "2"),
            code_shape("total", "sum(v for v in (a, b))"),
            *arrow("shape:a", "shape:total"),
            *arrow("shape:b", "shape:total"),
        ]
        write_snapshot(canvas_config.source_path, records)
        harness = Harness(canvas_config)
        await harness.load()
        await harness.settled()
        assert harness.runtime.value_of("total") == Fulfilled(3)

        without_b = [r for r in records if "shape:b-shape:total" not in str(r.get("fromId", r["id"]))]
        without_b[2] = code_shape("total", "a * 10")
        write_snapshot(canvas_config.source_path, without_b)
        await harness.reload()
        await harness.settled()
        assert harness.runtime.value_of("total") == Fulfilled(10)
        await harness.aclose()

    @pytest.mark.asyncio
    async def test_removed_cell_disposed(self, canvas_config: FlowConfig, age_records: list[dict[str, Any]]) -> None:
        extra = code_shape("scratch", "'temp'")
        write_snapshot(canvas_config.source_path, [*age_records, extra])
        harness = Harness(canvas_config)
        await harness.load()
        await harness.settled()
        assert "scratch" in harness.runtime

        write_snapshot(canvas_config.source_path, age_records)
        message = await harness.reload()
        assert isinstance(message, ChangedMessage)
        assert message.changed == ()
        assert "scratch" not in harness.runtime
        await harness.aclose()


class _FakeWatcher:
    def __init__(self, events: list[ChangeEvent]) -> None:
        self._events = events
        self.started = False
        self.stopped = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    async def changes(self) -> AsyncIterator[ChangeEvent]:
        for event in self._events:
            yield event


class TestWatch:
    @pytest.mark.asyncio
    async def test_reloads_on_change(
        self,
        canvas_config: FlowConfig,
        age_records: list[dict[str, Any]],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        write_snapshot(canvas_config.source_path, age_records)
        harness = Harness(canvas_config)
        await harness.load()
        await harness.settled()

        path = canvas_config.source_path
        watcher = _FakeWatcher([ChangeEvent(path=path, kind="deleted"), ChangeEvent(path=path, kind="modified")])
        monkeypatch.setattr("canvasflow.harness.CanvasWatcher", lambda config: watcher)

        write_snapshot(path, _with_now(age_records, "datetime.date(2025, 6, 1)"))
        await harness.watch()
        await harness.settled()

        assert watcher.started
        assert watcher.stopped
        assert harness.runtime.value_of("age") == Fulfilled(35)
        await harness.aclose()
