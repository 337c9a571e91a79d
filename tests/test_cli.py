"""Tests for canvasflow._cli: argument parsing and command dispatch."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from canvasflow._cli import _build_parser, main
from tests.conftest import arrow, code_shape, write_snapshot


class TestBuildParser:
    """_build_parser: CLI argument parsing."""

    def test_compile_args(self) -> None:
        args = _build_parser().parse_args(["compile", "canvas.json"])
        assert args.command == "compile"
        assert args.source == "canvas.json"
        assert args.root == "."

    def test_run_defaults(self) -> None:
        args = _build_parser().parse_args(["run", "canvas.json"])
        assert args.command == "run"
        assert args.once is False
        assert args.no_watch is False
        assert args.trace is False

    def test_run_all_flags(self) -> None:
        args = _build_parser().parse_args(
            ["run", "board.json", "--root", "project/", "--once", "--no-watch"]
        )
        assert args.source == "board.json"
        assert args.root == "project/"
        assert args.once is True
        assert args.no_watch is True

    def test_source_required(self) -> None:
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["run"])


class TestMain:
    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 0
        assert "usage" in capsys.readouterr().out

    def test_compile_prints_nodes(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        write_snapshot(
            tmp_path / "canvas.json",
            [code_shape("a", "1 + 2"), code_shape("b", "a * 2"), *arrow("shape:a", "shape:b")],
        )
        main(["compile", "canvas.json", "--root", str(tmp_path)])
        nodes = json.loads(capsys.readouterr().out)
        assert [n["codeName"] for n in nodes] == ["a", "b"]
        assert nodes[1]["compiledCode"] == "def b(a):\n    return a * 2"
        assert nodes[1]["dependencies"] == ["a"]

    def test_compile_error_exits_nonzero(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        write_snapshot(tmp_path / "canvas.json", [code_shape("bad", "1 +")])
        with pytest.raises(SystemExit) as exc_info:
            main(["compile", "canvas.json", "--root", str(tmp_path)])
        assert exc_info.value.code == 1
        assert "Failed to transform node bad" in capsys.readouterr().err

    def test_run_once_prints_states(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        write_snapshot(
            tmp_path / "canvas.json",
            [code_shape("a", "20 + 1"), code_shape("b", "a * 2"), *arrow("shape:a", "shape:b")],
        )
        main(["run", "canvas.json", "--root", str(tmp_path), "--once"])
        lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        assert {"id": "b", "state": "fulfilled", "value": 42} in lines
        assert lines[0]["state"] == "pending"

    def test_run_trace_prints_timelines(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        write_snapshot(
            tmp_path / "canvas.json",
            [code_shape("a", "1 / 0"), code_shape("b", "a + 1"), *arrow("shape:a", "shape:b")],
        )
        main(["run", "canvas.json", "--root", str(tmp_path), "--once", "--trace"])
        err = capsys.readouterr().err.splitlines()
        assert "  a: pending -> rejected" in err
        assert "  b: pending -> rejected" in err
