"""Canvasflow CLI: canvasflow compile / canvasflow run.

Entry point for the ``canvasflow`` command-line interface.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from canvasflow._errors import CanvasflowError

if TYPE_CHECKING:
    from canvasflow.config import FlowConfig
    from canvasflow.runtime.values import RuntimeValue


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the canvasflow CLI."""
    parser = argparse.ArgumentParser(
        prog="canvasflow",
        description="Reactive dataflow runtime for canvas notebooks.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # canvasflow compile
    compile_parser = subparsers.add_parser(
        "compile",
        help="Compile a canvas snapshot and print the compiled nodes",
    )
    compile_parser.add_argument("source", help="Canvas snapshot file")
    compile_parser.add_argument("--root", default=".", help="Project directory")

    # canvasflow run
    run_parser = subparsers.add_parser(
        "run",
        help="Run a canvas snapshot, printing cell states as JSON lines",
    )
    run_parser.add_argument("source", help="Canvas snapshot file")
    run_parser.add_argument("--root", default=".", help="Project directory")
    run_parser.add_argument(
        "--once", action="store_true", help="Exit once every cell has settled",
    )
    run_parser.add_argument(
        "--no-watch", action="store_true", help="Do not reload on snapshot changes",
    )
    run_parser.add_argument(
        "--trace", action="store_true", help="Print each cell's state history to stderr on exit",
    )

    return parser


def _get_version() -> str:
    """Get the package version."""
    from canvasflow import __version__

    return __version__


def _print_state(cell_id: str, value: RuntimeValue) -> None:
    print(json.dumps({"id": cell_id, **value.to_dict()}, default=str), flush=True)


def _print_trace(timelines: dict[str, list[str]]) -> None:
    for cell_id, states in timelines.items():
        print(f"  {cell_id}: {' -> '.join(states)}", file=sys.stderr)


def compile_source(config: FlowConfig) -> None:
    """Print the compiled nodes of the configured snapshot as JSON."""
    from canvasflow.canvas.snapshot import load_snapshot
    from canvasflow.compiler.compiler import Compiler

    snapshot = load_snapshot(config.source_path)
    canvas = Compiler(
        languages=config.languages,
        shape_type=config.shape_type,
    ).compile_snapshot(snapshot)
    print(json.dumps([node.to_dict() for node in canvas], indent=2))


async def run_source(
    config: FlowConfig, *, once: bool = False, watch: bool = True, trace: bool = False,
) -> None:
    """Run the configured snapshot until interrupted (or settled, with ``once``).

    With ``trace``, each cell's state history is written to stderr on exit.
    """
    from canvasflow.harness import Harness

    harness = Harness(config, on_change=_print_state)
    try:
        await harness.load()
        if once:
            await harness.settled()
        elif watch:
            await harness.watch()
        else:
            await asyncio.Event().wait()
    finally:
        if trace:
            _print_trace(harness.collector.log.timelines())
        await harness.aclose()


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    from canvasflow.config_loader import load_config

    try:
        config = load_config(Path(args.root), source=args.source)
        if args.command == "compile":
            compile_source(config)
        elif args.command == "run":
            asyncio.run(
                run_source(config, once=args.once, watch=not args.no_watch, trace=args.trace)
            )
    except CanvasflowError as exc:
        print(f"  Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
