"""Canvasflow: a reactive dataflow runtime for canvas notebooks.

Code lives in shapes on a canvas; arrows between shapes are data
dependencies. Canvasflow turns the canvas into a live program where every
shape is a cell that recomputes when its inputs change.

Quick start::

    import asyncio
    import canvasflow

    async def main():
        harness = canvasflow.Harness(canvasflow.FlowConfig(source="canvas.json"))
        await harness.load()
        await harness.settled()
        print(harness.runtime.values)

    asyncio.run(main())

Layers::

    canvas        records, dependency extraction, snapshot files
    compiler      source classification, wrapping, content addressing, feed
    runtime       reactive cells, propagation waves, inspector broadcaster

"""

__version__ = "0.1.0"
__all__ = [
    "Compiler",
    "DataflowRuntime",
    "FlowConfig",
    "GraphExtractor",
    "Harness",
    "SourceTransformer",
    "__version__",
    "load_config",
]


def __getattr__(name: str) -> object:
    """Lazy imports for the public API.

    Keeps ``import canvasflow`` fast; the runtime and compiler are only
    loaded when used.
    """
    if name == "FlowConfig":
        from canvasflow.config import FlowConfig

        return FlowConfig

    if name == "load_config":
        from canvasflow.config_loader import load_config

        return load_config

    if name == "GraphExtractor":
        from canvasflow.canvas.extractor import GraphExtractor

        return GraphExtractor

    if name == "SourceTransformer":
        from canvasflow.compiler.transformer import SourceTransformer

        return SourceTransformer

    if name == "Compiler":
        from canvasflow.compiler.compiler import Compiler

        return Compiler

    if name == "DataflowRuntime":
        from canvasflow.runtime.runtime import DataflowRuntime

        return DataflowRuntime

    if name == "Harness":
        from canvasflow.harness import Harness

        return Harness

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
