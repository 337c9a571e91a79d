"""Source transformer: turns a code node into a cell function.

Each snippet is classified by its parsed shape and wrapped in a
``def <id>(<dependencies>):`` whose parameters are exactly the node's
dependencies, in order. That is how a dependency's published value
becomes an in-scope name inside the cell's code.

Classification, in priority order:

1. Empty or whitespace-only (or comment-only) -> empty body::

       def empty():
           pass

2. Pure declaration list (every statement binds plain names) -> the
   code verbatim plus a dict of every bound name, in binding order::

       def config():
           step = 2
           label = "doubled"
           return {"step": step, "label": label}

3. Single expression -> ``return <expr>`` (one trailing ``;`` dropped).
   A lambda is returned, not invoked::

       def doubled(data, config):
           return [x * config["step"] for x in data["nums"]]

4. Anything else -> the code verbatim, no injected return.

The wrapper becomes ``async def`` when the snippet's own scope awaits,
and a generator when it yields; a body that loops forever yielding
values is therefore a streaming cell.
"""

from __future__ import annotations

import ast
import keyword
import tokenize
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from enum import Enum

from canvasflow._errors import CompileError
from canvasflow.canvas.records import CodeNode
from canvasflow.compiler._source import indent, strip_comments

_PARSE_FLAGS = ast.PyCF_ONLY_AST | ast.PyCF_ALLOW_TOP_LEVEL_AWAIT

_NESTED_SCOPES = (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda, ast.ClassDef)


class SourceKind(Enum):
    """Shape of a snippet, decides how it is wrapped."""

    EMPTY = "empty"
    DECLARATIONS = "declarations"
    EXPRESSION = "expression"
    STATEMENTS = "statements"


@dataclass(frozen=True, slots=True)
class Classification:
    """Result of classifying one snippet.

    Attributes:
        kind: Which wrapping rule applies.
        body: Comment-stripped, dedented snippet text.
        declared: Names bound by a declaration list, in binding order.
        is_async: The snippet awaits in its own scope.
        is_generator: The snippet yields in its own scope.

    """

    kind: SourceKind
    body: str
    declared: tuple[str, ...] = ()
    is_async: bool = False
    is_generator: bool = False


def classify(code: str) -> Classification:
    """Classify a snippet. Raises SyntaxError or tokenize.TokenError."""
    if not code.strip():
        return Classification(kind=SourceKind.EMPTY, body="")

    body = strip_comments(code)
    tree = compile(body, "<cell>", "exec", flags=_PARSE_FLAGS, dont_inherit=True)
    assert isinstance(tree, ast.Module)
    statements = tree.body

    is_async, is_generator = _scope_flags(tree)

    if not statements:
        return Classification(kind=SourceKind.EMPTY, body="")

    declared = _declared_names(statements)
    if declared is not None:
        return Classification(
            kind=SourceKind.DECLARATIONS,
            body=body,
            declared=declared,
            is_async=is_async,
            is_generator=is_generator,
        )

    if (
        len(statements) == 1
        and isinstance(statements[0], ast.Expr)
        and not isinstance(statements[0].value, (ast.Yield, ast.YieldFrom))
    ):
        return Classification(
            kind=SourceKind.EXPRESSION,
            body=body.rstrip().removesuffix(";").rstrip(),
            is_async=is_async,
            is_generator=is_generator,
        )

    return Classification(
        kind=SourceKind.STATEMENTS,
        body=body,
        is_async=is_async,
        is_generator=is_generator,
    )


def _own_scope(tree: ast.AST) -> Iterator[ast.AST]:
    """Walk ``tree`` without descending into nested functions or classes."""
    stack = list(ast.iter_child_nodes(tree))
    while stack:
        node = stack.pop()
        yield node
        if not isinstance(node, _NESTED_SCOPES):
            stack.extend(ast.iter_child_nodes(node))


def _scope_flags(tree: ast.AST) -> tuple[bool, bool]:
    is_async = False
    is_generator = False
    for node in _own_scope(tree):
        if isinstance(node, (ast.Await, ast.AsyncFor, ast.AsyncWith)):
            is_async = True
        elif isinstance(node, ast.comprehension) and node.is_async:
            is_async = True
        elif isinstance(node, (ast.Yield, ast.YieldFrom)):
            is_generator = True
    return is_async, is_generator


def _declared_names(statements: list[ast.stmt]) -> tuple[str, ...] | None:
    """Names bound by a pure declaration list, or None if it is not one."""
    names: dict[str, None] = {}
    for statement in statements:
        if isinstance(statement, ast.Assign):
            targets = statement.targets
        elif isinstance(statement, ast.AnnAssign) and statement.value is not None:
            targets = [statement.target]
        else:
            return None
        for node in targets:
            bound = _bound_names(node)
            if bound is None:
                return None
            names.update(dict.fromkeys(bound))
    return tuple(names)


def _bound_names(target: ast.expr) -> list[str] | None:
    """Names bound by an assignment target; None for attribute/subscript targets."""
    if isinstance(target, ast.Name):
        return [target.id]
    if isinstance(target, ast.Starred):
        return _bound_names(target.value)
    if isinstance(target, (ast.Tuple, ast.List)):
        names: list[str] = []
        for element in target.elts:
            bound = _bound_names(element)
            if bound is None:
                return None
            names.extend(bound)
        return names
    return None


def _check_identifier(node_id: str, name: str, role: str) -> None:
    if not name.isidentifier() or keyword.iskeyword(name):
        raise CompileError(node_id, f"{role} {name!r} is not a valid identifier")


class SourceTransformer:
    """Compiles code nodes into wrapped function source text.

    Nodes are processed independently, but a batch fails fast: the first
    node that cannot be transformed aborts the batch with a
    ``CompileError`` naming it. There is no partial result.

    """

    def transform(self, nodes: Iterable[CodeNode]) -> dict[str, str]:
        """Transform a batch of nodes. Returns ``{id: compiled source}`` in input order."""
        result: dict[str, str] = {}
        for node in nodes:
            result[node.id] = self.transform_node(node)
        return result

    def transform_node(self, node: CodeNode) -> str:
        _check_identifier(node.id, node.id, "node id")
        for dependency in node.dependencies:
            _check_identifier(node.id, dependency, "dependency")
        if len(set(node.dependencies)) != len(node.dependencies):
            raise CompileError(node.id, "duplicate dependency names")

        try:
            classification = classify(node.code)
        except (SyntaxError, tokenize.TokenError) as exc:
            raise CompileError(node.id, _describe(exc)) from exc

        wrapped = self.wrap(node.id, node.dependencies, classification)

        # Rejects what only the full compiler catches, e.g. `return x`
        # inside an async generator.
        try:
            compile(wrapped, f"<cell {node.id}>", "exec", dont_inherit=True)
        except SyntaxError as exc:
            raise CompileError(node.id, _describe(exc)) from exc
        return wrapped

    def wrap(
        self,
        name: str,
        parameters: tuple[str, ...],
        classification: Classification,
    ) -> str:
        """Render the ``def`` for a classified snippet."""
        prefix = "async def" if classification.is_async else "def"
        header = f"{prefix} {name}({', '.join(parameters)}):"

        match classification.kind:
            case SourceKind.EMPTY:
                body = "pass"
            case SourceKind.DECLARATIONS:
                fields = ", ".join(f'"{n}": {n}' for n in classification.declared)
                body = f"{classification.body}\nreturn {{{fields}}}"
            case SourceKind.EXPRESSION:
                body = f"return {classification.body}"
            case _:
                body = classification.body

        return f"{header}\n{indent(body)}"


def _describe(exc: BaseException) -> str:
    if isinstance(exc, SyntaxError) and exc.lineno is not None:
        return f"{exc.msg} (line {exc.lineno})"
    return str(exc)
