"""Tests for canvasflow.compiler.transformer and its source helpers."""

from __future__ import annotations

import pytest

from canvasflow._errors import CompileError
from canvasflow.canvas.records import CodeNode
from canvasflow.compiler._source import indent, strip_comments
from canvasflow.compiler.transformer import SourceKind, SourceTransformer, classify


def _transform(node_id: str, code: str, *dependencies: str) -> str:
    return SourceTransformer().transform_node(CodeNode(id=node_id, code=code, dependencies=dependencies))


# ---------------------------------------------------------------------------
# Source helpers
# ---------------------------------------------------------------------------


class TestStripComments:
    def test_comment_lines_dropped(self) -> None:
        assert strip_comments("# heading\nx = 1  # trailing\n# footer\n") == "x = 1"

    def test_hash_inside_string_kept(self) -> None:
        assert strip_comments('s = "a # b"  # c') == 's = "a # b"'

    def test_dedents_snippet(self) -> None:
        assert strip_comments("    if x:\n        y = 1\n") == "if x:\n    y = 1"

    def test_multiline_string_untouched(self) -> None:
        source = 'text = """\n  # not a comment\n"""'
        assert strip_comments(source) == source

    def test_comment_after_closing_quote(self) -> None:
        assert strip_comments('s = """a\nb"""  # note') == 's = """a\nb"""'

    def test_comment_after_closing_quote_keeps_hash_in_string(self) -> None:
        source = 's = """a\n# b"""  # note\nt = 1'
        assert strip_comments(source) == 's = """a\n# b"""\nt = 1'

    def test_blank_edges_trimmed(self) -> None:
        assert strip_comments("\n\n1 + 2\n\n") == "1 + 2"


class TestIndent:
    def test_indents_code_lines(self) -> None:
        assert indent("a = 1\n\nb = 2") == "    a = 1\n\n    b = 2"

    def test_string_continuation_rows_kept(self) -> None:
        assert indent('x = """a\nb"""') == '    x = """a\nb"""'


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class TestClassify:
    @pytest.mark.parametrize("code", ["", "   \n\t", "# just a note", "# a\n\n# b"])
    def test_empty(self, code: str) -> None:
        assert classify(code).kind is SourceKind.EMPTY

    def test_declarations(self) -> None:
        result = classify("x: int = 1\ny, *rest = 2, 3, 4\nx = 5")
        assert result.kind is SourceKind.DECLARATIONS
        assert result.declared == ("x", "y", "rest")

    def test_attribute_target_is_statements(self) -> None:
        assert classify("obj.value = 1").kind is SourceKind.STATEMENTS

    def test_bare_annotation_is_statements(self) -> None:
        assert classify("x: int").kind is SourceKind.STATEMENTS

    def test_expression(self) -> None:
        result = classify("1 + 2;")
        assert result.kind is SourceKind.EXPRESSION
        assert result.body == "1 + 2"

    def test_two_expressions_are_statements(self) -> None:
        assert classify("foo(); bar()").kind is SourceKind.STATEMENTS

    def test_await_marks_async(self) -> None:
        result = classify("await asyncio.sleep(0)")
        assert result.kind is SourceKind.EXPRESSION
        assert result.is_async

    def test_async_comprehension_marks_async(self) -> None:
        assert classify("[x async for x in source]").is_async

    def test_nested_function_does_not_leak(self) -> None:
        result = classify("async def helper():\n    await x\n    yield 1\nhelper")
        assert not result.is_async
        assert not result.is_generator

    def test_yield_marks_generator(self) -> None:
        result = classify("while True:\n    yield 1")
        assert result.kind is SourceKind.STATEMENTS
        assert result.is_generator

    def test_bare_yield_expression_is_not_returned(self) -> None:
        assert classify("yield 1").kind is SourceKind.STATEMENTS


# ---------------------------------------------------------------------------
# Wrapping
# ---------------------------------------------------------------------------


class TestTransformNode:
    def test_expression_returned(self) -> None:
        assert _transform("expr", "1 + 2") == "def expr():\n    return 1 + 2"

    def test_declaration_returns_dict(self) -> None:
        assert _transform("decl", "x = 42") == 'def decl():\n    x = 42\n    return {"x": x}'

    def test_statements_verbatim(self) -> None:
        assert _transform("calls", "foo(); bar()") == "def calls():\n    foo(); bar()"

    def test_empty_body(self) -> None:
        assert _transform("empty", "") == "def empty():\n    pass"

    def test_lambda_returned_not_invoked(self) -> None:
        assert _transform("inc", "lambda x: x + 1") == "def inc():\n    return lambda x: x + 1"

    def test_dependencies_become_parameters(self) -> None:
        compiled = _transform("age", "(now - birthdate).days // 365", "birthdate", "now")
        assert compiled == "def age(birthdate, now):\n    return (now - birthdate).days // 365"

    def test_comments_stripped(self) -> None:
        assert _transform("total", "# sum\n1 + 2  # inline") == "def total():\n    return 1 + 2"

    def test_async_expression(self) -> None:
        compiled = _transform("later", "await asyncio.sleep(0, result=5)")
        assert compiled == "async def later():\n    return await asyncio.sleep(0, result=5)"

    def test_async_generator(self) -> None:
        compiled = _transform("ticks", "while True:\n    yield 1\n    await asyncio.sleep(1)")
        assert compiled == (
            "async def ticks():\n"
            "    while True:\n"
            "        yield 1\n"
            "        await asyncio.sleep(1)"
        )

    def test_multiline_string_preserved(self) -> None:
        compiled = _transform("doc", 'text = """a\n  b"""')
        assert compiled == 'def doc():\n    text = """a\n  b"""\n    return {"text": text}'

    def test_compiled_source_is_valid_python(self) -> None:
        compiled = _transform("config", "step = 2\nlabel = 'doubled'")
        namespace: dict[str, object] = {}
        exec(compiled, namespace)  # noqa: S102
        assert namespace["config"]() == {"step": 2, "label": "doubled"}  # type: ignore[operator]


class TestTransformErrors:
    def test_syntax_error_names_node(self) -> None:
        with pytest.raises(CompileError, match=r"Failed to transform node bad: .*\(line 1\)") as exc_info:
            _transform("bad", "1 +")
        assert exc_info.value.node_id == "bad"

    def test_unterminated_string(self) -> None:
        with pytest.raises(CompileError):
            _transform("bad", '"""open')

    def test_return_in_async_generator(self) -> None:
        with pytest.raises(CompileError, match="node gen"):
            _transform("gen", "yield 1\nawait asyncio.sleep(0)\nreturn 5")

    @pytest.mark.parametrize("node_id", ["my cell", "1st", "class"])
    def test_invalid_node_id(self, node_id: str) -> None:
        with pytest.raises(CompileError, match="not a valid identifier"):
            _transform(node_id, "1")

    def test_invalid_dependency(self) -> None:
        with pytest.raises(CompileError, match="dependency 'my input'"):
            _transform("a", "1", "my input")

    def test_duplicate_dependencies(self) -> None:
        with pytest.raises(CompileError, match="duplicate dependency"):
            _transform("a", "b", "b", "b")


class TestTransformBatch:
    def test_input_order(self) -> None:
        nodes = [CodeNode(id="b", code="a + 1", dependencies=("a",)), CodeNode(id="a", code="1")]
        result = SourceTransformer().transform(nodes)
        assert list(result) == ["b", "a"]
        assert result["b"] == "def b(a):\n    return a + 1"

    def test_fails_fast(self) -> None:
        nodes = [CodeNode(id="ok", code="1"), CodeNode(id="broken", code="(")]
        with pytest.raises(CompileError) as exc_info:
            SourceTransformer().transform(nodes)
        assert exc_info.value.node_id == "broken"
