from __future__ import annotations

from decimal import Decimal

import pytest

from plc_ref import tree as ast
from plc_ref.parser import parse_expression, parse_source
from plc_ref.types import TYPE_INTEGER, TYPE_STRING, Variable


@pytest.mark.parametrize(
    "value, tag",
    [
        pytest.param(None, "NIL", id="nil"),
        pytest.param(True, "BOOLEAN", id="bool"),
        pytest.param(0, "INTEGER", id="int"),
        pytest.param(Decimal("2.50"), "DECIMAL", id="decimal"),
        pytest.param("x", "STRING", id="str"),
    ],
)
def test_literal_tags(value, tag: str) -> None:
    node = ast.literal(value)
    assert node.data == "literal"
    assert node.children == [tag, value]


def test_literal_rejects_floats() -> None:
    with pytest.raises(TypeError):
        ast.literal(1.5)


def test_char_literal_needs_one_character() -> None:
    assert ast.char_literal("q").children == ["CHARACTER", "q"]
    with pytest.raises(ValueError):
        ast.char_literal("qq")


def test_equality_ignores_positions_and_annotations() -> None:
    parsed = parse_expression("a + 1")
    ast.annotate(parsed, type=TYPE_INTEGER)

    assert parsed == ast.binary("+", ast.access("a"), ast.literal(1))
    assert ast.node_position(parsed) == 0
    assert ast.node_position(ast.access("a")) is None


def test_annotations_are_write_once() -> None:
    node = ast.access("a")
    var = Variable("a", TYPE_INTEGER)

    ast.annotate(node, type=TYPE_INTEGER, binding=var)
    assert ast.resolved_type(node) is TYPE_INTEGER
    assert ast.resolved_binding(node) is var

    with pytest.raises(ValueError):
        ast.annotate(node, type=TYPE_STRING)
    with pytest.raises(ValueError):
        ast.annotate(node, binding=Variable("a", TYPE_STRING))

    assert ast.resolved_type(node) is TYPE_INTEGER


def test_unannotated_nodes_read_none() -> None:
    node = ast.literal(1)
    assert ast.resolved_type(node) is None
    assert ast.resolved_binding(node) is None


def test_inspection_helpers() -> None:
    tree = parse_source("LET a = 1; LET b; DEF f() DO RETURN a; END DEF main() DO RETURN f() + 1; END")

    assert [str(f.children[0]) for f in ast.source_fields(tree)] == ["a", "b"]
    assert [str(m.children[0]) for m in ast.source_methods(tree)] == ["f", "main"]
    assert ast.count_labels(tree, "return_stmt") == 2
    assert ast.count_labels(tree, "literal") == 2

    found = ast.find_tree_by_label(tree, {"function"})
    assert found is not None
    assert str(found.children[1]) == "f"
    assert ast.find_tree_by_label(tree, {"while_stmt"}) is None


def test_statement_and_expression_labels() -> None:
    stmt = ast.return_stmt(ast.literal(1))
    assert ast.is_statement(stmt)
    assert not ast.is_expression(stmt)
    assert ast.is_expression(stmt.children[0])
    assert ast.tree_label(ast.literal(1)) == "literal"
    assert ast.tree_label("text") is None
