"""
Unit tests for the CPython ``ast`` adapter.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from branchscope.coverage.python_ast import parse_python
from branchscope.coverage.types import RawNode


def _iter_raw(node: RawNode) -> Iterator[RawNode]:
    yield node
    for child in node.children:
        if isinstance(child, RawNode):
            yield from _iter_raw(child)


def _find(root: RawNode, kind: str) -> list[RawNode]:
    return [n for n in _iter_raw(root) if n.kind == kind]


class TestParsePython:
    def test_module_is_a_sequence(self):
        root = parse_python("x = 1\ny = 2\n")
        assert root.kind == "begin"
        assert [c.kind for c in root.children] == ["assign", "assign"]
        assert root.location.as_tuple() == (1, 0, 2, 5)

    def test_empty_module_has_no_location(self):
        root = parse_python("")
        assert root.children == ()
        assert root.location is None

    def test_if_statement(self):
        root = parse_python("if a:\n    b\nelse:\n    c\n")
        (node,) = _find(root, "if")
        assert node.location.keyword == "if"
        assert node.location.as_tuple() == (1, 0, 4, 5)
        condition, then_clause, else_clause = node.children
        assert condition.kind == "name" and condition.children == ("a",)
        assert then_clause.kind == "expr"
        assert else_clause.location.first_line == 4

    def test_if_without_else(self):
        (node,) = _find(parse_python("if a:\n    b\n"), "if")
        assert node.children[2] is None

    def test_multi_statement_body_is_wrapped(self):
        (node,) = _find(parse_python("if a:\n    b\n    c\n"), "if")
        assert node.children[1].kind == "begin"
        assert node.children[1].location.as_tuple() == (2, 4, 3, 5)

    def test_conditional_expression(self):
        (node,) = _find(parse_python("y = b if a else c\n"), "if")
        assert node.location.as_tuple() == (1, 4, 1, 17)
        assert [c.children[0] for c in node.children] == ["a", "b", "c"]

    def test_bool_op_is_left_folded(self):
        (expr,) = parse_python("a and b and c\n").children
        outer = expr.children[0]
        assert outer.kind == "and"
        inner, last = outer.children
        assert inner.kind == "and"
        assert last.children == ("c",)
        assert inner.location.as_tuple() == (1, 0, 1, 7)
        assert outer.location.as_tuple() == (1, 0, 1, 13)

    def test_while_loop(self):
        (node,) = _find(parse_python("while a:\n    b\n"), "while")
        assert node.location.keyword == "while"
        assert node.children[0].children == ("a",)
        assert node.children[2] is None

    def test_match_with_wildcard_has_else(self):
        source = "match x:\n    case 1:\n        a\n    case _:\n        b\n"
        (node,) = _find(parse_python(source), "case")
        subject, when, else_clause = node.children
        assert subject.children == ("x",)
        assert when.kind == "when"
        assert when.location.as_tuple() == (2, 9, 3, 9)
        assert else_clause.location.first_line == 5

    def test_match_without_wildcard_has_no_else(self):
        source = "match x:\n    case 1:\n        a\n    case 2 if y:\n        b\n"
        (node,) = _find(parse_python(source), "case")
        assert node.children[-1] is None
        guarded = node.children[2]
        assert len(guarded.children) == 3
        assert guarded.children[1].children == ("y",)

    def test_columns_are_characters(self):
        (expr,) = _find(parse_python("s = 'é' + x\n"), "name")[1:]
        assert expr.children == ("x",)
        assert expr.location.first_column == 10
        assert expr.location.begin == 10

    def test_only_real_line_breaks_count(self):
        source = 's = "a\u2028b\x0cc"\nif s:\n    pass\n'
        (node,) = _find(parse_python(source), "if")
        assert node.location.first_line == 2
        assert source[node.location.begin:node.location.end] == "if s:\n    pass"

    def test_syntax_error_propagates(self):
        with pytest.raises(SyntaxError):
            parse_python("if :\n")
