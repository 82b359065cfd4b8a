"""
BranchScope — Python Source Adapter

Converts a CPython ``ast`` tree into the raw tree vocabulary the engine
understands, so Python sources can be analysed without another parser.

  If / IfExp         → if        (condition, then, else)
  BoolOp And / Or    → and / or  (left-folded into binary nodes)
  While              → while     (condition, body, else block)
  Match / match_case → case / when; a final unguarded ``case _:``
                       becomes the case's else clause
  statement lists    → begin     (a single statement is not wrapped)
  Name / Constant    → name / constant with the identifier / value as leaf
  anything else      → lower-cased AST class name, located children only

Nodes without a location (expression contexts, operators, ``arguments``,
comprehensions) are flattened into their located descendants. Columns
reported by ``ast`` are UTF-8 byte offsets and are converted to
character columns through the SourceBuffer.
"""

from __future__ import annotations

import ast
from typing import Any

import structlog

from branchscope.coverage.source import SourceBuffer
from branchscope.coverage.types import RawNode, SourceLocation

logger = structlog.get_logger(system="coverage.python_ast")


def _has_location(node: ast.AST) -> bool:
    return getattr(node, "end_lineno", None) is not None and hasattr(node, "col_offset")


def _is_wildcard(case: ast.match_case) -> bool:
    pattern = case.pattern
    return (
        case.guard is None
        and isinstance(pattern, ast.MatchAs)
        and pattern.pattern is None
        and pattern.name is None
    )


class _PythonTreeConverter:
    """Walks a parsed Python module and emits RawNodes."""

    def __init__(self, buffer: SourceBuffer) -> None:
        self._buffer = buffer

    # ── Locations ────────────────────────────────────────────────────────────

    def _begin(self, node: ast.AST) -> int:
        line = node.lineno  # type: ignore[attr-defined]
        return self._buffer.offset(line, self._buffer.char_column(line, node.col_offset))  # type: ignore[attr-defined]

    def _end(self, node: ast.AST) -> int:
        line = node.end_lineno  # type: ignore[attr-defined]
        return self._buffer.offset(line, self._buffer.char_column(line, node.end_col_offset))  # type: ignore[attr-defined]

    def _location(self, node: ast.AST, keyword: str | None = None) -> SourceLocation | None:
        if not _has_location(node):
            return None
        return self._buffer.location(self._begin(node), self._end(node), keyword=keyword)

    def _spanning(self, first: ast.AST, last: ast.AST, keyword: str | None = None) -> SourceLocation:
        return self._buffer.location(self._begin(first), self._end(last), keyword=keyword)

    # ── Structure ────────────────────────────────────────────────────────────

    def module(self, tree: ast.Module) -> RawNode:
        body = [self.convert(stmt) for stmt in tree.body]
        location = self._spanning(tree.body[0], tree.body[-1]) if tree.body else None
        return RawNode("begin", body, location)

    def sequence(self, stmts: list[ast.stmt]) -> RawNode | None:
        if not stmts:
            return None
        if len(stmts) == 1:
            return self.convert(stmts[0])
        return RawNode("begin", [self.convert(s) for s in stmts], self._spanning(stmts[0], stmts[-1]))

    def children(self, node: ast.AST) -> list[Any]:
        out: list[Any] = []
        for child in ast.iter_child_nodes(node):
            if _has_location(child):
                out.append(self.convert(child))
            else:
                out.extend(self.children(child))
        return out

    def convert(self, node: ast.AST) -> RawNode:
        match node:
            case ast.If(test=test, body=body, orelse=orelse):
                return RawNode(
                    "if",
                    [self.convert(test), self.sequence(body), self.sequence(orelse)],
                    self._location(node, "if"),
                )
            case ast.IfExp(test=test, body=body, orelse=orelse):
                return RawNode(
                    "if",
                    [self.convert(test), self.convert(body), self.convert(orelse)],
                    self._location(node, "if"),
                )
            case ast.BoolOp(op=op, values=values):
                return self._bool_op("and" if isinstance(op, ast.And) else "or", values)
            case ast.While(test=test, body=body, orelse=orelse):
                return RawNode(
                    "while",
                    [self.convert(test), self.sequence(body), self.sequence(orelse)],
                    self._location(node, "while"),
                )
            case ast.Match(subject=subject, cases=cases):
                return self._match(node, subject, cases)
            case ast.Name(id=name):
                return RawNode("name", [name], self._location(node))
            case ast.Constant(value=value):
                return RawNode("constant", [value], self._location(node))
            case ast.Attribute(value=value, attr=attr):
                return RawNode("attribute", [self.convert(value), attr], self._location(node))
            case _:
                return RawNode(type(node).__name__.lower(), self.children(node), self._location(node))

    def _bool_op(self, kind: str, values: list[ast.expr]) -> RawNode:
        first = values[0]
        folded = self.convert(first)
        for value in values[1:]:
            folded = RawNode(kind, [folded, self.convert(value)], self._spanning(first, value, kind))
        return folded

    def _match(self, node: ast.Match, subject: ast.expr, cases: list[ast.match_case]) -> RawNode:
        else_body: RawNode | None = None
        if cases and _is_wildcard(cases[-1]):
            else_body = self.sequence(cases[-1].body)
            cases = cases[:-1]

        whens: list[RawNode] = []
        for case in cases:
            conditions = [self.convert(case.pattern)]
            if case.guard is not None:
                conditions.append(self.convert(case.guard))
            whens.append(RawNode(
                "when",
                [*conditions, self.sequence(case.body)],
                self._spanning(case.pattern, case.body[-1], "case"),
            ))
        return RawNode("case", [self.convert(subject), *whens, else_body], self._location(node, "match"))


def parse_python(source: str, filename: str = "<unknown>") -> RawNode:
    """Parse Python ``source`` into a raw tree. SyntaxError propagates."""
    tree = ast.parse(source, filename=filename)
    raw = _PythonTreeConverter(SourceBuffer(source, filename)).module(tree)
    logger.debug("python_source_converted", filename=filename, statements=len(tree.body))
    return raw
