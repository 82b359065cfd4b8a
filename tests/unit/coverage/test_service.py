"""
Unit tests for CoverageService: single-unit results and multi-unit runs
with per-unit failure isolation.
"""

from __future__ import annotations

import pytest

from branchscope.config import AnalysisConfig
from branchscope.coverage.errors import HitSourceError
from branchscope.coverage.hits import HitTable
from branchscope.coverage.python_ast import parse_python
from branchscope.coverage.service import CoverageService
from branchscope.coverage.source import SourceBuffer
from branchscope.coverage.types import BranchKind, RawNode, SourceUnit

PY_SOURCE = "if a:\n    b\nelse:\n    c\n"


def _make_and() -> RawNode:
    buf = SourceBuffer("123 && 45")
    return RawNode(
        "and",
        [RawNode("int", [123], buf.locate("123")), RawNode("int", [45], buf.locate("45"))],
        buf.location(0, 9),
    )


class _UndecodableSource:
    def hits_for_range(self, source_range):
        raise UnicodeDecodeError("utf-8", b"\xfe", 0, 1, "invalid start byte")

    def completions_for_range(self, source_range):
        return None

    def hits_at(self, line, column):
        return 0


class _FailingSource:
    def hits_for_range(self, source_range):
        raise HitSourceError("counter backend unavailable")

    def completions_for_range(self, source_range):
        return None

    def hits_at(self, line, column):
        raise HitSourceError("counter backend unavailable")


class TestAnalyse:
    def test_result_carries_lines_and_branches(self):
        result = CoverageService().analyse(
            _make_and(), HitTable({(0, 9): 1, (0, 3): 1, (7, 9): 1}), unit="one.rb"
        )
        assert result.unit == "one.rb"
        assert result.node_count == 3
        assert result.line_map() == {1: 1}
        assert result.branch_map() == {
            ("&&", 0, 1, 0, 1, 9): {
                ("then", 3, 1, 7, 1, 9): 1,
                ("else", 4, 1, 0, 1, 9): 0,
            },
        }

    def test_python_source_end_to_end(self):
        buf = SourceBuffer(PY_SOURCE)
        hits = HitTable({
            (0, len(PY_SOURCE) - 1): 2,
            buf.locate("a").range: 2,
            buf.locate("b").range: 1,
            buf.locate("c").range: 1,
        })
        result = CoverageService().analyse(parse_python(PY_SOURCE), hits)
        (entry,) = result.branches
        assert entry.key.kind is BranchKind.IF
        assert [(o.label.value, o.hits) for o in entry.outcomes] == [("then", 1), ("else", 1)]
        assert result.line_map() == {1: 2, 2: 1, 4: 1}

    def test_pre_order_config(self):
        source = "a && b || c"
        buf = SourceBuffer(source)
        inner = RawNode(
            "and",
            [RawNode("lvar", ["a"], buf.locate("a")), RawNode("lvar", ["b"], buf.locate("b"))],
            buf.location(0, 6),
        )
        raw = RawNode("or", [inner, RawNode("lvar", ["c"], buf.locate("c"))], buf.location(0, 11))
        service = CoverageService(AnalysisConfig(branch_order="pre"))
        result = service.analyse(raw)
        assert [e.key.kind for e in result.branches] == [BranchKind.OR, BranchKind.AND]

    def test_hit_source_failure_propagates(self):
        with pytest.raises(HitSourceError):
            CoverageService().analyse(_make_and(), _FailingSource())


class TestAnalyseUnits:
    def test_failing_unit_is_isolated(self):
        units = [
            SourceUnit(name="good.rb", tree=_make_and(), hits=HitTable({(0, 9): 1})),
            SourceUnit(name="bad.rb", tree=_make_and(), hits=_FailingSource()),
            SourceUnit(name="also_good.rb", tree=_make_and()),
        ]
        run = CoverageService().analyse_units(units)
        assert set(run.results) == {"good.rb", "also_good.rb"}
        assert not run.succeeded
        (failure,) = run.failures
        assert failure.unit == "bad.rb"
        assert failure.error_type == "HitSourceError"
        assert "unavailable" in failure.message

    def test_units_get_independent_indices(self):
        units = [SourceUnit(name=f"u{i}.rb", tree=_make_and()) for i in range(2)]
        run = CoverageService().analyse_units(units)
        assert run.succeeded
        first, second = (run.results[f"u{i}.rb"] for i in range(2))
        assert first.branch_map() == second.branch_map()
        assert run.run_id

    def test_undecodable_hit_source_fails_only_its_unit(self):
        units = [
            SourceUnit(name="bad.rb", tree=_make_and(), hits=_UndecodableSource()),
            SourceUnit(name="good.rb", tree=_make_and(), hits=HitTable({(0, 9): 1})),
        ]
        run = CoverageService().analyse_units(units)
        assert set(run.results) == {"good.rb"}
        (failure,) = run.failures
        assert failure.unit == "bad.rb"
        assert failure.error_type == "HitSourceError"
        assert "UnicodeDecodeError" in failure.message


class TestDeepTrees:
    def test_long_or_chain(self):
        operands = 1200
        source = "x = " + " or ".join(f"a{i}" for i in range(operands)) + "\n"
        result = CoverageService().analyse(parse_python(source), unit="chain.py")
        assert len(result.branches) == operands - 1
        assert {e.key.kind for e in result.branches} == {BranchKind.OR}
        assert result.line_map() == {1: 0}
