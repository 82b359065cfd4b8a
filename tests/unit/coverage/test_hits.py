"""
Unit tests for the in-memory raw hit-count source (HitTable).
"""

from __future__ import annotations

import pytest

from branchscope.coverage.builder import build_tree
from branchscope.coverage.errors import HitSourceError
from branchscope.coverage.hits import HitCountSource, HitTable, ZeroTripSource
from branchscope.coverage.ranges import SourceRange
from branchscope.coverage.source import SourceBuffer
from branchscope.coverage.types import RawNode


def _make_and_tree(source: str = "123 && 45") -> tuple[SourceBuffer, RawNode]:
    buf = SourceBuffer(source)
    left = RawNode("int", [123], buf.locate("123"))
    right = RawNode("int", [45], buf.locate("45"))
    return buf, RawNode("and", [left, right], buf.location(0, len(source), keyword="&&"))


class TestHitTable:
    def test_satisfies_protocol(self):
        assert isinstance(HitTable(), HitCountSource)

    def test_unknown_range_reports_zero(self):
        assert HitTable().hits_for_range(SourceRange(0, 3)) == 0

    def test_ranges_sharing_a_start_are_distinct(self):
        table = HitTable({(0, 9): 4, (0, 3): 1})
        assert table.hits_for_range(SourceRange(0, 9)) == 4
        assert table.hits_for_range(SourceRange(0, 3)) == 1

    def test_record_accumulates(self):
        table = HitTable()
        table.record((2, 5), 2)
        table.record((2, 5), 3, completed=4)
        assert table.hits_for_range(SourceRange(2, 5)) == 5
        assert table.completions_for_range(SourceRange(2, 5)) == 4

    def test_completions_absent_by_default(self):
        table = HitTable({(0, 1): 3})
        assert table.completions_for_range(SourceRange(0, 1)) is None

    def test_negative_counts_rejected(self):
        with pytest.raises(ValueError, match=">= 0"):
            HitTable({(0, 1): -1})
        with pytest.raises(ValueError, match=">= 0"):
            HitTable(completions={(0, 1): -2})

    def test_len_counts_ranges(self):
        assert len(HitTable({(0, 1): 1, (1, 2): 0})) == 2


class TestHitsAt:
    def test_widest_range_starting_at_position(self):
        buf = SourceBuffer("x = 1\n123 && 45\n")
        table = HitTable({(6, 15): 2, (6, 9): 7}, buffer=buf)
        assert table.hits_at(2, 0) == 2

    def test_nothing_recorded_at_position(self):
        buf = SourceBuffer("abc")
        assert HitTable(buffer=buf).hits_at(1, 1) == 0

    def test_requires_buffer(self):
        with pytest.raises(HitSourceError, match="no source buffer"):
            HitTable().hits_at(1, 0)

    def test_bad_line_is_a_hit_source_error(self):
        buf = SourceBuffer("abc")
        with pytest.raises(HitSourceError, match="out of range"):
            HitTable(buffer=buf).hits_at(9, 0)


class TestFromMarkers:
    def test_marker_attributed_to_owning_node(self):
        buf, raw = _make_and_tree()
        root = build_tree(raw)
        # offset 4 is the "&&" operator: owned by the `and` node itself
        # offset 7 is the start of "45": owned by the right operand
        table = HitTable.from_markers(root, {4: 1, 7: 1, 0: 1})
        assert table.hits_for_range(SourceRange(0, 9)) == 1
        assert table.hits_for_range(SourceRange(7, 9)) == 1
        assert table.hits_for_range(SourceRange(0, 3)) == 1

    def test_markers_outside_tree_are_dropped(self):
        _, raw = _make_and_tree()
        root = build_tree(raw)
        table = HitTable.from_markers(root, {50: 3})
        assert len(table) == 0


class TestZeroTrips:
    def test_table_is_a_zero_trip_source(self):
        assert isinstance(HitTable(), ZeroTripSource)

    def test_zero_trips_recorded_per_range(self):
        table = HitTable({(0, 19): 2}, zero_trips={(0, 19): 1})
        table.record((0, 19), 1, zero_trips=2)
        assert table.zero_trips_for_range(SourceRange(0, 19)) == 3
        assert table.zero_trips_for_range(SourceRange(0, 5)) is None
        assert len(table) == 1

    def test_negative_zero_trips_rejected(self):
        with pytest.raises(ValueError, match="zero-trip"):
            HitTable(zero_trips={(0, 1): -1})
