"""
BranchScope — Range Utilities

Interval arithmetic over source-character offsets. Ranges are half-open
``[begin, end)``. Nodes without a concrete location have no range and
contribute nothing to any computation here.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, NamedTuple


class SourceRange(NamedTuple):
    """Half-open span of character offsets into the original source."""

    begin: int
    end: int

    @property
    def size(self) -> int:
        return max(0, self.end - self.begin)

    def offsets(self) -> range:
        return range(self.begin, self.end)

    def covers(self, offset: int) -> bool:
        return self.begin <= offset < self.end


def node_range(node: Any) -> SourceRange | None:
    """Range of a raw or augmented node, or None for synthetic nodes."""
    location = getattr(node, "location", None)
    if location is None:
        return None
    return location.range


def contains(outer: SourceRange, inner: SourceRange) -> bool:
    """True iff ``inner`` lies entirely within ``outer``."""
    return outer.begin <= inner.begin and inner.end <= outer.end


def subtract(source_range: SourceRange, others: Iterable[SourceRange | None]) -> frozenset[int]:
    """
    Offsets of ``source_range`` not covered by any of ``others``.

    ``None`` entries (children lacking a location) are ignored.
    """
    remaining = set(source_range.offsets())
    for other in others:
        if other is None:
            continue
        remaining.difference_update(other.offsets())
    return frozenset(remaining)
