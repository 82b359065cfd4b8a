"""
BranchScope — Raw Hit-Count Source

The engine never captures execution counts itself. Whatever instrumented
the program hands over an object satisfying HitCountSource; HitTable is
the in-memory implementation used by the service and the tests.

Counts are keyed by the full ``[begin, end)`` range of the node they
belong to, so a controlling expression and the clause body that starts
at the same offset stay distinct.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Protocol, runtime_checkable

import structlog

from branchscope.coverage.errors import HitSourceError
from branchscope.coverage.ranges import SourceRange
from branchscope.coverage.types import WalkOrder

if TYPE_CHECKING:
    from branchscope.coverage.nodes import AugmentedNode
    from branchscope.coverage.source import SourceBuffer

logger = structlog.get_logger(system="coverage.hits")


@runtime_checkable
class HitCountSource(Protocol):
    """Read-only view of raw execution counts for one source unit."""

    def hits_for_range(self, source_range: SourceRange) -> int: ...

    def completions_for_range(self, source_range: SourceRange) -> int | None: ...

    def hits_at(self, line: int, column: int) -> int: ...


@runtime_checkable
class ZeroTripSource(Protocol):
    """
    Optional extension of HitCountSource: how many times a pre-test loop
    was entered and left without running its body. Without it the skip
    count of a loop is a lower bound.
    """

    def zero_trips_for_range(self, source_range: SourceRange) -> int | None: ...


class HitTable:
    """
    In-memory HitCountSource.

    ``runs`` maps a range to the number of times control reached it;
    ``completions`` optionally maps a range to the number of times it ran
    to completion, ``zero_trips`` a loop range to its zero-iteration
    entries. Unknown ranges report zero runs and no completion or
    zero-trip data.
    """

    def __init__(
        self,
        runs: Mapping[tuple[int, int], int] | None = None,
        completions: Mapping[tuple[int, int], int] | None = None,
        *,
        zero_trips: Mapping[tuple[int, int], int] | None = None,
        buffer: SourceBuffer | None = None,
    ) -> None:
        self._runs: dict[SourceRange, int] = {}
        self._completions: dict[SourceRange, int] = {}
        self._zero_trips: dict[SourceRange, int] = {}
        self._buffer = buffer
        for source_range, count in (runs or {}).items():
            self.record(source_range, count)
        for source_range, count in (completions or {}).items():
            self._set_completion(SourceRange(*source_range), count)
        for source_range, count in (zero_trips or {}).items():
            self._set_zero_trips(SourceRange(*source_range), count)

    def __len__(self) -> int:
        return len(self._runs)

    def __repr__(self) -> str:
        return f"HitTable(ranges={len(self._runs)}, completions={len(self._completions)})"

    # ── Recording ────────────────────────────────────────────────────────────

    def record(
        self,
        source_range: tuple[int, int],
        count: int = 1,
        *,
        completed: int | None = None,
        zero_trips: int | None = None,
    ) -> None:
        """
        Add ``count`` runs to a range, and optionally ``completed``
        completions and ``zero_trips`` zero-iteration loop entries.
        """
        if count < 0:
            raise ValueError(f"hit count must be >= 0, got {count}")
        key = SourceRange(*source_range)
        self._runs[key] = self._runs.get(key, 0) + count
        if completed is not None:
            self._set_completion(key, self._completions.get(key, 0) + completed)
        if zero_trips is not None:
            self._set_zero_trips(key, self._zero_trips.get(key, 0) + zero_trips)

    def _set_completion(self, key: SourceRange, count: int) -> None:
        if count < 0:
            raise ValueError(f"completion count must be >= 0, got {count}")
        self._completions[key] = count

    def _set_zero_trips(self, key: SourceRange, count: int) -> None:
        if count < 0:
            raise ValueError(f"zero-trip count must be >= 0, got {count}")
        self._zero_trips[key] = count

    @classmethod
    def from_markers(
        cls,
        root: AugmentedNode,
        markers: Mapping[int, int],
        *,
        buffer: SourceBuffer | None = None,
    ) -> HitTable:
        """
        Build a table from instrumentation markers placed at source offsets.

        Each marker is attributed to the node whose proper range owns its
        offset; markers outside every proper range are dropped.
        """
        table = cls(buffer=buffer)
        owners: dict[int, SourceRange] = {}
        for node in root.walk(WalkOrder.POST):
            if node.range is None:
                continue
            for offset in node.proper_range():
                owners.setdefault(offset, node.range)

        dropped = 0
        for offset, count in markers.items():
            owner = owners.get(offset)
            if owner is None:
                dropped += 1
                continue
            table.record(owner, count)

        if dropped:
            logger.debug("markers_unattributed", dropped=dropped, total=len(markers))
        return table

    # ── HitCountSource ───────────────────────────────────────────────────────

    def hits_for_range(self, source_range: SourceRange) -> int:
        return self._runs.get(SourceRange(*source_range), 0)

    def completions_for_range(self, source_range: SourceRange) -> int | None:
        return self._completions.get(SourceRange(*source_range))

    def zero_trips_for_range(self, source_range: SourceRange) -> int | None:
        return self._zero_trips.get(SourceRange(*source_range))

    def hits_at(self, line: int, column: int) -> int:
        """Runs of the widest recorded range starting at (line, column)."""
        if self._buffer is None:
            raise HitSourceError("HitTable has no source buffer; cannot resolve line/column")
        try:
            offset = self._buffer.offset(line, column)
        except ValueError as exc:
            raise HitSourceError(str(exc)) from exc
        starting = [r for r in self._runs if r.begin == offset]
        if not starting:
            return 0
        return self._runs[max(starting, key=lambda r: r.end)]
