"""
BranchScope — Coverage Context

One CoverageContext per analysed source unit. It owns:
  - the node arena: every AugmentedNode registered under its id
  - the monotonically increasing node-id counter (ids follow pre-order
    construction and are never reused)
  - the line-hit table filled by the line projector
  - the raw hit-count source node queries read from

Nodes hold their parent as an id into the arena, never as an owning
reference; the arena lives exactly as long as the context.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from branchscope.coverage.errors import CoverageError, HitSourceError
from branchscope.coverage.hits import HitCountSource, HitTable, ZeroTripSource
from branchscope.coverage.ranges import SourceRange

if TYPE_CHECKING:
    from branchscope.coverage.nodes import AugmentedNode


class CoverageContext:
    """Per-unit state threaded through tree construction and analysis."""

    def __init__(self, hits: HitCountSource | None = None, *, unit: str = "") -> None:
        self.unit = unit
        self._hits: HitCountSource = hits if hits is not None else HitTable()
        self._next_id = 0
        self._arena: dict[int, AugmentedNode] = {}
        self._line_hits: dict[int, int] = {}

    # ── Node arena ───────────────────────────────────────────────────────────

    def register(self, node: AugmentedNode) -> int:
        """Allocate the next node id and store ``node`` under it."""
        node_id = self._next_id
        self._next_id += 1
        self._arena[node_id] = node
        return node_id

    def node(self, node_id: int) -> AugmentedNode:
        return self._arena[node_id]

    def nodes(self) -> Iterator[AugmentedNode]:
        """Registered nodes in id order."""
        return iter(self._arena.values())

    @property
    def node_count(self) -> int:
        return self._next_id

    # ── Hit source ───────────────────────────────────────────────────────────

    @property
    def hits(self) -> HitCountSource:
        return self._hits

    def use_hits(self, hits: HitCountSource) -> None:
        """Point node run-count queries at a (new) raw hit-count source."""
        self._hits = hits

    def runs_for(self, source_range: SourceRange) -> int:
        return self._ask("hits_for_range", source_range)

    def completions_for(self, source_range: SourceRange) -> int | None:
        return self._ask("completions_for_range", source_range)

    def zero_trips_for(self, source_range: SourceRange) -> int | None:
        """Zero-iteration entries of a loop, when the hit source records them."""
        if not isinstance(self._hits, ZeroTripSource):
            return None
        return self._ask("zero_trips_for_range", source_range)

    def _ask(self, query: str, source_range: SourceRange) -> Any:
        """
        Run one hit-source query. Whatever the source raises (a decoding
        failure reading instrumented output, a closed backend ...) surfaces
        as HitSourceError so it abandons the unit instead of a label.
        """
        try:
            return getattr(self._hits, query)(source_range)
        except CoverageError:
            raise
        except Exception as exc:
            unit = self.unit or "<unit>"
            raise HitSourceError(
                f"{unit}: {query}({source_range.begin}, {source_range.end}) "
                f"failed: {type(exc).__name__}: {exc}"
            ) from exc

    # ── Line hits ────────────────────────────────────────────────────────────

    def line_hit(self, line: int, runs: int) -> None:
        """
        Record ``runs`` for ``line``. Several nodes starting on the same line
        merge to the largest count; counts are never summed.
        """
        current = self._line_hits.get(line)
        if current is None or runs > current:
            self._line_hits[line] = runs

    @property
    def line_hits(self) -> dict[int, int]:
        return dict(self._line_hits)

    def reset_line_hits(self) -> None:
        self._line_hits.clear()
