"""
BranchScope — Line Coverage Projector

Projects node run counts onto source lines. Each located, executable node
reports its run count at its first line through the context's line-hit
table; nodes sharing a line merge to the largest count so a parent and a
child on the same line are never double-counted. Non-executable nodes
record nothing but their children are still visited.
"""

from __future__ import annotations

from collections.abc import Iterator

from branchscope.coverage.hits import HitCountSource
from branchscope.coverage.nodes import AugmentedNode
from branchscope.coverage.types import LineHit, WalkOrder


class LineCoverageProjector:
    def __init__(self, root: AugmentedNode, hits: HitCountSource | None = None) -> None:
        self._root = root
        if hits is not None:
            root.context.use_hits(hits)

    def project(self) -> Iterator[LineHit]:
        """Yield (line, hits) in line order. Each call re-projects from scratch."""
        context = self._root.context
        context.reset_line_hits()
        for node in self._root.walk(WalkOrder.PRE):
            if node.location is None or not node.is_executable():
                continue
            context.line_hit(node.location.first_line, node.run_count())
        for line, hits in sorted(context.line_hits.items()):
            yield LineHit(line=line, hits=hits)

    def line_array(self, line_count: int) -> list[int | None]:
        """Dense per-line view: index ``n`` holds line ``n + 1``; None = not executable."""
        dense: list[int | None] = [None] * line_count
        for line_hit in self.project():
            if 1 <= line_hit.line <= line_count:
                dense[line_hit.line - 1] = line_hit.hits
        return dense


def project_lines(root: AugmentedNode, hits: HitCountSource | None = None) -> list[LineHit]:
    return list(LineCoverageProjector(root, hits).project())
