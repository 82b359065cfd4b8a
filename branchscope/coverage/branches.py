"""
BranchScope — Branch Coverage Analyser

Walks an augmented tree and emits one BranchEntry per branching
construct, with outcome labels and hit counts that match what a mature
runtime reports for the same control flow, whatever spelling the source
used.

Label table
-----------
  if / unless / ternary    then, else   (unless: clauses swapped first)
  case / when              when × n, else only when the clause exists
  && / || / &.             then, else
  while / until            body, skip   (until: negated condition)
  begin..end while/until   body

Counting
--------
Clause counts are the clause node's entry count. A clause that is absent
(no child, or a child without location) is derived from the controlling
expression instead:

  if      then/else missing → completed condition runs − the other label
  &&      then = right operand entries, else = left completions − then
  ||      else = right operand entries, then = left completions − else
  &.      then = selector hits,         else = receiver completions − then
  when    empty body → times tested − times the next clause was tested
  while   skip = recorded zero-trip entries, else
          loop entries − body                (a lower bound)

Indexing
--------
A key's index is its construct's node id. Outcome indices are allocated
from a counter that starts at the context's node count, so no index of
one analysis can repeat. The closing check re-verifies that no two
entries share a discriminator and no index repeats.
"""

from __future__ import annotations

from collections.abc import Iterator
from itertools import count
from typing import Any

import structlog

from branchscope.coverage.errors import DiscriminatorCollisionError, HitSourceError
from branchscope.coverage.hits import HitCountSource
from branchscope.coverage.nodes import (
    AndNode,
    AugmentedNode,
    CaseNode,
    ConditionalNode,
    OrNode,
    PostLoopNode,
    SafeNavigationNode,
    WhileNode,
    is_located,
)
from branchscope.coverage.types import (
    BranchEntry,
    BranchKey,
    BranchLabel,
    BranchOutcome,
    SourceSpan,
    WalkOrder,
)

logger = structlog.get_logger(system="coverage.branches")

# Errors from malformed construct shapes; absorbed into a zero count
_LABEL_ERRORS = (IndexError, TypeError, ValueError, AttributeError)


def _own_span(node: AugmentedNode) -> SourceSpan:
    return SourceSpan(**node.location.model_dump(include=set(SourceSpan.model_fields)))


def _span(node: AugmentedNode | None, fallback: SourceSpan) -> SourceSpan:
    return _own_span(node) if is_located(node) else fallback


def _entries(node: AugmentedNode | None) -> int | None:
    """Entry count of a present clause, None for an absent one."""
    return node.entry_count() if is_located(node) else None


def _remainder(total: int, taken: int) -> int:
    return max(0, total - taken)


class BranchCoverageAnalyser:
    """
    Branch coverage for one augmented tree.

    Usage::

        analyser = BranchCoverageAnalyser(root, hits)
        for entry in analyser.results():
            ...

    Each ``results()`` call performs a fresh, deterministic analysis.
    """

    def __init__(
        self,
        root: AugmentedNode,
        hits: HitCountSource | None = None,
        *,
        order: WalkOrder | str = WalkOrder.POST,
        verify: bool = True,
    ) -> None:
        self._root = root
        self._order = WalkOrder(order)
        self._verify = verify
        if hits is not None:
            root.context.use_hits(hits)

    def results(self) -> list[BranchEntry]:
        entries = list(self.iter_results())
        if self._verify:
            self.verify_unique(entries)
        logger.debug(
            "branch_analysis_complete",
            unit=self._root.context.unit,
            constructs=len(entries),
            outcomes=sum(len(e.outcomes) for e in entries),
        )
        return entries

    def iter_results(self) -> Iterator[BranchEntry]:
        """Lazily analyse constructs in walk order (no uniqueness check)."""
        indices = count(self._root.context.node_count)
        for node in self._root.walk_branches(self._order):
            entry = self._analyse(node, indices)
            if entry is not None:
                yield entry

    # ── Per-construct analysis ───────────────────────────────────────────────

    def _analyse(self, node: AugmentedNode, indices: Iterator[int]) -> BranchEntry | None:
        if node.location is None:
            return None
        whole = _own_span(node)

        match node:
            case ConditionalNode():
                outcomes = self._conditional(node, whole)
            case CaseNode():
                outcomes = self._case(node, whole)
            case AndNode() | OrNode():
                outcomes = self._short_circuit(node, whole)
            case SafeNavigationNode():
                outcomes = self._safe_navigation(node, whole)
            case WhileNode():
                outcomes = self._pre_test_loop(node, whole)
            case PostLoopNode():
                outcomes = self._post_test_loop(node, whole)
            case _:
                outcomes = None

        if outcomes is None:
            logger.debug("construct_not_a_branch", node_id=node.id, kind=node.kind)
            return None

        key = BranchKey(kind=node.branch_kind, index=node.id, node_id=node.id, span=whole)
        return BranchEntry(
            key=key,
            outcomes=[
                BranchOutcome(label=label, index=next(indices), clause=clause, span=span, hits=hits)
                for label, clause, span, hits in outcomes
            ],
        )

    def _guarded(self, node: AugmentedNode, label: str, compute: Any, default: Any = 0) -> Any:
        """Run one label computation; malformed shapes fall back to ``default``."""
        try:
            return compute()
        except HitSourceError:
            raise
        except _LABEL_ERRORS as exc:
            logger.warning(
                "branch_label_defaulted",
                node_id=node.id,
                kind=node.kind,
                label=label,
                error=str(exc),
            )
            return default

    def _conditional(self, node: ConditionalNode, whole: SourceSpan) -> list[tuple] | None:
        if not is_located(node.condition):
            return None
        then_clause, else_clause = node.then_clause, node.else_clause

        def counts() -> tuple[int, int]:
            evaluations = node.condition.full_run_count()
            then_hits, else_hits = _entries(then_clause), _entries(else_clause)
            if then_hits is None and else_hits is None:
                return 0, evaluations
            if then_hits is None:
                return _remainder(evaluations, else_hits), else_hits
            if else_hits is None:
                return then_hits, _remainder(evaluations, then_hits)
            return then_hits, else_hits

        then_hits, else_hits = self._pair(node, counts)
        return [
            (BranchLabel.THEN, None, _span(then_clause, whole), then_hits),
            (BranchLabel.ELSE, None, _span(else_clause, whole), else_hits),
        ]

    def _case(self, node: CaseNode, whole: SourceSpan) -> list[tuple] | None:
        whens = node.when_clauses
        if not whens:
            return None
        else_clause = node.else_clause
        outcomes: list[tuple] = []

        for position, when in enumerate(whens):
            def when_hits(position: int = position, when: Any = when) -> int:
                body_hits = _entries(when.body)
                if body_hits is not None:
                    return body_hits
                if position + 1 < len(whens):
                    return _remainder(when.tested_count(), whens[position + 1].tested_count())
                if is_located(else_clause):
                    return _remainder(when.tested_count(), else_clause.entry_count())
                return 0

            outcomes.append((
                BranchLabel.WHEN,
                position,
                _span(when.body, _span(when, whole)),
                self._guarded(node, BranchLabel.WHEN.value, when_hits),
            ))

        if else_clause is not None:
            outcomes.append((
                BranchLabel.ELSE,
                None,
                _span(else_clause, whole),
                self._guarded(node, BranchLabel.ELSE.value, lambda: _entries(else_clause) or 0),
            ))
        return outcomes

    def _short_circuit(self, node: AndNode | OrNode, whole: SourceSpan) -> list[tuple] | None:
        left, right = node.left, node.right
        if not is_located(left):
            return None
        right_span = _span(right, whole)

        def counts() -> tuple[int, int]:
            right_hits = _entries(right) or 0
            rest = _remainder(left.full_run_count(), right_hits)
            return (right_hits, rest) if isinstance(node, AndNode) else (rest, right_hits)

        then_hits, else_hits = self._pair(node, counts)
        if isinstance(node, AndNode):
            return [
                (BranchLabel.THEN, None, right_span, then_hits),
                (BranchLabel.ELSE, None, whole, else_hits),
            ]
        return [
            (BranchLabel.THEN, None, whole, then_hits),
            (BranchLabel.ELSE, None, right_span, else_hits),
        ]

    def _safe_navigation(self, node: SafeNavigationNode, whole: SourceSpan) -> list[tuple] | None:
        receiver = node.receiver
        if not is_located(receiver):
            return None

        def counts() -> tuple[int, int]:
            called = node.call_count()
            return called, _remainder(receiver.full_run_count(), called)

        then_hits, else_hits = self._pair(node, counts)
        return [
            (BranchLabel.THEN, None, whole, then_hits),
            (BranchLabel.ELSE, None, whole, else_hits),
        ]

    def _pre_test_loop(self, node: WhileNode, whole: SourceSpan) -> list[tuple] | None:
        condition, body = node.condition, node.body
        if not is_located(condition):
            return None

        def counts() -> tuple[int, int]:
            body_hits = _entries(body)
            if body_hits is None:
                body_hits = _remainder(condition.full_run_count(), node.full_run_count())
            zero_trips = node.zero_trip_count()
            if zero_trips is not None:
                return body_hits, zero_trips
            return body_hits, _remainder(node.run_count(), body_hits)

        body_hits, skip_hits = self._pair(node, counts)
        return [
            (BranchLabel.BODY, None, _span(body, whole), body_hits),
            (BranchLabel.SKIP, None, whole, skip_hits),
        ]

    def _post_test_loop(self, node: PostLoopNode, whole: SourceSpan) -> list[tuple] | None:
        body = node.body
        hits = self._guarded(node, BranchLabel.BODY.value, lambda: _entries(body) or 0)
        return [(BranchLabel.BODY, None, _span(body, whole), hits)]

    def _pair(self, node: AugmentedNode, compute: Any) -> tuple[int, int]:
        return self._guarded(node, "*", compute, default=(0, 0))

    # ── Closing invariant ────────────────────────────────────────────────────

    @staticmethod
    def verify_unique(entries: list[BranchEntry]) -> None:
        """Raise DiscriminatorCollisionError if any discriminator or index repeats."""
        seen: dict[Any, int] = {}
        for entry in entries:
            discriminator = entry.key.discriminator
            if discriminator in seen:
                raise DiscriminatorCollisionError(discriminator, [seen[discriminator], entry.key.node_id])
            seen[discriminator] = entry.key.node_id

        owners: dict[int, int] = {}
        for entry in entries:
            for index in (entry.key.index, *(o.index for o in entry.outcomes)):
                if index in owners:
                    raise DiscriminatorCollisionError(
                        (entry.key.kind.value, index),
                        [owners[index], entry.key.node_id],
                    )
                owners[index] = entry.key.node_id


def analyse_branches(
    root: AugmentedNode,
    hits: HitCountSource | None = None,
    **kwargs: Any,
) -> list[BranchEntry]:
    return BranchCoverageAnalyser(root, hits, **kwargs).results()
