"""
BranchScope — Coverage Types

Domain models shared by the coverage engine:
  - the raw syntax tree handed in by an external parser (RawNode,
    SourceLocation)
  - the construct / label vocabulary of branch coverage
  - the coverage result structure handed to reporting collaborators

Encoding
--------
Branch results keep the shape mature runtimes use for branch coverage::

    {(kind, index, first_line, first_col, last_line, last_col):
        {(label, index, first_line, first_col, last_line, last_col): hits}}

Every ``index`` of one analysis is unique across keys and outcomes.
Outcomes are kept in canonical label order (see LABELS_BY_KIND).
"""

from __future__ import annotations

import enum
from typing import Any, Final

from pydantic import Field

from branchscope.coverage.ranges import SourceRange
from branchscope.primitives.common import Identified, ScopeBaseModel, Timestamped


# ── Enumerations ──────────────────────────────────────────────────────────────


class BranchKind(enum.StrEnum):
    """Normalised construct kind reported in a branch key."""

    IF              = "if"          # if / unless / ternary / modifier if
    CASE            = "case"        # case ... when
    AND             = "&&"          # short-circuit and
    OR              = "||"          # short-circuit or
    SAFE_NAVIGATION = "&."          # receiver&.call
    WHILE           = "while"       # while / until (pre-test)
    POST_WHILE      = "while_post"  # begin ... end while / until


class BranchLabel(enum.StrEnum):
    """Outcome label of a branch. Never rename: consumers key on these."""

    THEN = "then"
    ELSE = "else"
    WHEN = "when"
    BODY = "body"
    SKIP = "skip"


class WalkOrder(enum.StrEnum):
    PRE  = "pre"
    POST = "post"


# Canonical label order per construct kind. CASE repeats WHEN once per
# clause and only reports ELSE when the clause exists.
LABELS_BY_KIND: Final[dict[BranchKind, tuple[BranchLabel, ...]]] = {
    BranchKind.IF:              (BranchLabel.THEN, BranchLabel.ELSE),
    BranchKind.CASE:            (BranchLabel.WHEN, BranchLabel.ELSE),
    BranchKind.AND:             (BranchLabel.THEN, BranchLabel.ELSE),
    BranchKind.OR:              (BranchLabel.THEN, BranchLabel.ELSE),
    BranchKind.SAFE_NAVIGATION: (BranchLabel.THEN, BranchLabel.ELSE),
    BranchKind.WHILE:           (BranchLabel.BODY, BranchLabel.SKIP),
    BranchKind.POST_WHILE:      (BranchLabel.BODY,),
}


# ── Source locations ──────────────────────────────────────────────────────────


class SourceSpan(ScopeBaseModel):
    """
    A located span of source text.

    Offsets are character offsets into the original buffer; lines are
    1-based, columns 0-based and ``last_column`` is exclusive.
    """

    model_config = {"frozen": True}

    begin: int
    end: int
    first_line: int
    first_column: int
    last_line: int
    last_column: int

    @property
    def range(self) -> SourceRange:
        return SourceRange(self.begin, self.end)

    def as_tuple(self) -> tuple[int, int, int, int]:
        return (self.first_line, self.first_column, self.last_line, self.last_column)


class SourceLocation(SourceSpan):
    """Location of a raw node, plus the sub-parts coverage cares about."""

    # Spelling of the construct's keyword or operator ("unless", "until", "&.")
    keyword: str | None = None
    # Method-name span of a call; a safe-navigation call reached it only
    # when the receiver was non-nil
    selector: SourceSpan | None = None


# ── Raw tree (external parser output) ─────────────────────────────────────────


class RawNode:
    """A parsed syntax node: kind tag + ordered children + optional location."""

    __slots__ = ("kind", "children", "location")

    def __init__(
        self,
        kind: str,
        children: tuple[Any, ...] | list[Any] = (),
        location: SourceLocation | None = None,
    ) -> None:
        self.kind = kind
        self.children = tuple(children)
        self.location = location

    def __repr__(self) -> str:
        inner = " ".join(repr(c) for c in self.children)
        return f"({self.kind}{' ' + inner if inner else ''})"


# ── Branch results ────────────────────────────────────────────────────────────


class BranchKey(ScopeBaseModel):
    """Identifies one branching construct within an analysis."""

    kind: BranchKind
    index: int = Field(..., description="Node id of the construct; unique per analysis")
    node_id: int
    span: SourceSpan

    @property
    def discriminator(self) -> tuple[str, int, int, int]:
        # node_id breaks ties between constructs sharing a (zero-width) range
        return (self.kind.value, self.span.begin, self.span.end, self.node_id)

    def encode(self) -> tuple[Any, ...]:
        return (self.kind.value, self.index, *self.span.as_tuple())


class BranchOutcome(ScopeBaseModel):
    """One labelled path through a construct and how often it was taken."""

    label: BranchLabel
    index: int
    clause: int | None = Field(
        default=None,
        description="0-based position of the when-clause for case constructs",
    )
    span: SourceSpan
    hits: int = 0

    def encode(self) -> tuple[Any, ...]:
        return (self.label.value, self.index, *self.span.as_tuple())


class BranchEntry(ScopeBaseModel):
    """A construct key with its outcomes in canonical label order."""

    key: BranchKey
    outcomes: list[BranchOutcome] = Field(default_factory=list)

    @property
    def labels(self) -> list[BranchLabel]:
        return [o.label for o in self.outcomes]

    def has_label(self, label: BranchLabel | str) -> bool:
        return any(o.label == label for o in self.outcomes)

    def hits_for(self, label: BranchLabel | str, nth: int = 0) -> int:
        """Hits of the ``nth`` outcome carrying ``label``."""
        matching = [o for o in self.outcomes if o.label == label]
        if nth >= len(matching):
            raise KeyError(f"{self.key.kind.value} has no outcome {label!s}[{nth}]")
        return matching[nth].hits

    def outcome_map(self) -> dict[tuple[Any, ...], int]:
        return {o.encode(): o.hits for o in self.outcomes}


class LineHit(ScopeBaseModel):
    line: int
    hits: int


class CoverageResult(ScopeBaseModel):
    """Everything the engine reports for one source unit."""

    unit: str = ""
    lines: list[LineHit] = Field(default_factory=list)
    branches: list[BranchEntry] = Field(default_factory=list)
    node_count: int = 0

    def line_map(self) -> dict[int, int]:
        return {lh.line: lh.hits for lh in self.lines}

    def branch_map(self) -> dict[tuple[Any, ...], dict[tuple[Any, ...], int]]:
        return {entry.key.encode(): entry.outcome_map() for entry in self.branches}


class SourceUnit(ScopeBaseModel):
    """A parsed unit of source together with its raw hit counts."""

    model_config = {"arbitrary_types_allowed": True}

    name: str
    tree: RawNode
    hits: Any = None


class UnitFailure(ScopeBaseModel):
    unit: str
    error_type: str
    message: str = ""


class CoverageRun(Identified, Timestamped):
    """Outcome of analysing several source units in one go."""

    results: dict[str, CoverageResult] = Field(default_factory=dict)
    failures: list[UnitFailure] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.failures
