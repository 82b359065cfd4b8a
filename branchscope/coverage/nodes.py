"""
BranchScope — Augmented Nodes

An AugmentedNode wraps exactly one raw syntax node and decorates it with
  - identity: an id allocated by the CoverageContext (pre-order, unique)
  - parentage: the parent's id, resolved through the context's arena
  - proper range: the offsets it owns exclusive of its direct children
  - execution queries: run / completion / entry counts, read through to
    the context's raw hit-count source (nodes carry no execution state)

Variants
--------
The set of variants is closed. The factory maps construct kinds onto
these classes and the analysers dispatch on them with ``match``:

  AugmentedNode        generic fallback, executable, tracks its own range
  SequenceNode         statement grouping (``begin``), not executable
  NonExecutableNode    syntactic markers (argument lists ...)
  LoopBodyNode         ``begin ... end`` body of a post-test loop
  SendNode             method call
  SafeNavigationNode   ``receiver&.call``                  [Branch]
  ConditionalNode      if / ternary / modifier if          [Branch]
  UnlessNode           unless: clauses swapped to if form  [Branch]
  CaseNode / WhenNode  case ... when                       [Branch]
  AndNode / OrNode     short-circuit operators             [Branch]
  WhileNode            pre-test loop                       [Branch]
  UntilNode            until: while with negated condition [Branch]
  PostLoopNode         begin ... end while                 [Branch]
  UntilPostLoopNode    begin ... end until                 [Branch]
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, Any, ClassVar

from branchscope.coverage.ranges import SourceRange, node_range, subtract
from branchscope.coverage.types import BranchKind, RawNode, SourceLocation, WalkOrder

if TYPE_CHECKING:
    from branchscope.coverage.context import CoverageContext


class AugmentedNode:
    """Base (and generic) augmented node."""

    __slots__ = ("kind", "location", "context", "id", "parent_id", "children")

    executable: ClassVar[bool] = True
    # Whether run_count() reads the node's own range from the hit source
    tracks_hits: ClassVar[bool] = True

    def __init__(
        self,
        raw: RawNode,
        context: CoverageContext,
        parent: AugmentedNode | None = None,
    ) -> None:
        self.kind: str = raw.kind
        self.location: SourceLocation | None = raw.location
        self.context = context
        self.parent_id: int | None = parent.id if parent is not None else None
        self.children: tuple[Any, ...] = ()
        self.id: int = context.register(self)

    def attach_children(self, children: tuple[Any, ...]) -> None:
        """Set the augmented children. Only the tree builder calls this."""
        self.children = children

    def __repr__(self) -> str:
        variant = type(self).__name__
        tag = self.kind if variant.lower().startswith(self.kind) else f"{self.kind}[{variant}]"
        return f"<{tag} #{self.id}>"

    # ── Structure ────────────────────────────────────────────────────────────

    @property
    def parent(self) -> AugmentedNode | None:
        if self.parent_id is None:
            return None
        return self.context.node(self.parent_id)

    @property
    def range(self) -> SourceRange | None:
        return node_range(self)

    def child(self, index: int) -> AugmentedNode | None:
        """The augmented child at ``index``, or None (absent or a raw leaf)."""
        if -len(self.children) <= index < len(self.children):
            candidate = self.children[index]
            if isinstance(candidate, AugmentedNode):
                return candidate
        return None

    def children_nodes(self) -> list[AugmentedNode]:
        return [c for c in self.children if isinstance(c, AugmentedNode)]

    def proper_range(self) -> frozenset[int]:
        """Offsets of this node's span that no direct child's span covers."""
        own = self.range
        if own is None:
            return frozenset()
        return subtract(own, (node_range(c) for c in self.children))

    def walk(self, order: WalkOrder | str = WalkOrder.POST) -> Iterator[AugmentedNode]:
        """
        Depth-first traversal; every call starts a fresh traversal.

        Iterative: a folded operator chain nests as deep as it has operands,
        which can exceed the interpreter's recursion limit.
        """
        order = WalkOrder(order)
        # (node, children already pushed)
        stack: list[tuple[AugmentedNode, bool]] = [(self, False)]
        while stack:
            node, expanded = stack.pop()
            if expanded:
                yield node
                continue
            if order is WalkOrder.PRE:
                yield node
            else:
                stack.append((node, True))
            stack.extend((child, False) for child in reversed(node.children_nodes()))

    def walk_branches(self, order: WalkOrder | str = WalkOrder.POST) -> Iterator[AugmentedNode]:
        return (node for node in self.walk(order) if isinstance(node, Branch))

    # ── Execution queries ────────────────────────────────────────────────────

    def is_executable(self) -> bool:
        return self.executable

    def run_count(self) -> int:
        """Times control reached this node (completely or not)."""
        own = self.range
        if not self.tracks_hits or own is None:
            return 0
        return self.context.runs_for(own)

    def full_run_count(self) -> int:
        """Times this node ran to completion."""
        runs = self.run_count()
        own = self.range
        if not self.tracks_hits or own is None:
            return runs
        completed = self.context.completions_for(own)
        if completed is None:
            return runs
        return min(runs, completed)

    def interrupt_count(self) -> int:
        """Times control left this node early (raise, return, break ...)."""
        return self.run_count() - self.full_run_count()

    def was_executed(self) -> bool:
        return self.is_executable() and self.run_count() > 0

    def entry_count(self) -> int:
        """Times control entered this node. Used for branch clause counts."""
        return self.run_count()


class Branch:
    """Capability mixin: the construct takes part in branch coverage."""

    __slots__ = ()

    branch_kind: ClassVar[BranchKind]


def is_located(node: Any) -> bool:
    """True for augmented nodes that carry a concrete source location."""
    return isinstance(node, AugmentedNode) and node.location is not None


# ── Non-branching variants ────────────────────────────────────────────────────


class SequenceNode(AugmentedNode):
    """A run of statements. Control entering it enters its first statement."""

    __slots__ = ()

    executable = False
    tracks_hits = False

    def entry_count(self) -> int:
        nodes = self.children_nodes()
        return nodes[0].entry_count() if nodes else 0


class NonExecutableNode(AugmentedNode):
    __slots__ = ()

    executable = False
    tracks_hits = False


class LoopBodyNode(SequenceNode):
    """``begin ... end`` re-entered by a post-test loop; counts its own hits."""

    __slots__ = ()

    executable = True
    tracks_hits = True

    def entry_count(self) -> int:
        return self.run_count()


class SendNode(AugmentedNode):
    __slots__ = ()

    @property
    def receiver(self) -> AugmentedNode | None:
        return self.child(0)

    @property
    def method_name(self) -> Any:
        return self.children[1] if len(self.children) > 1 else None


# ── Branch variants ───────────────────────────────────────────────────────────


class SafeNavigationNode(Branch, SendNode):
    __slots__ = ()

    branch_kind = BranchKind.SAFE_NAVIGATION

    def call_count(self) -> int:
        """Times the receiver was non-nil and the method was actually called."""
        if self.location is None or self.location.selector is None:
            return 0
        return self.context.runs_for(self.location.selector.range)


class ConditionalNode(Branch, AugmentedNode):
    """``if cond; then_clause; else else_clause; end`` and its one-line forms."""

    __slots__ = ()

    branch_kind = BranchKind.IF

    @property
    def condition(self) -> AugmentedNode | None:
        return self.child(0)

    @property
    def then_clause(self) -> AugmentedNode | None:
        return self.child(1)

    @property
    def else_clause(self) -> AugmentedNode | None:
        return self.child(2)


class UnlessNode(ConditionalNode):
    """``unless cond; body; else alt; end`` read as ``if cond; alt; else body; end``."""

    __slots__ = ()

    @property
    def then_clause(self) -> AugmentedNode | None:
        return self.child(2)

    @property
    def else_clause(self) -> AugmentedNode | None:
        return self.child(1)


class WhenNode(AugmentedNode):
    __slots__ = ()

    @property
    def conditions(self) -> list[AugmentedNode]:
        return [c for c in self.children[:-1] if isinstance(c, AugmentedNode)]

    @property
    def body(self) -> AugmentedNode | None:
        return self.child(-1) if len(self.children) > 1 else None

    def tested_count(self) -> int:
        """Times this clause was tested, i.e. its first condition was reached."""
        conditions = self.conditions
        return conditions[0].entry_count() if conditions else 0


class CaseNode(Branch, AugmentedNode):
    __slots__ = ()

    branch_kind = BranchKind.CASE

    @property
    def subject(self) -> AugmentedNode | None:
        return self.child(0)

    @property
    def when_clauses(self) -> list[WhenNode]:
        return [c for c in self.children[1:] if isinstance(c, WhenNode)]

    @property
    def else_clause(self) -> AugmentedNode | None:
        if len(self.children) < 2:
            return None
        last = self.child(-1)
        return None if isinstance(last, WhenNode) else last


class ShortCircuitNode(Branch, AugmentedNode):
    __slots__ = ()

    @property
    def left(self) -> AugmentedNode | None:
        return self.child(0)

    @property
    def right(self) -> AugmentedNode | None:
        return self.child(1)


class AndNode(ShortCircuitNode):
    __slots__ = ()

    branch_kind = BranchKind.AND


class OrNode(ShortCircuitNode):
    __slots__ = ()

    branch_kind = BranchKind.OR


class WhileNode(Branch, AugmentedNode):
    __slots__ = ()

    branch_kind = BranchKind.WHILE
    negated_condition: ClassVar[bool] = False

    @property
    def condition(self) -> AugmentedNode | None:
        return self.child(0)

    @property
    def body(self) -> AugmentedNode | None:
        return self.child(1)

    def zero_trip_count(self) -> int | None:
        """Entries that skipped the body outright, if the hit source knows."""
        own = self.range
        if own is None:
            return None
        return self.context.zero_trips_for(own)


class UntilNode(WhileNode):
    __slots__ = ()

    negated_condition = True


class PostLoopNode(Branch, AugmentedNode):
    __slots__ = ()

    branch_kind = BranchKind.POST_WHILE
    negated_condition: ClassVar[bool] = False

    @property
    def condition(self) -> AugmentedNode | None:
        return self.child(0)

    @property
    def body(self) -> AugmentedNode | None:
        return self.child(1)


class UntilPostLoopNode(PostLoopNode):
    __slots__ = ()

    negated_condition = True
