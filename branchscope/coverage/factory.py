"""
BranchScope — Node Factory

Chooses the AugmentedNode variant for a raw node in two stages:

  1. resolve()     the requesting parent may pre-classify the child at a
                   given position; otherwise the static kind table decides.
                   Unknown kinds resolve to the generic AugmentedNode.
  2. reclassify()  the chosen variant may override itself by looking at
                   the raw node (e.g. an ``if`` spelled ``unless``).

Both tables are static and populated at import time; resolution is a
pure function of (kind, child position, parent variant, raw node).
"""

from __future__ import annotations

from collections.abc import Callable
from types import MappingProxyType
from typing import Final

from branchscope.coverage.nodes import (
    AndNode,
    AugmentedNode,
    CaseNode,
    ConditionalNode,
    LoopBodyNode,
    NonExecutableNode,
    OrNode,
    PostLoopNode,
    SafeNavigationNode,
    SendNode,
    SequenceNode,
    UnlessNode,
    UntilNode,
    UntilPostLoopNode,
    WhenNode,
    WhileNode,
)
from branchscope.coverage.types import RawNode

Variant = type[AugmentedNode]

_KIND_VARIANTS: Final = MappingProxyType({
    "if":         ConditionalNode,
    "unless":     UnlessNode,
    "case":       CaseNode,
    "when":       WhenNode,
    "and":        AndNode,
    "or":         OrNode,
    "send":       SendNode,
    "csend":      SafeNavigationNode,
    "while":      WhileNode,
    "until":      UntilNode,
    "while_post": PostLoopNode,
    "until_post": UntilPostLoopNode,
    "begin":      SequenceNode,
    "kwbegin":    SequenceNode,
    "args":       NonExecutableNode,
    "arg":        NonExecutableNode,
    "optarg":     NonExecutableNode,
    "restarg":    NonExecutableNode,
    "kwarg":      NonExecutableNode,
    "kwoptarg":   NonExecutableNode,
    "kwrestarg":  NonExecutableNode,
    "blockarg":   NonExecutableNode,
})

# (parent variant, child position) → variant imposed on that child
_CHILD_VARIANTS: Final = MappingProxyType({
    (PostLoopNode, 1):      LoopBodyNode,
    (UntilPostLoopNode, 1): LoopBodyNode,
})


def _keyword(raw: RawNode) -> str | None:
    return raw.location.keyword if raw.location is not None else None


def _keyword_switch(spelling: str, variant: Variant) -> Callable[[RawNode], Variant | None]:
    def reclassify(raw: RawNode) -> Variant | None:
        return variant if _keyword(raw) == spelling else None
    return reclassify


_RECLASSIFIERS: Final = MappingProxyType({
    ConditionalNode: _keyword_switch("unless", UnlessNode),
    WhileNode:       _keyword_switch("until", UntilNode),
    PostLoopNode:    _keyword_switch("until", UntilPostLoopNode),
    SendNode:        _keyword_switch("&.", SafeNavigationNode),
})


def is_known_kind(kind: str) -> bool:
    return kind in _KIND_VARIANTS


def resolve(kind: str, child_index: int = 0, parent: Variant | None = None) -> Variant:
    """Variant for a child of ``parent`` at ``child_index`` with the given kind."""
    if parent is not None:
        imposed = _CHILD_VARIANTS.get((parent, child_index))
        if imposed is not None:
            return imposed
    return _KIND_VARIANTS.get(kind, AugmentedNode)


def reclassify(variant: Variant, raw: RawNode) -> Variant | None:
    """The variant's own override for ``raw``; None keeps ``variant``."""
    hook = _RECLASSIFIERS.get(variant)
    if hook is None:
        return None
    return hook(raw)


def variant_for(
    raw: RawNode,
    parent: AugmentedNode | None = None,
    child_index: int = 0,
) -> Variant:
    """Full two-stage resolution for one raw node."""
    variant = resolve(raw.kind, child_index, type(parent) if parent is not None else None)
    return reclassify(variant, raw) or variant
