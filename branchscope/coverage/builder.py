"""
BranchScope — Tree Builder

Augments a whole raw tree. Each node registers with the shared
CoverageContext before its children are built, so ids follow pre-order
and every non-root node records the node that produced it as parent.
Children that are not raw nodes (names, literal values) pass through
untouched.
"""

from __future__ import annotations

from typing import Any

import structlog

from branchscope.coverage.context import CoverageContext
from branchscope.coverage.factory import is_known_kind, variant_for
from branchscope.coverage.hits import HitCountSource
from branchscope.coverage.nodes import AugmentedNode
from branchscope.coverage.types import RawNode

logger = structlog.get_logger(system="coverage.builder")


def augment(
    raw: Any,
    context: CoverageContext,
    parent: AugmentedNode | None = None,
    child_index: int = 0,
) -> Any:
    """
    Augment ``raw`` and everything below it, or return it unchanged if it
    is a leaf.

    Works from an explicit stack so arbitrarily deep trees build. Children
    are pushed in reverse, so nodes are still created (and numbered) in
    pre-order; children tuples are attached once every node exists.
    """
    if not isinstance(raw, RawNode):
        return raw

    root: AugmentedNode | None = None
    built: list[tuple[AugmentedNode, list[Any]]] = []
    # (raw node, augmented parent, position, parent's children slots)
    stack: list[tuple[RawNode, AugmentedNode | None, int, list[Any] | None]] = [
        (raw, parent, child_index, None),
    ]
    while stack:
        current, owner, position, slots = stack.pop()
        node = variant_for(current, owner, position)(current, context, owner)
        if slots is None:
            root = node
        else:
            slots[position] = node

        children = list(current.children)
        built.append((node, children))
        for i in reversed(range(len(children))):
            if isinstance(children[i], RawNode):
                stack.append((children[i], node, i, children))

    for node, children in built:
        node.attach_children(tuple(children))
    return root


class TreeBuilder:
    """
    Builds AugmentedNode trees under one CoverageContext.

    Usage::

        builder = TreeBuilder(CoverageContext(hits, unit="app.rb"))
        root = builder.build(raw_tree)
    """

    def __init__(self, context: CoverageContext, *, warn_unknown_kinds: bool = False) -> None:
        self._context = context
        self._warn_unknown_kinds = warn_unknown_kinds

    @property
    def context(self) -> CoverageContext:
        return self._context

    def build(self, raw: RawNode) -> AugmentedNode:
        if not isinstance(raw, RawNode):
            raise TypeError(f"expected a RawNode root, got {type(raw).__name__}")
        first_id = self._context.node_count
        root = augment(raw, self._context)

        unknown = sorted({
            n.kind for n in root.walk() if type(n) is AugmentedNode and not is_known_kind(n.kind)
        })
        if unknown:
            log = logger.warning if self._warn_unknown_kinds else logger.debug
            log("generic_construct_kinds", unit=self._context.unit, kinds=unknown)

        logger.debug(
            "tree_augmented",
            unit=self._context.unit,
            nodes=self._context.node_count - first_id,
        )
        return root


def build_tree(
    raw: RawNode,
    hits: HitCountSource | None = None,
    *,
    unit: str = "",
) -> AugmentedNode:
    """Augment ``raw`` under a fresh context bound to ``hits``."""
    return TreeBuilder(CoverageContext(hits, unit=unit)).build(raw)
