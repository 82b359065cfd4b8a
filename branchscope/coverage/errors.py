"""
BranchScope — Coverage Error Hierarchy

All exceptions raised by the coverage engine.

Unrecognised construct kinds and nodes without a source location are
never errors: they degrade to generic, non-branching behaviour. What is
left are failures that abandon the analysis of one source unit. A
multi-unit run records them per unit and carries on with the rest.
"""

from __future__ import annotations

from typing import Any


class CoverageError(RuntimeError):
    """Base for all coverage engine errors."""


class HitSourceError(CoverageError):
    """The raw hit-count source could not answer a query."""


class DiscriminatorCollisionError(CoverageError):
    """
    Two branch entries of one analysis share a discriminator.

    Always an internal consistency failure: either the factory
    misclassified a node or a range/id computation is wrong.
    """

    def __init__(self, key: Any, node_ids: list[int]) -> None:
        self.key = key
        self.node_ids = node_ids
        super().__init__(
            f"Branch discriminator {key!r} emitted by more than one construct "
            f"(node ids: {', '.join(str(n) for n in node_ids)})"
        )
