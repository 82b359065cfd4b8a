"""
BranchScope — Coverage Engine

Public API:
  CoverageService          — per-unit orchestration (tree → lines + branches)
  TreeBuilder / build_tree — raw tree → augmented tree
  CoverageContext          — node arena, id counter, line-hit table
  AugmentedNode            — base / generic augmented node (+ variants in nodes)
  BranchCoverageAnalyser   — canonical, uniquely indexed branch outcomes
  LineCoverageProjector    — per-line hit counts
  HitTable                 — in-memory raw hit-count source
  HitCountSource           — protocol for external hit-count sources
  ZeroTripSource           — optional zero-iteration loop counts
  SourceBuffer             — offset ↔ (line, column) mapping
  parse_python             — CPython ``ast`` → raw tree adapter
  RawNode / SourceLocation — external parser interface
  CoverageResult           — result structure handed to reporting
  CoverageError            — base of DiscriminatorCollisionError, HitSourceError
"""

from branchscope.coverage.branches import BranchCoverageAnalyser, analyse_branches
from branchscope.coverage.builder import TreeBuilder, augment, build_tree
from branchscope.coverage.context import CoverageContext
from branchscope.coverage.errors import (
    CoverageError,
    DiscriminatorCollisionError,
    HitSourceError,
)
from branchscope.coverage.hits import HitCountSource, HitTable, ZeroTripSource
from branchscope.coverage.lines import LineCoverageProjector, project_lines
from branchscope.coverage.nodes import AugmentedNode, Branch
from branchscope.coverage.python_ast import parse_python
from branchscope.coverage.ranges import SourceRange
from branchscope.coverage.service import CoverageService
from branchscope.coverage.source import SourceBuffer
from branchscope.coverage.types import (
    BranchEntry,
    BranchKind,
    BranchLabel,
    CoverageResult,
    CoverageRun,
    RawNode,
    SourceLocation,
    SourceUnit,
    WalkOrder,
)

__all__ = [
    "AugmentedNode",
    "Branch",
    "BranchCoverageAnalyser",
    "BranchEntry",
    "BranchKind",
    "BranchLabel",
    "CoverageContext",
    "CoverageError",
    "CoverageResult",
    "CoverageRun",
    "CoverageService",
    "DiscriminatorCollisionError",
    "HitCountSource",
    "HitSourceError",
    "HitTable",
    "LineCoverageProjector",
    "RawNode",
    "SourceBuffer",
    "SourceLocation",
    "SourceRange",
    "SourceUnit",
    "TreeBuilder",
    "WalkOrder",
    "ZeroTripSource",
    "analyse_branches",
    "augment",
    "build_tree",
    "parse_python",
    "project_lines",
]
