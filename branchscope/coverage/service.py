"""
BranchScope — Coverage Service

Top-level orchestrator. For each source unit:

  1. create a CoverageContext bound to the unit's raw hit-count source
  2. augment the raw tree (TreeBuilder)
  3. project line coverage (LineCoverageProjector)
  4. analyse branch coverage (BranchCoverageAnalyser)
  5. bundle everything into a CoverageResult

Failures of one unit (a hit-source query failure, a discriminator
collision) abandon that unit only. ``analyse_units`` records them as
UnitFailure entries and carries on with the remaining units.
"""

from __future__ import annotations

import time
from collections.abc import Iterable

import structlog

from branchscope.config import AnalysisConfig
from branchscope.coverage.branches import BranchCoverageAnalyser
from branchscope.coverage.builder import TreeBuilder
from branchscope.coverage.context import CoverageContext
from branchscope.coverage.errors import CoverageError
from branchscope.coverage.hits import HitCountSource
from branchscope.coverage.lines import LineCoverageProjector
from branchscope.coverage.types import (
    CoverageResult,
    CoverageRun,
    RawNode,
    SourceUnit,
    UnitFailure,
)
from branchscope.telemetry.logging import unit_context

logger = structlog.get_logger(system="coverage.service")


class CoverageService:
    """
    Turns parsed trees plus raw hit counts into coverage results.

    Usage::

        service = CoverageService(config.analysis)
        result = service.analyse(raw_tree, hit_table, unit="lib/app.rb")
        run = service.analyse_units([unit_a, unit_b])
    """

    def __init__(self, config: AnalysisConfig | None = None) -> None:
        self._config = config or AnalysisConfig()

    def analyse(
        self,
        tree: RawNode,
        hits: HitCountSource | None = None,
        *,
        unit: str = "<unit>",
    ) -> CoverageResult:
        start = time.monotonic()
        context = CoverageContext(hits, unit=unit)
        with unit_context(unit):
            root = TreeBuilder(
                context,
                warn_unknown_kinds=self._config.warn_unknown_kinds,
            ).build(tree)

            lines = list(LineCoverageProjector(root).project())
            branches = BranchCoverageAnalyser(
                root,
                order=self._config.branch_order,
                verify=self._config.verify_discriminators,
            ).results()

        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "unit_analysed",
            unit=unit,
            nodes=context.node_count,
            lines=len(lines),
            branches=len(branches),
            duration_ms=elapsed_ms,
        )
        return CoverageResult(
            unit=unit,
            lines=lines,
            branches=branches,
            node_count=context.node_count,
        )

    def analyse_units(self, units: Iterable[SourceUnit]) -> CoverageRun:
        run = CoverageRun()
        for source_unit in units:
            try:
                run.results[source_unit.name] = self.analyse(
                    source_unit.tree,
                    source_unit.hits,
                    unit=source_unit.name,
                )
            except CoverageError as exc:
                logger.error(
                    "unit_analysis_failed",
                    unit=source_unit.name,
                    error_type=type(exc).__name__,
                    error=str(exc),
                )
                run.failures.append(UnitFailure(
                    unit=source_unit.name,
                    error_type=type(exc).__name__,
                    message=str(exc),
                ))

        logger.info(
            "coverage_run_complete",
            run_id=run.run_id,
            units=len(run.results) + len(run.failures),
            failed=len(run.failures),
        )
        return run
