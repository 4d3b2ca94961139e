"""OrganizationOrchestrator: the plan -> execute -> validate pipeline.

The orchestrator ties the components together for one target library:

1. Fusion: cluster inventory folders (unless clusters are supplied) and build
   fusion groups with FusionGroupBuilder.
2. Planning: OrganizationPlanner turns packs and groups into an
   OrganizationPlan.
3. Execution: OrganizationExecutor applies the plan (skipped on dry runs).
4. Validation: OrganizationValidator checks the organized tree.

A single progress callback receives a monotonic percentage across all
phases: planning 0-20, execution 20-90, validation 90-100.

Example:
    from packfuse.models import load_organization_input
    from packfuse.orchestration import OrganizationOrchestrator

    inventory = load_organization_input(Path("inventory.json"))
    orchestrator = OrganizationOrchestrator(
        working_path=Path("/samples/incoming"),
        target_root=Path("/samples/library"),
    )
    summary = orchestrator.organize(inventory)
"""

import logging
import sys
import time
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from packfuse.fusion import FusionGroupBuilder
from packfuse.matching import ClusterClassifier, FolderClusterer, SimilarityScorer
from packfuse.models import (
    ClusteringConfig,
    ErrorType,
    ExecutionOutcome,
    ExecutionState,
    FusionBuildResult,
    FusionBuilderConfig,
    IdSequence,
    OrganizationError,
    OrganizationInput,
    OrganizationOptions,
    OrganizationPlan,
    OrganizationSummary,
    Severity,
    ValidationReport,
)
from packfuse.operations import OrganizationExecutor, OrganizationValidator
from packfuse.orchestration.organization_logger import OrganizationLogger
from packfuse.planning import OrganizationPlanner, TaxonomyLoader
from packfuse.ui import OrganizationTUI

logger = logging.getLogger("packfuse.orchestrator")

ProgressCallback = Callable[[int, str], None]
ConfirmCallback = Callable[[OrganizationPlan], bool]

PLANNING_RANGE = (0, 20)
EXECUTION_RANGE = (20, 90)
VALIDATION_RANGE = (90, 100)


class OrganizationOrchestrator:
    """Coordinates fusion, planning, execution and validation for one library.

    Attributes:
        working_path: Directory the inventory's packs were detected in.
        target_root: Root of the organized library.
        options: Execution options passed to OrganizationExecutor.
        clustering_config: Settings for FolderClusterer.
        builder_config: Settings for FusionGroupBuilder.
        taxonomy_path: Custom taxonomy YAML, or None for the bundled one.
        log_file_path: Where to write the run log. No log is written when None.
        verbose: Whether to print extra detail (log path, scanner warnings).
    """

    def __init__(
        self,
        working_path: Path,
        target_root: Path,
        options: Optional[OrganizationOptions] = None,
        clustering_config: Optional[ClusteringConfig] = None,
        builder_config: Optional[FusionBuilderConfig] = None,
        taxonomy_path: Optional[Path] = None,
        log_file_path: Optional[Path] = None,
        verbose: bool = False,
        tui: Optional[OrganizationTUI] = None,
    ) -> None:
        """Initialize the orchestrator.

        Raises:
            ValueError: If working_path is missing or not a directory, or
                target_root is empty.
        """
        resolved_path = Path(working_path).resolve()
        if not resolved_path.exists():
            raise ValueError(f"Working path does not exist: {working_path}")
        if not resolved_path.is_dir():
            raise ValueError(f"Working path is not a directory: {working_path}")
        if not str(target_root).strip():
            raise ValueError("Target root must not be empty")

        self.working_path = resolved_path
        self.target_root = Path(target_root).resolve()
        self.options = options if options is not None else OrganizationOptions()
        self.clustering_config = clustering_config if clustering_config is not None else ClusteringConfig()
        self.builder_config = builder_config if builder_config is not None else FusionBuilderConfig()
        self.taxonomy_path = taxonomy_path
        self.log_file_path = log_file_path
        self.verbose = verbose

        self._scorer = SimilarityScorer()
        self._taxonomy_loader = TaxonomyLoader()
        self._tui = tui if tui is not None else OrganizationTUI()

    @property
    def tui(self) -> OrganizationTUI:
        return self._tui

    def build_fusion_groups(self, inventory: OrganizationInput) -> FusionBuildResult:
        """Cluster the inventory (when needed) and build fusion groups.

        Supplied clusters are used as-is. Otherwise the inventory's folders
        are clustered with FolderClusterer. Group ids restart at 1 on every
        call, so the same inventory always produces the same groups.
        """
        clusters = inventory.clusters
        if not clusters and inventory.folders:
            clusters = FolderClusterer(self.clustering_config, self._scorer).cluster(inventory.folders)
            logger.info("Clustered %d folders into %d clusters", len(inventory.folders), len(clusters))

        builder = FusionGroupBuilder(
            config=self.builder_config,
            classifier=ClusterClassifier(self._scorer),
            id_sequence=IdSequence(),
        )
        return builder.build(clusters, inventory.packs)

    def scan(self, inventory: OrganizationInput) -> FusionBuildResult:
        """Read-only: build fusion groups and display them."""
        build_result = self.build_fusion_groups(inventory)
        total_folders = len(inventory.folders) or sum(len(c.members) for c in inventory.clusters)
        self._tui.display_fusion_groups(build_result, total_folders=total_folders)
        return build_result

    def plan(
        self,
        inventory: OrganizationInput,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> Tuple[OrganizationPlan, FusionBuildResult]:
        """Build fusion groups and plan the reorganization. Nothing is moved.

        Returns:
            Tuple of (plan, fusion build result).
        """
        build_result = self.build_fusion_groups(inventory)
        self._taxonomy_loader.clear_errors()
        planner = OrganizationPlanner(
            taxonomy=self._taxonomy_loader.load(self.taxonomy_path),
            id_sequence=IdSequence(),
        )
        plan = planner.plan(
            inventory.template,
            inventory.packs,
            build_result.groups,
            self.working_path,
            self.target_root,
            progress_callback=progress_callback,
        )
        for error in self._taxonomy_loader.get_errors():
            plan.warnings.append(error)
        return plan, build_result

    def organize(
        self,
        inventory: OrganizationInput,
        dry_run: bool = False,
        progress_callback: Optional[ProgressCallback] = None,
        confirm: Optional[ConfirmCallback] = None,
    ) -> OrganizationSummary:
        """Run the full pipeline.

        Args:
            inventory: Packs, clusters or folders and the hierarchy template.
            dry_run: Plan only. Nothing on disk changes.
            progress_callback: ``(percent, message)`` callable. When omitted a
                Rich progress bar is shown.
            confirm: Called with the plan before execution. Returning False
                stops the run and marks the summary interrupted.

        Returns:
            OrganizationSummary with the plan, execution outcome, validation
            report and every error. ``success`` is False when any error of
            severity error or critical occurred.
        """
        start_time = time.time()
        summary_errors: List[OrganizationError] = []

        report = _MonotonicProgress(progress_callback)
        plan, build_result = self.plan(inventory, progress_callback=report.scaled(*PLANNING_RANGE))

        for conflict in build_result.unresolved:
            summary_errors.append(OrganizationError(
                error_type=ErrorType.CONFLICT,
                message=(
                    f"Unresolved {conflict.conflict_type.value} conflict between "
                    f"{conflict.group_id1} and {conflict.group_id2} "
                    f"({conflict.resolution.value}): {conflict.reason}"
                ),
                severity=Severity.WARNING,
            ))

        summary = OrganizationSummary(
            plan=plan,
            unresolved_conflicts=list(build_result.unresolved),
            dry_run=dry_run,
        )

        run_log: Optional[OrganizationLogger] = None
        if self.log_file_path is not None:
            try:
                run_log = OrganizationLogger(self.log_file_path, dry_run=dry_run, target_root=self.target_root)
            except OSError as e:
                print(f"Warning: Could not create log file: {e}", file=sys.stderr)

        if run_log is not None:
            with run_log:
                run_log.log_header()
                run_log.log_plan_phase(plan, build_result.unresolved)
                self._run(summary, summary_errors, dry_run, report, confirm, progress_callback)
                summary.duration_seconds = time.time() - start_time
                if summary.outcome is not None:
                    run_log.log_execution_phase(summary.outcome)
                    if summary.outcome.rollback is not None:
                        run_log.log_rollback(summary.outcome.rollback)
                if summary.validation is not None:
                    run_log.log_validation(summary.validation)
                run_log.log_summary(summary)
                if self.verbose:
                    self._tui.console.print(f"[dim]Log file: {run_log.get_log_path()}[/dim]")
        else:
            self._run(summary, summary_errors, dry_run, report, confirm, progress_callback)
            summary.duration_seconds = time.time() - start_time

        self._tui.display_organization_summary(summary)
        logger.info(
            "Organization %s in %.1fs with %d error(s)",
            "succeeded" if summary.success else "failed",
            summary.duration_seconds, len(summary.errors),
        )
        return summary

    def _run(
        self,
        summary: OrganizationSummary,
        summary_errors: List[OrganizationError],
        dry_run: bool,
        report: "_MonotonicProgress",
        confirm: Optional[ConfirmCallback],
        progress_callback: Optional[ProgressCallback],
    ) -> None:
        plan = summary.plan
        summary.errors = summary_errors

        if dry_run:
            self._tui.display_plan(plan)
            report(100, "Dry run complete")
            return

        if confirm is not None and not confirm(plan):
            logger.info("Execution declined, nothing was changed")
            summary.interrupted = True
            return

        executor = OrganizationExecutor(options=self.options)
        execute_callback = report.scaled(*EXECUTION_RANGE)
        if progress_callback is None:
            progress, bar_callback = self._tui.create_progress_callback("Organizing")
            report.attach(bar_callback)
            with progress:
                outcome = executor.execute(plan, progress_callback=execute_callback)
                validation = self._validate(plan, outcome, report)
        else:
            outcome = executor.execute(plan, progress_callback=execute_callback)
            validation = self._validate(plan, outcome, report)

        summary.outcome = outcome
        summary.validation = validation
        summary.errors = summary_errors + list(outcome.errors)

        if validation is not None and not validation.passed:
            summary.errors.append(self._validation_error(validation))

        report(100, "Organization complete")

    def _validate(
        self, plan: OrganizationPlan, outcome: ExecutionOutcome, report: "_MonotonicProgress"
    ) -> Optional[ValidationReport]:
        if outcome.result.final_state != ExecutionState.FINALIZED:
            return None
        report(VALIDATION_RANGE[0], "Validating organized library")
        return OrganizationValidator().validate(plan, outcome)

    def _validation_error(self, validation: ValidationReport) -> OrganizationError:
        failed = [check for check in validation.checks if not check.passed]
        # Only warning-level checks failing means the tree is usable
        severity = (
            Severity.ERROR
            if any(check.severity != Severity.WARNING for check in failed)
            else Severity.WARNING
        )
        return OrganizationError(
            error_type=ErrorType.VALIDATION,
            message=(
                f"Validation score {validation.score:.2f}, failed checks: "
                + ", ".join(check.name for check in failed)
            ),
            severity=severity,
        )


class _MonotonicProgress:
    """Forwards percentages to a callback, never going backwards."""

    def __init__(self, callback: Optional[ProgressCallback]) -> None:
        self._callbacks: List[ProgressCallback] = [callback] if callback is not None else []
        self._last = -1

    def attach(self, callback: ProgressCallback) -> None:
        self._callbacks.append(callback)

    def scaled(self, low: int, high: int) -> ProgressCallback:
        """Callback mapping a phase's 0-100 onto ``low..high``."""
        def callback(percent: int, message: str) -> None:
            self(low + (high - low) * max(0, min(100, percent)) // 100, message)
        return callback

    def __call__(self, percent: int, message: str) -> None:
        if percent <= self._last:
            return
        self._last = percent
        for callback in self._callbacks:
            callback(percent, message)
