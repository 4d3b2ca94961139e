"""OrganizationLogger: a human-readable run log for plan and execute runs.

The log file is a plain-text report with one section per phase, each framed
by a 65-character rule:

    HEADER, PLAN PHASE, EXECUTION PHASE, ROLLBACK (when one ran),
    VALIDATION (when one ran), SUMMARY
"""

import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional, TextIO

from packfuse.models import (
    ConflictResolution,
    ExecutionOutcome,
    OrganizationError,
    OrganizationPlan,
    OrganizationSummary,
    RollbackReport,
    ValidationReport,
)


class OrganizationLogger:
    """Writes the structured run log.

    Usage:
        with OrganizationLogger(dry_run=False, target_root=target) as run_log:
            run_log.log_header()
            run_log.log_plan_phase(plan, unresolved)
            run_log.log_execution_phase(outcome)
            run_log.log_summary(summary)

    Attributes:
        SEPARATOR: The 65-character rule written between sections.
    """

    SEPARATOR = "=" * 65

    def __init__(
        self,
        log_file_path: Optional[Path] = None,
        dry_run: bool = False,
        target_root: Optional[Path] = None,
    ) -> None:
        """Initialize the logger.

        Args:
            log_file_path: Where to write. Defaults to
                ``organize_log_<timestamp>.log`` in the current directory.
            dry_run: Whether the run only plans.
            target_root: Library root shown in the header.

        Raises:
            OSError: If the log file's directory is missing or not writable.
        """
        self._dry_run = dry_run
        self._target_root = target_root
        self._start_timestamp = datetime.now()
        self._file_handle: Optional[TextIO] = None

        if log_file_path is None:
            timestamp_str = self._start_timestamp.strftime("%Y-%m-%d_%H-%M-%S")
            self._log_file_path = Path.cwd() / f"organize_log_{timestamp_str}.log"
        else:
            self._log_file_path = Path(log_file_path)

        parent = self._log_file_path.parent
        if not parent.is_dir():
            raise OSError(f"Log directory does not exist: {parent}")

    def __enter__(self) -> "OrganizationLogger":
        try:
            self._file_handle = open(self._log_file_path, "w", encoding="utf-8")
        except OSError as e:
            raise OSError(f"Cannot open log file for writing: {e}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._file_handle is not None:
            try:
                self._file_handle.close()
            except OSError as e:
                print(f"Warning: Error closing log file: {e}", file=sys.stderr)
            finally:
                self._file_handle = None

    def get_log_path(self) -> Path:
        return self._log_file_path

    def log_header(self) -> None:
        self._write_separator()
        self._write_line("PackFuse - Sample Library Organization Log")
        self._write_separator()
        self._write_line(f"Timestamp: {self._format_timestamp(self._start_timestamp)}")
        self._write_line(f"Mode: {'DRY RUN' if self._dry_run else 'LIVE ORGANIZE'}")
        if self._target_root is not None:
            self._write_line(f"Target: {self._target_root}")
        self._write_line("")

    def log_plan_phase(
        self, plan: OrganizationPlan, unresolved: Optional[List[ConflictResolution]] = None
    ) -> None:
        """Write the plan section: operation counts, fusions, risks and warnings."""
        stats = plan.estimated_stats
        self._write_separator()
        self._write_line("PLAN PHASE")
        self._write_separator()
        self._write_line(f"Operations: {len(plan.operations)}")
        self._write_line(f"Fusion operations: {len(plan.fusion_operations)}")
        self._write_line(f"Files planned: {stats.total_files:,}")
        self._write_line(f"Estimated size: {stats.total_size / 1024 ** 2:.1f} MB")
        self._write_line(f"Estimated duration: {self._format_duration(stats.estimated_duration_ms / 1000)}")
        self._write_line(f"Complexity: {stats.complexity:.2f}")
        self._write_line("")

        if plan.fusion_operations:
            self._write_line("Fusion Groups:")
        for fusion in plan.fusion_operations:
            self._write_line(f"{fusion.canonical} -> {fusion.target_path}", indent=2)
            for source in fusion.sources:
                self._write_line(
                    f"[{source.priority}] {source.source_path} ({source.file_count} files)", indent=4
                )
        if plan.fusion_operations:
            self._write_line("")

        if unresolved:
            self._write_line("Unresolved conflicts:")
            for conflict in unresolved:
                self._write_line(
                    f"- {conflict.group_id1} / {conflict.group_id2}: "
                    f"{conflict.conflict_type.value} ({conflict.resolution.value}) {conflict.reason}",
                    indent=2,
                )
            self._write_line("")

        for risk in plan.risks:
            self._write_line(
                f"! Risk [{risk.severity.value}] {risk.type.value}: {risk.description}"
            )
        for warning in plan.warnings:
            self._write_line(f"! {warning}")
        if plan.risks or plan.warnings:
            self._write_line("")

    def log_execution_phase(self, outcome: ExecutionOutcome) -> None:
        """Write the execution section with per-fusion results and errors."""
        result = outcome.result
        self._write_separator()
        self._write_line("EXECUTION PHASE")
        self._write_separator()
        self._write_line(f"Final state: {result.final_state.value}")
        self._write_line(f"Folders created: {result.folders_created}")
        self._write_line(f"Files moved: {result.files_moved:,}")
        self._write_line(f"Files copied: {result.files_copied:,}")
        self._write_line(f"Files skipped (existing target): {result.files_skipped:,}")
        self._write_line(f"Collisions renamed: {result.conflicts_renamed}")
        self._write_line("")

        for group in outcome.fusion_result.groups:
            status = "ok" if group.success else "FAILED"
            self._write_line(f"Fusion {group.group_id} -> {group.target_path} [{status}]")
            self._write_line(f"Files merged: {group.files_merged}", indent=4)
            self._write_line(f"Duplicates: {group.duplicates}", indent=4)
            self._write_line(f"Conflicts: {group.conflicts}", indent=4)
            self._write_line(f"Empty folders removed: {group.folders_removed}", indent=4)
            if group.error:
                self._write_line(f"! {group.error}", indent=4)
        if outcome.fusion_result.groups:
            self._write_line("")

        self._write_errors(outcome.errors)

    def log_rollback(self, report: RollbackReport) -> None:
        self._write_separator()
        self._write_line("ROLLBACK")
        self._write_separator()
        self._write_line(f"Reverted: {report.reverted}/{report.attempted}")
        for entry in report.left_in_place:
            self._write_line(f"- left in place: {entry}", indent=2)
        for failure in report.failures:
            self._write_line(f"! {failure}", indent=2)
        self._write_line("")

    def log_validation(self, report: ValidationReport) -> None:
        self._write_separator()
        self._write_line("VALIDATION")
        self._write_separator()
        self._write_line(f"Score: {report.score:.2f} ({'PASSED' if report.passed else 'FAILED'})")
        for check in report.checks:
            mark = "ok" if check.passed else "FAILED"
            self._write_line(f"- {check.name} [{check.severity.value}]: {mark}", indent=2)
            for detail in check.details:
                self._write_line(detail, indent=6)
        self._write_line("")

    def log_summary(self, summary: OrganizationSummary) -> None:
        self._write_separator()
        self._write_line("SUMMARY")
        self._write_separator()
        self._write_line(f"Result: {'SUCCESS' if summary.success else 'FAILED'}")
        if summary.outcome is not None:
            metrics = summary.outcome.metrics
            self._write_line(f"Operations completed: {metrics.completed_operations}/{metrics.total_operations}")
            self._write_line(f"Operations failed: {metrics.failed_operations}")
            self._write_line(f"Files processed: {metrics.files_processed:,}")
            self._write_line(f"Fusions completed: {metrics.fusions_completed}")
        self._write_line(f"Total errors: {len(summary.errors)}")
        self._write_line(f"Duration: {self._format_duration(summary.duration_seconds)}")
        self._write_line("")
        self._write_line(f"Log file: {self._log_file_path}")
        self._write_separator()

    def _write_errors(self, errors: List[OrganizationError]) -> None:
        if not errors:
            return
        self._write_line("Errors:")
        for error in errors:
            where = f" [{error.operation_id}]" if error.operation_id else ""
            self._write_line(
                f"- {error.severity.value} {error.error_type.value}{where}: {error.message}", indent=2
            )
        self._write_line("")

    def _format_duration(self, seconds: float) -> str:
        """Format seconds as "45s", "5m 23s" or "1h 5m 30s"."""
        total_seconds = int(seconds)
        if total_seconds < 60:
            return f"{total_seconds}s"

        hours = total_seconds // 3600
        minutes = (total_seconds % 3600) // 60
        secs = total_seconds % 60
        if hours > 0:
            return f"{hours}h {minutes}m {secs}s"
        return f"{minutes}m {secs}s"

    def _format_timestamp(self, dt: datetime) -> str:
        return dt.strftime("%Y-%m-%d %H:%M:%S")

    def _write_separator(self) -> None:
        self._write_line(self.SEPARATOR)

    def _write_line(self, text: str, indent: int = 0) -> None:
        if self._file_handle is None:
            print(f"Warning: Attempted to write to closed log file: {text}", file=sys.stderr)
            return
        try:
            self._file_handle.write(" " * indent + text + "\n")
        except OSError as e:
            print(f"Warning: Error writing to log file: {e}", file=sys.stderr)
