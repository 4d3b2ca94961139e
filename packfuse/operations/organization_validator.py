"""
Post-execution validation of an organized library.

OrganizationValidator inspects the target tree after a run and compares it
with what the plan and the execution records say should be there. Each check
carries a severity; the report score is the severity-weighted share of
passing checks (critical 4, error 3, warning 2). A report passes when no
critical check fails and the score reaches VALIDATION_SCORE_THRESHOLD.
"""

import logging
from pathlib import Path
from typing import List, Optional, Set

from packfuse.models import (
    ExecutionOutcome,
    OperationType,
    OrganizationPlan,
    Severity,
    ValidationCheck,
    ValidationReport,
)
from packfuse.scanning import FileHasher, FileScanner

logger = logging.getLogger("packfuse.validator")

VALIDATION_SCORE_THRESHOLD = 0.85

SEVERITY_WEIGHTS = {
    Severity.CRITICAL: 4,
    Severity.ERROR: 3,
    Severity.WARNING: 2,
}

# Listed file paths per check, beyond which details are summarized
MAX_DETAILS = 20


class OrganizationValidator:
    """Checks the target tree against a plan and its execution outcome."""

    def __init__(
        self,
        file_hasher: Optional[FileHasher] = None,
        scanner: Optional[FileScanner] = None,
        score_threshold: float = VALIDATION_SCORE_THRESHOLD,
    ) -> None:
        if not 0.0 <= score_threshold <= 1.0:
            raise ValueError(f"score_threshold must be between 0.0 and 1.0, got {score_threshold}")
        self._hasher = file_hasher if file_hasher is not None else FileHasher()
        self._scanner = scanner if scanner is not None else FileScanner()
        self.score_threshold = score_threshold

    def validate(self, plan: OrganizationPlan, outcome: ExecutionOutcome) -> ValidationReport:
        """Validate the result of executing plan.

        Args:
            plan: The executed plan.
            outcome: What the executor reported.

        Returns:
            ValidationReport with every check, the score, orphaned files
            (present under the target root but produced by no operation) and
            groups of files with identical content.
        """
        report = ValidationReport()
        root = plan.target_root

        root_check = ValidationCheck("target_root_exists", root.is_dir(), Severity.CRITICAL)
        if not root_check.passed:
            root_check.details.append(f"{root} does not exist")
        report.checks.append(root_check)

        report.checks.append(self._check_file_targets(outcome))
        report.checks.append(self._check_fusion_targets(outcome))

        present = [entry.path for entry in self._scanner.scan_files(root)] if root_check.passed else []
        report.orphaned_files = self._find_orphans(present, outcome)
        orphan_check = ValidationCheck("no_orphaned_files", not report.orphaned_files, Severity.WARNING)
        orphan_check.details = self._summarize(report.orphaned_files)
        report.checks.append(orphan_check)

        report.duplicate_files = self._hasher.find_duplicates(present)
        duplicate_check = ValidationCheck("no_duplicate_content", not report.duplicate_files, Severity.WARNING)
        duplicate_check.details = [
            ", ".join(str(p) for p in group) for group in report.duplicate_files[:MAX_DETAILS]
        ]
        report.checks.append(duplicate_check)

        report.checks.append(self._check_metrics(outcome))

        report.score = self.calculate_score(report.checks)
        critical_failed = any(
            not check.passed and check.severity == Severity.CRITICAL for check in report.checks
        )
        report.passed = not critical_failed and report.score >= self.score_threshold

        for check in report.checks:
            if not check.passed:
                logger.warning("Validation check %s failed: %s", check.name, "; ".join(check.details[:3]))
        logger.info(
            "Validation %s with score %.2f (%d orphaned, %d duplicate groups)",
            "passed" if report.passed else "failed", report.score,
            len(report.orphaned_files), len(report.duplicate_files),
        )
        return report

    def calculate_score(self, checks: List[ValidationCheck]) -> float:
        """Severity-weighted fraction of passing checks; 1.0 for no checks."""
        total = sum(SEVERITY_WEIGHTS[check.severity] for check in checks)
        if total == 0:
            return 1.0
        passed = sum(SEVERITY_WEIGHTS[check.severity] for check in checks if check.passed)
        return passed / total

    def _check_file_targets(self, outcome: ExecutionOutcome) -> ValidationCheck:
        missing = [
            record.target for record in outcome.records
            if record.operation_type in (OperationType.MOVE_FILE, OperationType.COPY_FILE)
            and not record.skipped and record.target is not None and not record.target.exists()
        ]
        check = ValidationCheck("file_targets_exist", not missing, Severity.ERROR)
        check.details = [f"missing: {p}" for p in self._summarize(missing)]
        return check

    def _check_fusion_targets(self, outcome: ExecutionOutcome) -> ValidationCheck:
        missing = [
            group.target_path for group in outcome.fusion_result.groups
            if group.success and group.files_merged and not group.target_path.is_dir()
        ]
        check = ValidationCheck("fusion_targets_exist", not missing, Severity.ERROR)
        check.details = [f"missing: {p}" for p in missing]
        return check

    def _check_metrics(self, outcome: ExecutionOutcome) -> ValidationCheck:
        metrics = outcome.metrics
        accounted = metrics.completed_operations + metrics.failed_operations + metrics.skipped_operations
        check = ValidationCheck("metrics_consistent", accounted <= metrics.total_operations, Severity.WARNING)
        if not check.passed:
            check.details.append(
                f"{accounted} operations accounted for, {metrics.total_operations} planned"
            )
        return check

    def _find_orphans(self, present: List[Path], outcome: ExecutionOutcome) -> List[Path]:
        expected: Set[Path] = set()
        fused_roots: List[Path] = []
        for record in outcome.records:
            if record.operation_type == OperationType.FUSION_MERGE:
                if record.backup is not None:
                    expected.update(moved_to.resolve() for _, moved_to in record.backup.relocations)
                elif record.target is not None:
                    fused_roots.append(record.target.resolve())
            elif record.target is not None and not record.skipped:
                expected.add(record.target.resolve())

        orphans = []
        for path in present:
            resolved = path.resolve()
            if resolved in expected:
                continue
            if any(root in resolved.parents for root in fused_roots):
                continue
            orphans.append(path)
        return orphans

    def _summarize(self, paths: List[Path]) -> List[str]:
        details = [str(p) for p in paths[:MAX_DETAILS]]
        if len(paths) > MAX_DETAILS:
            details.append(f"... and {len(paths) - MAX_DETAILS} more")
        return details
