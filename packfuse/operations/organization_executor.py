"""
Transactional execution of an OrganizationPlan.

The executor is a small state machine::

    IDLE -> CREATING_FOLDERS -> FUSING_SOURCES -> MOVING_FILES -> FINALIZED
                 \\________________ any executing state ___________/
                                        |
                                  ROLLING_BACK -> ABORTED

Operations run strictly one after another. Every executed operation is
recorded, in order, so that a fatal error can be followed by a best-effort
rollback. A run aborts when:

- the disk is full (ENOSPC),
- a non-retryable operation fails, or
- more errors accumulate than ``critical_error_threshold``.

A failing fusion group does not abort the run; it only marks the
FusionResult unsuccessful.
"""

import logging
import shutil
import time
from pathlib import Path
from typing import Callable, List, Optional, Set

from packfuse.models import (
    ConflictStrategy,
    ErrorType,
    ExecutionOutcome,
    ExecutionState,
    FusionBackup,
    FusionGroupResult,
    FusionOperation,
    Operation,
    OperationRecord,
    OperationType,
    OrganizationError,
    OrganizationOptions,
    OrganizationPlan,
    RollbackReport,
    Severity,
)
from packfuse.scanning import FileHasher

from .fusion_merger import FusionMerger, is_disk_full, unique_target
from .rollback import RollbackManager

logger = logging.getLogger("packfuse.executor")

ExecutionProgressCallback = Callable[[int, str], None]

FILE_OPERATIONS = (OperationType.MOVE_FILE, OperationType.COPY_FILE, OperationType.DELETE_FILE)


def nearest_existing_ancestor(path: Path) -> Path:
    """The path itself, or its closest parent that exists."""
    for candidate in (path, *path.parents):
        if candidate.exists():
            return candidate
    return Path(path.anchor or ".")


class _AbortExecution(Exception):
    """Raised inside a phase to stop the remaining plan."""


class OrganizationExecutor:
    """Executes organization plans against the filesystem.

    Attributes:
        options: Execution options (conflict strategy, rollback, ...).
        state: Current ExecutionState. Reset to IDLE at the start of each run.

    Example:
        >>> executor = OrganizationExecutor(OrganizationOptions(conflict_resolution="skip"))
        >>> outcome = executor.execute(plan)
        >>> if not outcome.success:
        ...     for error in outcome.errors:
        ...         print(error.severity.value, error.message)
    """

    def __init__(
        self,
        options: Optional[OrganizationOptions] = None,
        file_hasher: Optional[FileHasher] = None,
        rollback_manager: Optional[RollbackManager] = None,
    ) -> None:
        self.options = options if options is not None else OrganizationOptions()
        self._merger = FusionMerger(file_hasher, cleanup_empty_sources=self.options.cleanup_empty_sources)
        self._rollback = rollback_manager if rollback_manager is not None else RollbackManager()
        self.state = ExecutionState.IDLE
        self._outcome = ExecutionOutcome()
        self._progress: Optional[ExecutionProgressCallback] = None
        self._last_percent = -1
        self._warned_ask = False

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate_plan(self, plan: OrganizationPlan) -> List[OrganizationError]:
        """Check a plan for structural problems before anything is touched.

        Returns:
            One ``validation`` error per problem. Empty when the plan is
            executable.
        """
        errors: List[OrganizationError] = []

        def invalid(message: str, operation_id: Optional[str] = None) -> None:
            errors.append(OrganizationError(
                error_type=ErrorType.VALIDATION,
                message=message,
                operation_id=operation_id,
                severity=Severity.CRITICAL,
                recoverable=False,
            ))

        if not str(plan.target_root):
            invalid("Plan has no target root")
        else:
            existing = nearest_existing_ancestor(plan.target_root)
            if not existing.is_dir():
                invalid(f"Target directory not accessible: {existing} is not a directory")

        seen: Set[str] = set()
        for op in plan.operations:
            if op.id in seen:
                invalid(f"Duplicate operation id {op.id}", op.id)
            seen.add(op.id)
            if op.type in (OperationType.MOVE_FILE, OperationType.COPY_FILE) and op.source is None:
                invalid(f"{op.type.value} operation {op.id} has no source", op.id)
            if op.type == OperationType.FUSION_MERGE:
                invalid(f"Fusion merges belong in fusion_operations, not operations ({op.id})", op.id)

        for fusion in plan.fusion_operations:
            if fusion.id in seen:
                invalid(f"Duplicate operation id {fusion.id}", fusion.id)
            seen.add(fusion.id)
            if not fusion.sources:
                invalid(f"Fusion operation {fusion.id} has no sources", fusion.id)

        return errors

    def execute(
        self,
        plan: OrganizationPlan,
        progress_callback: Optional[ExecutionProgressCallback] = None,
    ) -> ExecutionOutcome:
        """Run a plan: folders, then fusions, then file operations.

        Args:
            plan: The plan to execute. Operations get ``final_target`` set
                when a collision rename changes where a file lands.
            progress_callback: Optional ``(percent, message)`` callable,
                called with non-decreasing percentages.

        Returns:
            ExecutionOutcome with results, metrics, errors, the execution
            records and, if one ran, the rollback report. Never raises for
            filesystem problems.
        """
        self.state = ExecutionState.IDLE
        self._outcome = ExecutionOutcome()
        self._progress = progress_callback
        self._last_percent = -1
        self._warned_ask = False
        outcome = self._outcome
        outcome.metrics.total_operations = len(plan.operations) + len(plan.fusion_operations)
        started = time.time()

        logger.info(
            "Executing plan: %d operations, %d fusion operations into %s",
            len(plan.operations), len(plan.fusion_operations), plan.target_root,
        )
        self._report(5, "Validating plan")

        validation_errors = self.validate_plan(plan)
        if validation_errors:
            for error in validation_errors:
                logger.error("Plan rejected: %s", error.message)
            outcome.errors.extend(validation_errors)
            outcome.result.success = False
            self.state = ExecutionState.ABORTED
            outcome.result.final_state = self.state
            return outcome

        try:
            self._transition(ExecutionState.CREATING_FOLDERS)
            self._create_folders(plan)

            self._transition(ExecutionState.FUSING_SOURCES)
            if self.options.enable_fusion:
                self._fuse(plan.fusion_operations)
            elif plan.fusion_operations:
                logger.info("Fusion disabled; %d fusion operations skipped", len(plan.fusion_operations))
                outcome.metrics.skipped_operations += len(plan.fusion_operations)

            self._transition(ExecutionState.MOVING_FILES)
            self._move_files(plan)

            self._report(90, "Finalizing")
            self._transition(ExecutionState.FINALIZED)
        except _AbortExecution as e:
            logger.critical("Execution aborted: %s", e)
            outcome.result.success = False
            if self.options.enable_rollback:
                self._transition(ExecutionState.ROLLING_BACK)
                outcome.rollback = self._rollback.rollback(outcome.records)
            self._transition(ExecutionState.ABORTED)

        outcome.metrics.duration_seconds = time.time() - started
        outcome.result.final_state = self.state
        if outcome.errors:
            outcome.result.success = False
        self._report(100, "Execution finished" if self.state == ExecutionState.FINALIZED else "Execution aborted")
        logger.info(
            "Execution %s: %d completed, %d failed, %d skipped in %.2fs",
            self.state.value, outcome.metrics.completed_operations, outcome.metrics.failed_operations,
            outcome.metrics.skipped_operations, outcome.metrics.duration_seconds,
        )
        return outcome

    def rollback(self) -> RollbackReport:
        """Roll back the records of the last run (e.g. after a failed validation downstream)."""
        self._transition(ExecutionState.ROLLING_BACK)
        report = self._rollback.rollback(self._outcome.records)
        self._outcome.rollback = report
        self._transition(ExecutionState.ABORTED)
        self._outcome.result.final_state = self.state
        return report

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _create_folders(self, plan: OrganizationPlan) -> None:
        folder_ops = sorted(
            (op for op in plan.operations if op.type == OperationType.CREATE_FOLDER),
            key=lambda op: len(op.target.parts),
        )
        logger.info("Creating %d folders", len(folder_ops))
        self._report(10, "Creating folders")

        for index, op in enumerate(folder_ops, start=1):
            try:
                existed = op.target.is_dir()
                op.target.mkdir(parents=True, exist_ok=True)
                self._record(op, source=None, target=op.target, skipped=existed)
                if not existed:
                    self._outcome.result.folders_created += 1
                    self._outcome.metrics.folders_created += 1
                    logger.debug("Created folder %s", op.target)
            except OSError as e:
                self._fail(op, e)
            self._report(10 + int(index / len(folder_ops) * 20), "Creating folders")

    def _fuse(self, fusion_ops: List[FusionOperation]) -> None:
        outcome = self._outcome
        logger.info("Executing %d fusion operations", len(fusion_ops))
        self._report(30, "Fusing sources")

        for index, fusion in enumerate(fusion_ops, start=1):
            backup = FusionBackup(merged_path=fusion.target_path) if self.options.create_backup else None
            try:
                group_result = self._merger.merge(fusion, backup)
            except OSError as e:
                group_result = FusionGroupResult(
                    group_id=fusion.group_id, target_path=fusion.target_path, success=False, error=str(e)
                )
                if is_disk_full(e):
                    outcome.fusion_result.groups.append(group_result)
                    outcome.fusion_result.success = False
                    outcome.metrics.failed_operations += 1
                    self._record_fusion(fusion, False, backup, str(e))
                    self._error(ErrorType.FUSION, f"Disk full: {e}", fusion.id, Severity.CRITICAL, False,
                                fusion.target_path)
                    raise _AbortExecution(f"Disk full during fusion {fusion.id}")

            outcome.fusion_result.groups.append(group_result)
            self._record_fusion(fusion, group_result.success, backup, group_result.error)
            outcome.metrics.files_processed += group_result.files_merged
            if group_result.success:
                outcome.metrics.completed_operations += 1
                outcome.metrics.fusions_completed += 1
            else:
                outcome.fusion_result.success = False
                outcome.metrics.failed_operations += 1
                self._error(
                    ErrorType.FUSION,
                    f"Fusion {fusion.canonical} failed: {group_result.error}",
                    fusion.id, Severity.ERROR, True, fusion.target_path,
                )
            self._report(30 + int(index / len(fusion_ops) * 40), f"Fused {fusion.canonical}")

    def _move_files(self, plan: OrganizationPlan) -> None:
        file_ops = [op for op in plan.operations if op.type in FILE_OPERATIONS]
        logger.info("Executing %d file operations", len(file_ops))
        self._report(70, "Moving files")

        for index, op in enumerate(file_ops, start=1):
            try:
                if op.type == OperationType.DELETE_FILE:
                    self._delete_file(op)
                else:
                    self._transfer_file(op)
            except OSError as e:
                self._fail(op, e)
            self._report(70 + int(index / len(file_ops) * 20), "Moving files")

    # ------------------------------------------------------------------
    # Single operations
    # ------------------------------------------------------------------

    def _transfer_file(self, op: Operation) -> None:
        result = self._outcome.result
        source = op.source
        if source is None or not source.exists():
            raise FileNotFoundError(f"Source file not found: {source}")

        target = op.target
        if target.exists():
            strategy = self.options.conflict_resolution
            if strategy == ConflictStrategy.SKIP:
                logger.warning("Skipping %s: %s already exists", source, target)
                self._record(op, source=source, target=target, skipped=True)
                result.files_skipped += 1
                self._outcome.metrics.skipped_operations += 1
                return
            if strategy == ConflictStrategy.OVERWRITE:
                logger.debug("Overwriting %s", target)
                target.unlink()
            else:
                if strategy == ConflictStrategy.ASK and not self._warned_ask:
                    logger.warning("Conflict resolution 'ask' is not supported unattended; renaming instead")
                    self._warned_ask = True
                target = unique_target(target)
                result.conflicts_renamed += 1
                logger.debug("Renamed %s -> %s to avoid a collision", op.target, target)

        target.parent.mkdir(parents=True, exist_ok=True)
        size = source.stat().st_size
        if op.type == OperationType.MOVE_FILE:
            shutil.move(str(source), str(target))
            result.files_moved += 1
        else:
            shutil.copy2(source, target)
            result.files_copied += 1

        op.final_target = target
        self._record(op, source=source, target=target)
        self._outcome.metrics.files_processed += 1
        self._outcome.metrics.bytes_processed += size

    def _delete_file(self, op: Operation) -> None:
        if op.target.exists():
            op.target.unlink()
            self._outcome.result.files_deleted += 1
            logger.info("Deleted %s (irreversible)", op.target)
        self._record(op, source=None, target=op.target)

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _record(self, op: Operation, source: Optional[Path], target: Optional[Path], skipped: bool = False) -> None:
        self._outcome.records.append(OperationRecord(
            operation_id=op.id,
            operation_type=op.type,
            success=True,
            source=source,
            target=target,
            skipped=skipped,
        ))
        self._outcome.result.operations_completed += 1
        if not skipped or op.type == OperationType.CREATE_FOLDER:
            self._outcome.metrics.completed_operations += 1

    def _record_fusion(
        self, fusion: FusionOperation, success: bool, backup: Optional[FusionBackup], error: Optional[str]
    ) -> None:
        # Recorded even on failure: the backup covers whatever was relocated.
        self._outcome.records.append(OperationRecord(
            operation_id=fusion.id,
            operation_type=OperationType.FUSION_MERGE,
            success=True,
            target=fusion.target_path,
            backup=backup,
            error=error if not success else None,
        ))

    def _fail(self, op: Operation, error: OSError) -> None:
        """Record a failed operation and decide whether the run continues."""
        self._outcome.result.operations_failed += 1
        self._outcome.metrics.failed_operations += 1
        path = op.source or op.target

        if is_disk_full(error):
            self._error(ErrorType.FILESYSTEM, f"Disk full: {error}", op.id, Severity.CRITICAL, False, path)
            raise _AbortExecution(f"Disk full at operation {op.id}")

        self._error(ErrorType.FILESYSTEM, f"{op.type.value} failed: {error}", op.id, Severity.ERROR,
                    op.retryable, path)
        if not op.retryable:
            raise _AbortExecution(f"Non-retryable operation {op.id} failed")
        failures = sum(1 for e in self._outcome.errors if e.severity != Severity.WARNING)
        if failures > self.options.critical_error_threshold:
            raise _AbortExecution(
                f"{failures} errors exceed the critical threshold of {self.options.critical_error_threshold}"
            )

    def _error(
        self,
        error_type: ErrorType,
        message: str,
        operation_id: Optional[str],
        severity: Severity,
        recoverable: bool,
        path: Optional[Path],
    ) -> None:
        log = logger.critical if severity == Severity.CRITICAL else logger.error
        log(message)
        self._outcome.errors.append(OrganizationError(
            error_type=error_type,
            message=message,
            operation_id=operation_id,
            severity=severity,
            recoverable=recoverable,
            path=path,
        ))

    def _transition(self, state: ExecutionState) -> None:
        logger.debug("State %s -> %s", self.state.value, state.value)
        self.state = state

    def _report(self, percent: int, message: str) -> None:
        if self._progress is None or percent <= self._last_percent:
            return
        self._last_percent = percent
        self._progress(percent, message)
