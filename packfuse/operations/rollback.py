"""
Best-effort rollback of executed organization operations.

Records are replayed newest first:

- move_file: moved back to its source when it is still at its target
- copy_file: the copy is deleted
- create_folder: removed only when empty, otherwise left with a warning
- fusion_merge: every recorded relocation is moved back, then the directories
  the fusion left empty are removed. Without backup metadata nothing can be
  restored and the fusion is left in place.
- delete_file: cannot be reversed

A failure on one record is collected and the pass continues.
"""

import logging
import os
import shutil
from pathlib import Path
from typing import List

from packfuse.models import FusionBackup, OperationRecord, OperationType, RollbackReport

logger = logging.getLogger("packfuse.rollback")


class RollbackManager:
    """Reverses OperationRecords in reverse execution order."""

    def rollback(self, records: List[OperationRecord]) -> RollbackReport:
        """Undo what can be undone.

        Args:
            records: Executed operations in execution order.

        Returns:
            RollbackReport listing reverted records, records left in place and
            failures.
        """
        report = RollbackReport()
        logger.warning("Rolling back %d executed operations", len(records))

        for record in reversed(records):
            if not record.success or record.skipped:
                continue
            report.attempted += 1
            try:
                if self._revert(record, report):
                    report.reverted += 1
            except OSError as e:
                message = f"Failed to roll back {record.operation_id}: {e}"
                logger.error(message)
                report.failures.append(message)

        logger.info(
            "Rollback finished: %d/%d reverted, %d left in place, %d failures",
            report.reverted, report.attempted, len(report.left_in_place), len(report.failures),
        )
        return report

    def _revert(self, record: OperationRecord, report: RollbackReport) -> bool:
        kind = record.operation_type

        if kind == OperationType.MOVE_FILE:
            if record.target is not None and record.source is not None and record.target.exists():
                record.source.parent.mkdir(parents=True, exist_ok=True)
                shutil.move(str(record.target), str(record.source))
                logger.debug("Moved back %s -> %s", record.target, record.source)
                return True
            report.left_in_place.append(f"{record.operation_id}: {record.target} no longer exists")
            return False

        if kind == OperationType.COPY_FILE:
            if record.target is not None and record.target.exists():
                record.target.unlink()
                logger.debug("Deleted copy %s", record.target)
            return True

        if kind == OperationType.CREATE_FOLDER:
            if record.target is None or not record.target.exists():
                return True
            if any(record.target.iterdir()):
                logger.warning("Cannot remove non-empty folder %s", record.target)
                report.left_in_place.append(f"{record.operation_id}: {record.target} is not empty")
                return False
            record.target.rmdir()
            logger.debug("Removed folder %s", record.target)
            return True

        if kind == OperationType.FUSION_MERGE:
            if record.backup is None:
                logger.warning("No backup metadata for fusion %s; left in place", record.operation_id)
                report.left_in_place.append(f"{record.operation_id}: no backup metadata")
                return False
            self._restore_fusion(record.backup)
            return True

        if kind == OperationType.DELETE_FILE:
            logger.warning("Cannot roll back deletion of %s", record.target)
            report.left_in_place.append(f"{record.operation_id}: deletion of {record.target} is permanent")
            return False

        return False

    def _restore_fusion(self, backup: FusionBackup) -> None:
        for original, moved_to in reversed(backup.relocations):
            if moved_to.exists():
                original.parent.mkdir(parents=True, exist_ok=True)
                shutil.move(str(moved_to), str(original))
                logger.debug("Restored %s", original)

        if not backup.merged_path.is_dir():
            return
        for root, dirs, files in os.walk(backup.merged_path, topdown=False):
            root_path = Path(root)
            if root_path == backup.merged_path and not backup.created_target:
                continue
            if not any(root_path.iterdir()):
                root_path.rmdir()
        logger.debug("Removed merged folder content under %s", backup.merged_path)
