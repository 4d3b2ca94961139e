"""
Fusion execution: consolidating a fusion operation's source folders on disk.

Each FusionSource folder is walked recursively and its files are moved into
the fusion target, keeping their path relative to the source folder. When a
file with the same name already exists in the target, the incoming file is
renamed with a ``_N`` suffix. It is counted as a duplicate if its content
matches the existing file and as a conflict otherwise. Sources are processed
in priority order, so the seed source keeps un-suffixed names.
"""

import errno
import logging
import os
import shutil
from pathlib import Path
from typing import Optional

from packfuse.models import FusionBackup, FusionGroupResult, FusionOperation, FusionSource
from packfuse.scanning import FileHasher

logger = logging.getLogger("packfuse.operations")


def is_disk_full(error: OSError) -> bool:
    return error.errno == errno.ENOSPC or "No space left on device" in str(error)


def unique_target(target: Path) -> Path:
    """First free ``<stem>_<N><suffix>`` next to target, N counting from 1.

    Returns target itself when nothing exists there.

    Example:
        >>> unique_target(Path("Kicks/kick.wav"))   # kick.wav exists
        PosixPath('Kicks/kick_1.wav')
    """
    candidate = target
    counter = 1
    while candidate.exists():
        candidate = target.with_name(f"{target.stem}_{counter}{target.suffix}")
        counter += 1
    return candidate


class FusionMerger:
    """Moves the files of every FusionSource into the fusion target directory."""

    def __init__(self, file_hasher: Optional[FileHasher] = None, cleanup_empty_sources: bool = True) -> None:
        self.file_hasher = file_hasher if file_hasher is not None else FileHasher()
        self.cleanup_empty_sources = cleanup_empty_sources

    def merge(self, operation: FusionOperation, backup: Optional[FusionBackup] = None) -> FusionGroupResult:
        """Execute one fusion operation.

        Per-file failures are recorded on the result and the merge continues
        with the next file; the group is then reported as failed.

        Args:
            operation: The fusion to execute.
            backup: When given, every relocation is appended to it as it
                happens, so a rollback can restore even a partial merge.

        Returns:
            FusionGroupResult with merged, duplicate and conflict counts.

        Raises:
            OSError: When the disk is full (ENOSPC). Nothing else propagates.
        """
        result = FusionGroupResult(group_id=operation.group_id, target_path=operation.target_path)
        errors = []

        if not operation.target_path.exists():
            operation.target_path.mkdir(parents=True, exist_ok=True)
            if backup is not None:
                backup.created_target = True

        for source in sorted(operation.sources, key=lambda s: s.priority):
            if not source.source_path.is_dir():
                errors.append(f"Fusion source not found: {source.source_path}")
                logger.warning(errors[-1])
                continue

            logger.debug(
                "Fusing %s into %s (priority %d)", source.source_path, operation.target_path, source.priority
            )
            self._merge_source(source, operation.target_path, result, errors, backup)
            result.sources_processed += 1

            if self.cleanup_empty_sources:
                result.folders_removed += self._remove_empty_dirs(source.source_path)

        if errors:
            result.success = False
            result.error = "; ".join(errors[:3]) + (f" (+{len(errors) - 3} more)" if len(errors) > 3 else "")

        logger.info(
            "Fusion %s -> %s: %d files merged, %d duplicates, %d conflicts",
            operation.canonical, operation.target_path,
            result.files_merged, result.duplicates, result.conflicts,
        )
        return result

    def _merge_source(
        self,
        source: FusionSource,
        target_root: Path,
        result: FusionGroupResult,
        errors: list,
        backup: Optional[FusionBackup],
    ) -> None:
        destination_root = target_root / source.target_subdir if source.target_subdir else target_root
        excluded = {path.resolve() for path in source.excluded}

        for root, dirs, files in os.walk(source.source_path):
            root_path = Path(root)
            dirs[:] = sorted(d for d in dirs if (root_path / d).resolve() not in excluded)

            for filename in sorted(files):
                source_file = root_path / filename
                destination = destination_root / source_file.relative_to(source.source_path)
                try:
                    self._move_file(source_file, destination, result, backup)
                except PermissionError as e:
                    errors.append(f"Permission denied: {source_file} - {e}")
                    logger.warning(errors[-1])
                except OSError as e:
                    if is_disk_full(e):
                        logger.critical("Disk full while fusing %s: %s", source_file, e)
                        raise
                    errors.append(f"Error fusing {source_file}: {e}")
                    logger.warning(errors[-1])

    def _move_file(
        self,
        source_file: Path,
        destination: Path,
        result: FusionGroupResult,
        backup: Optional[FusionBackup],
    ) -> None:
        if destination.exists():
            if self.file_hasher.same_content(source_file, destination):
                result.duplicates += 1
                logger.debug("Duplicate content: %s matches %s", source_file, destination)
            else:
                result.conflicts += 1
                logger.debug("Name conflict: %s differs from %s", source_file, destination)
            destination = unique_target(destination)

        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(source_file), str(destination))
        result.files_merged += 1
        if backup is not None:
            backup.relocations.append((source_file, destination))

    def _remove_empty_dirs(self, folder_path: Path) -> int:
        """Remove empty directories below and including folder_path, bottom-up."""
        removed = 0
        if not folder_path.is_dir():
            return removed

        for root, dirs, files in os.walk(folder_path, topdown=False):
            root_path = Path(root)
            try:
                if not any(root_path.iterdir()):
                    root_path.rmdir()
                    removed += 1
                    logger.debug("Removed empty directory: %s", root_path)
            except OSError:
                # Not empty or not removable; left in place
                continue
        return removed
