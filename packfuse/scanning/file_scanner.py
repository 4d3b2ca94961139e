"""Recursive file enumeration for pack and fusion source folders.

FileScanner walks a directory tree in a deterministic (sorted) order and
returns every regular file with its path relative to the scanned root.
Directory symlinks are followed once; a symlink that leads back into an
already visited directory is skipped so that cyclic trees terminate.

Example:
    >>> from packfuse.scanning import FileScanner
    >>> scanner = FileScanner()
    >>> for entry in scanner.scan_files(Path("/samples/Vendor_Pack")):
    ...     print(entry.relative_path, entry.size)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Set, Tuple

logger = logging.getLogger("packfuse.scanning")


@dataclass(frozen=True)
class ScannedFile:
    """A regular file found below a scanned root."""
    path: Path                 # Absolute path
    relative_path: Path        # Path relative to the scanned root
    size: int


class FileScanner:
    """Enumerates files below a root, honouring excluded sub-trees.

    Errors on individual entries are recorded and the walk continues.
    """

    def __init__(self) -> None:
        self._errors: List[str] = []

    def scan_files(self, root: Path, excluded: Iterable[Path] = ()) -> List[ScannedFile]:
        """List every file below root.

        Args:
            root: Directory to walk.
            excluded: Directories whose sub-trees are not entered. Typically
                nested folders that another fusion operation claims.

        Returns:
            Files sorted by relative path. An empty list when root is not a
            readable directory.
        """
        result: List[ScannedFile] = []
        try:
            resolved_root = Path(root).resolve()
            if not resolved_root.is_dir():
                self._errors.append(f"Not a directory: {root}")
                return result

            skip = {Path(p).resolve() for p in excluded}
            root_stat = resolved_root.stat()
            visited: Set[Tuple[int, int]] = {(root_stat.st_dev, root_stat.st_ino)}

            for dirpath, dirnames, filenames in os.walk(resolved_root, followlinks=True):
                current = Path(dirpath)
                kept = []
                for dirname in sorted(dirnames):
                    child = current / dirname
                    if child.resolve() in skip:
                        continue
                    try:
                        child_stat = child.stat()
                    except OSError as e:
                        self._errors.append(f"Error accessing {child}: {e}")
                        continue
                    dir_id = (child_stat.st_dev, child_stat.st_ino)
                    if dir_id in visited:
                        logger.debug("Skipping already visited directory %s", child)
                        continue
                    visited.add(dir_id)
                    kept.append(dirname)
                dirnames[:] = kept

                for filename in sorted(filenames):
                    file_path = current / filename
                    try:
                        if not file_path.is_file():
                            continue
                        size = file_path.stat().st_size
                    except PermissionError:
                        self._errors.append(f"Permission denied: {file_path}")
                        continue
                    except OSError as e:
                        self._errors.append(f"Error accessing {file_path}: {e}")
                        continue
                    result.append(ScannedFile(
                        path=file_path,
                        relative_path=file_path.relative_to(resolved_root),
                        size=size,
                    ))

        except PermissionError:
            self._errors.append(f"Permission denied accessing folder: {root}")
        except OSError as e:
            self._errors.append(f"Error scanning folder {root}: {e}")

        result.sort(key=lambda entry: entry.relative_path.as_posix())
        return result

    def count_files(self, root: Path) -> Tuple[int, int]:
        """Return (file count, total bytes) below root."""
        files = self.scan_files(root)
        return len(files), sum(entry.size for entry in files)

    def get_errors(self) -> List[str]:
        """Errors collected across all scans, oldest first."""
        return self._errors.copy()

    def clear_errors(self) -> None:
        self._errors.clear()
