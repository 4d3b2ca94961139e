"""Content hashing for fusion duplicate detection and post-run validation.

FileHasher computes SHA256 digests in fixed-size chunks and caches them per
(path, mtime, size) so that a file compared several times during one fusion
is read once.

Example:
    >>> from packfuse.scanning import FileHasher
    >>> hasher = FileHasher()
    >>> if hasher.same_content(Path("a/kick.wav"), Path("b/kick.wav")):
    ...     print("duplicate")
"""

import hashlib
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger("packfuse.scanning")

# Buffer size for chunked reads (64KB, audio files are large)
CHUNK_SIZE = 65536


class FileHasher:
    """Computes SHA256 hashes of files with an in-memory cache.

    The cache key includes the modification time and size, so a file that is
    rewritten between two lookups is hashed again.

    Attributes:
        _cache: Maps (resolved path, mtime, size) to hex digests.
        _errors: Error messages from failed reads.
    """

    def __init__(self) -> None:
        self._cache: Dict[Tuple[Path, float, int], str] = {}
        self._errors: List[str] = []
        self._cache_hits = 0
        self._cache_misses = 0

    def hash_file(self, file_path: Path) -> Optional[str]:
        """Compute the SHA256 hex digest of a file.

        Args:
            file_path: File to hash.

        Returns:
            The hex digest, or None if the file is missing or unreadable. The
            reason is recorded in get_errors().
        """
        try:
            resolved = Path(file_path).resolve()
            if not resolved.is_file():
                self._errors.append(f"Not a file: {file_path}")
                return None

            stat_result = resolved.stat()
            key = (resolved, stat_result.st_mtime, stat_result.st_size)
            if key in self._cache:
                self._cache_hits += 1
                return self._cache[key]

            self._cache_misses += 1
            digest = hashlib.sha256()
            with open(resolved, "rb") as f:
                for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
                    digest.update(chunk)

            value = digest.hexdigest()
            self._cache[key] = value
            return value

        except PermissionError:
            self._errors.append(f"Permission denied: {file_path}")
            return None
        except OSError as e:
            self._errors.append(f"Error reading {file_path}: {e}")
            return None

    def same_content(self, first: Path, second: Path) -> bool:
        """True when both files are readable and byte-identical.

        Sizes are compared before hashing; files of different size are never
        read.
        """
        try:
            if Path(first).stat().st_size != Path(second).stat().st_size:
                return False
        except OSError as e:
            self._errors.append(f"Error comparing {first} and {second}: {e}")
            return False

        first_hash = self.hash_file(first)
        return first_hash is not None and first_hash == self.hash_file(second)

    def find_duplicates(self, paths: Iterable[Path]) -> List[List[Path]]:
        """Group files with identical content.

        Args:
            paths: Files to compare.

        Returns:
            Lists of two or more paths sharing a digest, in first-seen order.
            Unreadable files are left out.
        """
        by_hash: Dict[str, List[Path]] = {}
        for path in paths:
            value = self.hash_file(path)
            if value is not None:
                by_hash.setdefault(value, []).append(Path(path))

        duplicates = [group for group in by_hash.values() if len(group) > 1]
        if duplicates:
            logger.debug("Found %d duplicate content groups", len(duplicates))
        return duplicates

    def clear_cache(self) -> None:
        """Drop cached digests and reset the hit/miss counters."""
        self._cache.clear()
        self._cache_hits = 0
        self._cache_misses = 0

    def get_cache_stats(self) -> Dict[str, int]:
        """Return {'size', 'hits', 'misses'} for the digest cache."""
        return {
            "size": len(self._cache),
            "hits": self._cache_hits,
            "misses": self._cache_misses,
        }

    def get_errors(self) -> List[str]:
        return self._errors.copy()

    def clear_errors(self) -> None:
        self._errors.clear()
