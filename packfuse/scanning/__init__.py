"""File scanning package for PackFuse.

- FileScanner: recursive, cycle-safe enumeration of the files in a pack or
  fusion source folder.
- FileHasher: cached SHA256 digests used to tell duplicate files from
  name conflicts and to find duplicate content after a run.
"""

from .file_hasher import FileHasher
from .file_scanner import FileScanner, ScannedFile

__all__ = ["FileHasher", "FileScanner", "ScannedFile"]
