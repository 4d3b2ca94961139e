"""Unit tests for FileScanner class."""

import platform
from pathlib import Path

import pytest

from packfuse.scanning import FileScanner


@pytest.mark.unit
class TestFileScannerBasic:
    """Basic functionality tests for FileScanner."""

    def test_scan_files_nested(self, temp_dir: Path) -> None:
        """Test scanning a pack returns every file with relative paths, sorted."""
        pack = temp_dir / "Vendor_Pack"
        (pack / "Drums" / "Kicks").mkdir(parents=True)
        (pack / "Bass").mkdir()
        (pack / "readme.txt").write_bytes(b"r" * 10)
        (pack / "Drums" / "Kicks" / "kick.wav").write_bytes(b"k" * 100)
        (pack / "Bass" / "sub.wav").write_bytes(b"b" * 50)

        files = FileScanner().scan_files(pack)

        assert [f.relative_path.as_posix() for f in files] == [
            "Bass/sub.wav",
            "Drums/Kicks/kick.wav",
            "readme.txt",
        ]
        assert [f.size for f in files] == [50, 100, 10]
        assert files[0].path == pack.resolve() / "Bass" / "sub.wav"

    def test_scan_files_excluded(self, temp_dir: Path) -> None:
        """Test excluded sub-trees are not entered."""
        pack = temp_dir / "pack"
        (pack / "Kicks").mkdir(parents=True)
        (pack / "Snares").mkdir()
        (pack / "Kicks" / "k.wav").write_bytes(b"k")
        (pack / "Snares" / "s.wav").write_bytes(b"s")

        files = FileScanner().scan_files(pack, excluded=[pack / "Kicks"])

        assert [f.relative_path.as_posix() for f in files] == ["Snares/s.wav"]

    def test_scan_files_empty(self, temp_dir: Path) -> None:
        assert FileScanner().scan_files(temp_dir) == []

    def test_count_files(self, temp_dir: Path) -> None:
        """Test count_files returns file count and total bytes."""
        (temp_dir / "a.wav").write_bytes(b"a" * 300)
        (temp_dir / "sub").mkdir()
        (temp_dir / "sub" / "b.wav").write_bytes(b"b" * 200)

        assert FileScanner().count_files(temp_dir) == (2, 500)


@pytest.mark.unit
class TestFileScannerSymlinks:
    """Symlink handling tests for FileScanner."""

    @pytest.mark.skipif(
        platform.system() == "Windows",
        reason="Symlinks may not work on Windows without elevated privileges",
    )
    def test_directory_symlink_cycle_to_self(self, temp_dir: Path) -> None:
        """Test scanning terminates when a directory contains a symlink to itself."""
        folder = temp_dir / "folder_with_cycle"
        folder.mkdir()
        (folder / "file.wav").write_bytes(b"content")

        try:
            (folder / "cycle").symlink_to(folder)
        except OSError:
            pytest.skip("Symlinks not supported")

        files = FileScanner().scan_files(folder)

        assert [f.relative_path.as_posix() for f in files] == ["file.wav"]

    @pytest.mark.skipif(
        platform.system() == "Windows",
        reason="Symlinks may not work on Windows without elevated privileges",
    )
    def test_directory_symlink_cycle_to_parent(self, temp_dir: Path) -> None:
        """Test scanning terminates when a subdirectory links back to its parent."""
        folder = temp_dir / "parent_folder"
        subdir = folder / "subdir"
        subdir.mkdir(parents=True)
        (folder / "parent.wav").write_bytes(b"parent content")
        (subdir / "child.wav").write_bytes(b"child content")

        try:
            (subdir / "back_to_parent").symlink_to(folder)
        except OSError:
            pytest.skip("Symlinks not supported")

        files = FileScanner().scan_files(folder)

        assert len(files) == 2


@pytest.mark.unit
class TestFileScannerErrors:
    """Error handling tests for FileScanner."""

    def test_scan_missing_root(self, temp_dir: Path) -> None:
        """Test scanning a missing folder returns nothing and records an error."""
        scanner = FileScanner()

        assert scanner.scan_files(temp_dir / "missing") == []
        assert len(scanner.get_errors()) == 1
        assert "Not a directory" in scanner.get_errors()[0]

    def test_clear_errors(self, temp_dir: Path) -> None:
        """Test that clear_errors empties the error list."""
        scanner = FileScanner()
        scanner.scan_files(temp_dir / "missing")

        scanner.clear_errors()

        assert scanner.get_errors() == []
