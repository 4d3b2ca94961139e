"""End-to-end tests for the PackFuse CLI.

This module drives the CLI through Typer's CliRunner against a small
incoming folder and the JSON inventory describing it.
"""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from packfuse.cli import __version__, app

from conftest import write_file


@pytest.fixture
def cli_runner() -> CliRunner:
    """Return a CliRunner instance for testing."""
    return CliRunner()


@pytest.fixture
def inventory_file(temp_dir: Path) -> Path:
    """Create two packs and the inventory describing them.

    Creates:
        incoming/
        ├── inventory.json
        ├── Dubstep_Pack_A/Kicks/kick1.wav, Bass/bass1.wav
        └── Dubstep_Pack_B/Kick/kick2.wav

    Returns:
        Path to inventory.json. Pack paths inside it are relative to its folder.
    """
    incoming = temp_dir / "incoming"
    write_file(incoming / "Dubstep_Pack_A" / "Kicks" / "kick1.wav", "kick one")
    write_file(incoming / "Dubstep_Pack_A" / "Bass" / "bass1.wav", "bass one")
    write_file(incoming / "Dubstep_Pack_B" / "Kick" / "kick2.wav", "kick two")

    classification = {"family": "Bass Music", "style": "Dubstep", "confidence": 0.9}
    document = {
        "packs": [
            {"pack_id": "pack_a", "name": "Dubstep Pack A", "path": "Dubstep_Pack_A",
             "classification": classification, "detected_types": {"BASS": ["Bass"]}},
            {"pack_id": "pack_b", "name": "Dubstep Pack B", "path": "Dubstep_Pack_B",
             "classification": classification},
        ],
        "clusters": [
            {"canonical": "Kicks", "members": [
                {"pack_id": "pack_a", "path": "Kicks", "file_count": 1},
                {"pack_id": "pack_b", "path": "Kick", "file_count": 1},
            ]},
        ],
    }
    path = incoming / "inventory.json"
    path.write_text(json.dumps(document))
    return path


class TestCLIBasics:
    """Tests for global options and argument validation."""

    def test_version(self, cli_runner: CliRunner) -> None:
        """Test --version prints the version and exits cleanly."""
        result = cli_runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert f"PackFuse v{__version__}" in result.output

    def test_no_args_shows_help(self, cli_runner: CliRunner) -> None:
        result = cli_runner.invoke(app, [])
        assert "scan" in result.output
        assert "organize" in result.output

    def test_missing_inventory(self, cli_runner: CliRunner, temp_dir: Path) -> None:
        """Test a missing inventory file exits with status 1."""
        result = cli_runner.invoke(app, ["scan", str(temp_dir / "missing.json")])

        assert result.exit_code == 1
        assert "Inventory file does not exist" in result.output

    def test_malformed_inventory(self, cli_runner: CliRunner, temp_dir: Path) -> None:
        path = temp_dir / "inventory.json"
        path.write_text("{broken")

        result = cli_runner.invoke(app, ["scan", str(path)])

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_threshold_out_of_range(self, cli_runner: CliRunner, inventory_file: Path) -> None:
        result = cli_runner.invoke(app, ["scan", str(inventory_file), "--threshold", "1.5"])
        assert result.exit_code != 0

    def test_target_is_a_file(self, cli_runner: CliRunner, inventory_file: Path, temp_dir: Path) -> None:
        target = write_file(temp_dir / "library", "not a folder")

        result = cli_runner.invoke(app, ["plan", str(inventory_file), "--target", str(target)])

        assert result.exit_code == 1
        assert "Target is not a directory" in result.output


class TestCLICommands:
    """Tests for scan, plan and organize."""

    def test_scan(self, cli_runner: CliRunner, inventory_file: Path) -> None:
        """Test scan reports the fusion groups without moving anything."""
        result = cli_runner.invoke(app, ["scan", str(inventory_file)])

        assert result.exit_code == 0
        assert "Found 1 fusion group(s)." in result.output
        assert (inventory_file.parent / "Dubstep_Pack_A" / "Kicks" / "kick1.wav").exists()

    def test_plan(self, cli_runner: CliRunner, inventory_file: Path, temp_dir: Path) -> None:
        """Test plan shows a preview and leaves the target uncreated."""
        target = temp_dir / "library"

        result = cli_runner.invoke(app, ["plan", str(inventory_file), "--target", str(target)])

        assert result.exit_code == 0
        assert "Organization Plan" in result.output
        assert not target.exists()

    def test_organize_dry_run(self, cli_runner: CliRunner, inventory_file: Path, temp_dir: Path) -> None:
        target = temp_dir / "library"

        result = cli_runner.invoke(
            app, ["organize", str(inventory_file), "--target", str(target), "--dry-run"]
        )

        assert result.exit_code == 0
        assert "DRY RUN MODE" in result.output
        assert not target.exists()

    def test_organize_yes(self, cli_runner: CliRunner, inventory_file: Path, temp_dir: Path) -> None:
        """Test a confirmed organize fuses the kick folders and writes the log."""
        target = temp_dir / "library"
        log_file = temp_dir / "organize.log"

        result = cli_runner.invoke(app, [
            "organize", str(inventory_file),
            "--target", str(target),
            "--yes",
            "--log-file", str(log_file),
        ])

        assert result.exit_code == 0
        kicks = target / "Bass_Music" / "KICKS" / "Dubstep" / "Kicks"
        assert sorted(p.name for p in kicks.iterdir()) == ["kick1.wav", "kick2.wav"]
        assert "Result: SUCCESS" in log_file.read_text()

    def test_organize_declined(self, cli_runner: CliRunner, inventory_file: Path, temp_dir: Path) -> None:
        """Test answering no at the prompt exits 130 and changes nothing."""
        target = temp_dir / "library"

        result = cli_runner.invoke(
            app, ["organize", str(inventory_file), "--target", str(target)], input="n\n"
        )

        assert result.exit_code == 130
        assert "Organization cancelled" in result.output
        assert (inventory_file.parent / "Dubstep_Pack_B" / "Kick" / "kick2.wav").exists()
        assert not target.exists()

    def test_organize_keyboard_interrupt(
        self, cli_runner: CliRunner, inventory_file: Path, temp_dir: Path
    ) -> None:
        with patch(
            "packfuse.cli.OrganizationOrchestrator.organize", side_effect=KeyboardInterrupt
        ):
            result = cli_runner.invoke(
                app, ["organize", str(inventory_file), "--target", str(temp_dir / "library"), "--yes"]
            )

        assert result.exit_code == 130
        assert "interrupted by user" in result.output

    def test_organize_invalid_conflict_strategy(
        self, cli_runner: CliRunner, inventory_file: Path, temp_dir: Path
    ) -> None:
        result = cli_runner.invoke(app, [
            "organize", str(inventory_file), "--target", str(temp_dir / "library"), "--conflict", "merge",
        ])
        assert result.exit_code != 0
