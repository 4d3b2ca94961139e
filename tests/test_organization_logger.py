"""Unit tests for OrganizationLogger."""

import os
import re
from pathlib import Path

import pytest

from packfuse.fusion import FusionGroupBuilder
from packfuse.models import (
    ErrorType,
    ExecutionOutcome,
    HierarchyTemplate,
    OrganizationError,
    OrganizationPlan,
    OrganizationSummary,
    RollbackReport,
    Severity,
    ValidationCheck,
    ValidationReport,
)
from packfuse.operations import OrganizationExecutor
from packfuse.orchestration import OrganizationLogger
from packfuse.planning import OrganizationPlanner


@pytest.fixture
def planned(sample_library):
    build = FusionGroupBuilder().build(sample_library["clusters"], sample_library["packs"])
    plan = OrganizationPlanner().plan(
        HierarchyTemplate(), sample_library["packs"], build.groups,
        sample_library["working"], sample_library["target"],
    )
    return plan


@pytest.mark.unit
class TestOrganizationLoggerBasic:
    """Test basic OrganizationLogger functionality."""

    def test_default_log_path_in_cwd(self, temp_dir: Path) -> None:
        """Test that the default log file is timestamped and placed in the cwd."""
        original_cwd = os.getcwd()
        try:
            os.chdir(temp_dir)
            with OrganizationLogger() as run_log:
                log_path = run_log.get_log_path()
                assert log_path.parent == temp_dir
                assert re.match(r"organize_log_\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2}\.log", log_path.name)
        finally:
            os.chdir(original_cwd)

    def test_custom_log_file_path(self, temp_dir: Path) -> None:
        """Test that a custom log path is used and the header is written."""
        log_path = temp_dir / "run.log"
        with OrganizationLogger(log_file_path=log_path, target_root=temp_dir / "library") as run_log:
            assert run_log.get_log_path() == log_path
            run_log.log_header()

        content = log_path.read_text()
        assert "PackFuse - Sample Library Organization Log" in content
        assert "Mode: LIVE ORGANIZE" in content
        assert f"Target: {temp_dir / 'library'}" in content
        assert content.splitlines()[0] == "=" * 65

    def test_dry_run_header(self, temp_dir: Path) -> None:
        log_path = temp_dir / "dry.log"
        with OrganizationLogger(log_file_path=log_path, dry_run=True) as run_log:
            run_log.log_header()

        content = log_path.read_text()
        assert "Mode: DRY RUN" in content
        assert "LIVE ORGANIZE" not in content

    def test_missing_directory_raises(self, temp_dir: Path) -> None:
        """Test that a log path in a missing directory is rejected up front."""
        with pytest.raises(OSError, match="does not exist"):
            OrganizationLogger(log_file_path=temp_dir / "missing" / "run.log")

    def test_file_not_created_before_enter(self, temp_dir: Path) -> None:
        log_path = temp_dir / "run.log"
        run_log = OrganizationLogger(log_file_path=log_path)
        assert not log_path.exists()

        with run_log:
            assert log_path.exists()

    def test_write_after_close_warns(self, temp_dir: Path, capsys) -> None:
        """Test that writing to a closed log reports on stderr instead of raising."""
        run_log = OrganizationLogger(log_file_path=temp_dir / "run.log")
        run_log.log_header()

        assert "closed log file" in capsys.readouterr().err


@pytest.mark.unit
class TestOrganizationLoggerSections:
    """Test the content of each log section."""

    def test_plan_phase(self, temp_dir: Path, planned: OrganizationPlan) -> None:
        """Test that the plan section lists counts, fusion sources and risks."""
        log_path = temp_dir / "plan.log"
        with OrganizationLogger(log_file_path=log_path) as run_log:
            run_log.log_plan_phase(planned)

        content = log_path.read_text()
        assert "PLAN PHASE" in content
        assert f"Operations: {len(planned.operations)}" in content
        assert "Fusion operations: 1" in content
        assert "Fusion Groups:" in content
        assert "Kicks -> " in content
        assert "(2 files)" in content
        assert "! Risk [" in content

    def test_execution_phase(self, temp_dir: Path, planned: OrganizationPlan) -> None:
        """Test that the execution section reports counters and fusion results."""
        outcome = OrganizationExecutor().execute(planned)
        log_path = temp_dir / "exec.log"
        with OrganizationLogger(log_file_path=log_path) as run_log:
            run_log.log_execution_phase(outcome)

        content = log_path.read_text()
        assert "EXECUTION PHASE" in content
        assert "Final state: finalized" in content
        assert "Files moved: 2" in content
        assert "Files merged: 4" in content
        assert "Conflicts: 1" in content
        assert "[ok]" in content

    def test_execution_errors_listed(self, temp_dir: Path) -> None:
        outcome = ExecutionOutcome()
        outcome.errors.append(
            OrganizationError(ErrorType.FILESYSTEM, "Permission denied", operation_id="move_file_3")
        )
        log_path = temp_dir / "exec.log"
        with OrganizationLogger(log_file_path=log_path) as run_log:
            run_log.log_execution_phase(outcome)

        assert "- error filesystem [move_file_3]: Permission denied" in log_path.read_text()

    def test_rollback_section(self, temp_dir: Path) -> None:
        report = RollbackReport(attempted=3, reverted=2, left_in_place=["f1: not empty"])
        log_path = temp_dir / "rollback.log"
        with OrganizationLogger(log_file_path=log_path) as run_log:
            run_log.log_rollback(report)

        content = log_path.read_text()
        assert "ROLLBACK" in content
        assert "Reverted: 2/3" in content
        assert "left in place: f1: not empty" in content

    def test_validation_section(self, temp_dir: Path) -> None:
        """Test that the validation section shows the score and failing details."""
        report = ValidationReport(
            checks=[
                ValidationCheck("target_root_exists", True, Severity.CRITICAL),
                ValidationCheck("no_orphaned_files", False, Severity.WARNING, details=["stray.txt"]),
            ],
            score=0.8,
            passed=False,
        )
        log_path = temp_dir / "validation.log"
        with OrganizationLogger(log_file_path=log_path) as run_log:
            run_log.log_validation(report)

        content = log_path.read_text()
        assert "Score: 0.80 (FAILED)" in content
        assert "- target_root_exists [critical]: ok" in content
        assert "- no_orphaned_files [warning]: FAILED" in content
        assert "stray.txt" in content

    def test_summary_section(self, temp_dir: Path) -> None:
        """Test that the summary reports the result, totals and log location."""
        summary = OrganizationSummary(plan=OrganizationPlan(target_root=temp_dir), duration_seconds=323)
        summary.errors.append(OrganizationError(ErrorType.FUSION, "merge failed"))
        log_path = temp_dir / "summary.log"
        with OrganizationLogger(log_file_path=log_path) as run_log:
            run_log.log_summary(summary)

        content = log_path.read_text()
        assert "Result: FAILED" in content
        assert "Total errors: 1" in content
        assert "Duration: 5m 23s" in content
        assert f"Log file: {log_path}" in content
        assert content.rstrip().endswith("=" * 65)


@pytest.mark.unit
class TestOrganizationLoggerFormatting:
    """Test formatting helpers."""

    @pytest.mark.parametrize("seconds,expected", [
        (0, "0s"),
        (45, "45s"),
        (59.9, "59s"),
        (60, "1m 0s"),
        (323, "5m 23s"),
        (3930, "1h 5m 30s"),
    ])
    def test_format_duration(self, temp_dir: Path, seconds: float, expected: str) -> None:
        run_log = OrganizationLogger(log_file_path=temp_dir / "run.log")
        assert run_log._format_duration(seconds) == expected
