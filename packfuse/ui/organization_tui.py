"""Terminal output for PackFuse runs.

OrganizationTUI renders fusion groups, plan previews, execution progress and
run summaries with Rich.

Example:
    from packfuse.ui import OrganizationTUI

    tui = OrganizationTUI()
    tui.display_fusion_groups(build_result, total_folders=120)
    tui.display_plan(plan)
    progress, callback = tui.create_progress_callback("Organizing")
    with progress:
        summary = orchestrator.organize(inventory, progress_callback=callback)
    tui.display_organization_summary(summary)
"""

from typing import Callable, List, Optional, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    TaskProgressColumn,
    TextColumn,
    TimeRemainingColumn,
)
from rich.prompt import Confirm
from rich.table import Table

from packfuse.models import (
    FusionBuildResult,
    OrganizationError,
    OrganizationPlan,
    OrganizationSummary,
    Severity,
)


class OrganizationTUI:
    """Rich-based rendering of fusion groups, plans and summaries.

    Args:
        console: Optional Rich Console. Pass one writing to a StringIO to
            capture output in tests.

    Attributes:
        console: The Rich Console used for all output.
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()

    def display_fusion_groups(self, build_result: FusionBuildResult, total_folders: int) -> None:
        """Show the fusion groups built from the inventory and any unresolved conflicts."""
        groups = build_result.groups
        header_text = (
            f"Folders analyzed: {total_folders:,}\n"
            f"Fusion groups: {len(groups)}\n"
            f"Conflicts detected: {len(build_result.conflicts)} "
            f"({len(build_result.unresolved)} need review)"
        )
        self.console.print(Panel(header_text, title="Fusion Groups", border_style="blue"))

        if not groups:
            self.console.print("[yellow]No fusion groups found.[/yellow]")
            return

        table = Table(title="Fusion Groups")
        table.add_column("Group", style="cyan", no_wrap=True)
        table.add_column("Canonical", style="white")
        table.add_column("Target", style="magenta")
        table.add_column("Packs", justify="right")
        table.add_column("Files", justify="right")
        table.add_column("Confidence", justify="center")

        for group in groups:
            table.add_row(
                group.id,
                self._truncate_name(group.canonical, max_length=40),
                self._truncate_name(group.target_path, max_length=60),
                str(group.statistics.pack_count),
                f"{group.statistics.total_files:,}",
                self._format_confidence(int(group.confidence * 100)),
            )
        self.console.print(table)

        if build_result.unresolved:
            conflicts = Table(title="Conflicts Needing Review")
            conflicts.add_column("Groups", style="cyan")
            conflicts.add_column("Type", style="magenta")
            conflicts.add_column("Resolution")
            conflicts.add_column("Reason", style="white")
            for conflict in build_result.unresolved:
                conflicts.add_row(
                    f"{conflict.group_id1} / {conflict.group_id2}",
                    conflict.conflict_type.value,
                    conflict.resolution.value,
                    conflict.reason,
                )
            self.console.print(conflicts)

    def display_plan(self, plan: OrganizationPlan) -> None:
        """Show a read-only preview of a plan."""
        stats = plan.estimated_stats
        structure = plan.folder_structure
        header_text = (
            f"Target: {plan.target_root}\n"
            f"Operations: {len(plan.operations):,}\n"
            f"Fusion operations: {len(plan.fusion_operations)}\n"
            f"Files: {stats.total_files:,} ({self._format_size(stats.total_size)})\n"
            f"Folders: {structure.total_folders if structure else 0:,}, "
            f"max depth {structure.max_depth if structure else 0}\n"
            f"Estimated duration: {self._format_duration(stats.estimated_duration_ms / 1000)}\n"
            f"Complexity: {stats.complexity:.2f}"
        )
        self.console.print(Panel(header_text, title="Organization Plan", border_style="blue"))

        if plan.fusion_operations:
            table = Table(title="Fusion Operations")
            table.add_column("Canonical", style="cyan")
            table.add_column("Target", style="magenta")
            table.add_column("Sources", justify="right")
            table.add_column("Files", justify="right")
            table.add_column("Duplicate risk", justify="right")
            for fusion in plan.fusion_operations:
                table.add_row(
                    fusion.canonical,
                    self._truncate_name(str(fusion.target_path), max_length=60),
                    str(len(fusion.sources)),
                    f"{fusion.estimated_files:,}",
                    f"{fusion.duplicate_risk:.0%}",
                )
            self.console.print(table)

        if plan.risks:
            risks = Table(title="Risks")
            risks.add_column("Type", style="magenta")
            risks.add_column("Severity")
            risks.add_column("Description", style="white")
            risks.add_column("Mitigation", style="dim")
            for risk in plan.risks:
                risks.add_row(
                    risk.type.value, self._format_severity(risk.severity.value),
                    risk.description, risk.mitigation,
                )
            self.console.print(risks)

        for warning in plan.warnings:
            self.console.print(f"[yellow]Warning: {warning}[/yellow]")

    def confirm_execution(self, plan: OrganizationPlan) -> bool:
        """Ask before files are moved. Ctrl+C counts as no."""
        try:
            return Confirm.ask(
                f"Move {plan.estimated_stats.total_files:,} files into {plan.target_root}?",
                console=self.console,
                default=False,
            )
        except KeyboardInterrupt:
            return False

    def create_progress_callback(
        self, description: str = "Organizing"
    ) -> Tuple[Progress, Callable[[int, str], None]]:
        """Create a percentage progress bar and its ``(percent, message)`` callback.

        The caller owns the Progress lifecycle and must use it as a context
        manager around the run.

        Example:
            progress, callback = tui.create_progress_callback()
            with progress:
                executor.execute(plan, progress_callback=callback)
        """
        progress = Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeRemainingColumn(),
            console=self.console,
        )
        task_id = progress.add_task(f"{description}...", total=100)

        def callback(percent: int, message: str) -> None:
            progress.update(task_id, completed=percent, description=message)

        return progress, callback

    def display_organization_summary(self, summary: OrganizationSummary) -> None:
        """Show the final statistics of an organize run."""
        title = "Organization Summary"
        if summary.dry_run:
            title += " [yellow][DRY RUN][/yellow]"
        border = "yellow" if summary.dry_run else ("green" if summary.success else "red")
        self.console.print(Panel(title, border_style=border))

        table = Table(show_header=True, header_style="bold")
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right")

        table.add_row("Planned operations", f"{len(summary.plan.operations):,}")
        table.add_row("Fusion operations", f"{len(summary.plan.fusion_operations):,}")
        if summary.outcome is not None:
            result = summary.outcome.result
            fusion = summary.outcome.fusion_result
            table.add_row("Final state", result.final_state.value)
            table.add_row("Folders created", f"{result.folders_created:,}")
            table.add_row("Files moved", f"{result.files_moved:,}")
            table.add_row("Files skipped", f"{result.files_skipped:,}")
            table.add_row("Collisions renamed", f"{result.conflicts_renamed:,}")
            table.add_row("Files fused", f"{fusion.total_files_merged:,}")
            table.add_row("Fusion duplicates", f"{fusion.total_duplicates:,}")
            table.add_row("Fusion conflicts", f"{fusion.total_conflicts:,}")
            if summary.outcome.rollback is not None:
                rollback = summary.outcome.rollback
                table.add_row("Rolled back", f"{rollback.reverted}/{rollback.attempted}")
        if summary.validation is not None:
            table.add_row("Validation score", f"{summary.validation.score:.2f}")
        table.add_row("Duration", self._format_duration(summary.duration_seconds))
        self.console.print(table)

        if summary.errors:
            self._display_errors(summary.errors)

    def _display_errors(self, errors: List[OrganizationError]) -> None:
        max_display = 10
        lines = []
        for error in errors[:max_display]:
            color = "yellow" if error.severity == Severity.WARNING else "red"
            lines.append(f"[{color}]- {error.error_type.value}: {error.message}[/{color}]")
        remaining = len(errors) - max_display
        if remaining > 0:
            lines.append(f"\n... and {remaining} more errors")

        self.console.print(Panel("\n".join(lines), title=f"Errors ({len(errors)})", border_style="red"))

    def _format_confidence(self, confidence_pct: int) -> str:
        if confidence_pct >= 90:
            return f"[green]{confidence_pct}%[/green]"
        elif confidence_pct >= 70:
            return f"[yellow]{confidence_pct}%[/yellow]"
        else:
            return f"[red]{confidence_pct}%[/red]"

    def _format_severity(self, severity: str) -> str:
        color = {"low": "green", "medium": "yellow", "high": "red"}.get(severity, "white")
        return f"[{color}]{severity}[/{color}]"

    def _format_size(self, bytes_size: int) -> str:
        """Human-readable size, e.g. "10.5 MB"."""
        if bytes_size < 1024:
            return f"{bytes_size} B"
        elif bytes_size < 1024 * 1024:
            return f"{bytes_size / 1024:.1f} KB"
        elif bytes_size < 1024 * 1024 * 1024:
            return f"{bytes_size / (1024 * 1024):.1f} MB"
        else:
            return f"{bytes_size / (1024 * 1024 * 1024):.1f} GB"

    def _format_duration(self, seconds: float) -> str:
        if seconds < 0:
            seconds = 0
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m {secs}s"

    def _truncate_name(self, name: str, max_length: int = 60) -> str:
        if len(name) > max_length:
            return name[: max_length - 3] + "..."
        return name
