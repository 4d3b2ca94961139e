"""
PackFuse - Sample Library Organization CLI.

Fuses near-duplicate sample folders across packs and reorganizes a sample
library into a Family/Type/Style/Function hierarchy. The input is a JSON
inventory produced by the pack detector and classifier.

Usage Examples:
    # Show the fusion groups an inventory produces (read-only)
    packfuse scan inventory.json

    # Preview the reorganization without touching files
    packfuse plan inventory.json --target /samples/library

    # Organize, skipping files whose target already exists
    packfuse organize inventory.json --target /samples/library --conflict skip

    # Organize with a run log and a custom taxonomy
    packfuse organize inventory.json --target /samples/library \\
        --log-file organize.log --taxonomy my_taxonomy.yaml --verbose
"""

import logging
import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from packfuse.models import (
    ClusteringConfig,
    ConflictStrategy,
    FusionBuilderConfig,
    OrganizationInput,
    OrganizationOptions,
    load_organization_input,
)
from packfuse.orchestration import OrganizationOrchestrator

__version__ = "1.0.0"

app = typer.Typer(
    name="packfuse",
    help="PackFuse - Fuse duplicate sample folders and organize sample libraries.",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool) -> None:
    """Display version information and exit."""
    if value:
        console.print(f"PackFuse v{__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    """Route packfuse log records through Rich. DEBUG with --verbose, else INFO."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def validate_threshold(value: float) -> float:
    """
    Validate the similarity threshold is within range.

    Raises:
        typer.BadParameter: If value is outside 0.0-1.0.
    """
    if not 0.0 <= value <= 1.0:
        raise typer.BadParameter("Threshold must be between 0.0 and 1.0")
    return value


def load_inventory(inventory: Path) -> OrganizationInput:
    """
    Load the inventory file or exit with a descriptive error.

    Raises:
        typer.Exit: If the file is missing, unreadable or malformed.
    """
    if not inventory.is_file():
        console.print(f"[red]Error:[/red] Inventory file does not exist: {inventory}")
        raise typer.Exit(1)
    try:
        return load_organization_input(inventory)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except OSError as e:
        console.print(f"[red]Error:[/red] Cannot read inventory: {e}")
        raise typer.Exit(1)


def resolve_working_path(inventory: Path, working_path: Optional[Path]) -> Path:
    """Directory relative pack paths are resolved against. Defaults to the inventory's folder."""
    return working_path if working_path is not None else inventory.resolve().parent


def validate_target(target: Path, dry_run: bool) -> None:
    """
    Check the target library root can be created or written.

    Raises:
        typer.Exit: If the target is a file, or not writable on a live run.
    """
    if target.exists() and not target.is_dir():
        console.print(f"[red]Error:[/red] Target is not a directory: {target}")
        raise typer.Exit(1)
    if dry_run:
        return
    existing = target if target.exists() else target.parent
    if existing.exists() and not os.access(existing, os.W_OK):
        console.print(f"[red]Error:[/red] Permission denied - cannot write to: {existing}")
        console.print("[dim]Tip: Use --dry-run to preview changes without write access.[/dim]")
        raise typer.Exit(1)


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """PackFuse - Fuse duplicate sample folders and organize sample libraries."""
    pass


@app.command()
def scan(
    inventory: Path = typer.Argument(..., help="JSON inventory of classified packs and folders."),
    working_path: Optional[Path] = typer.Option(
        None,
        "--working-path",
        "-w",
        help="Directory relative pack paths refer to (default: the inventory's folder).",
    ),
    threshold: float = typer.Option(
        0.65,
        "--threshold",
        "-t",
        help="Similarity threshold for clustering folders (0.0-1.0).",
        callback=validate_threshold,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable verbose output."),
) -> None:
    """
    Show the fusion groups an inventory produces, without planning or moving files.
    """
    configure_logging(verbose)
    data = load_inventory(inventory)

    try:
        orchestrator = OrganizationOrchestrator(
            working_path=resolve_working_path(inventory, working_path),
            target_root=Path.cwd(),
            clustering_config=ClusteringConfig(similarity_threshold=threshold),
            verbose=verbose,
        )
        build_result = orchestrator.scan(data)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if build_result.groups:
        console.print(f"\n[green]Found {len(build_result.groups)} fusion group(s).[/green]")
    else:
        console.print("\n[yellow]No fusion groups found.[/yellow]")


@app.command()
def plan(
    inventory: Path = typer.Argument(..., help="JSON inventory of classified packs and folders."),
    target: Path = typer.Option(..., "--target", "-T", help="Root of the organized library."),
    working_path: Optional[Path] = typer.Option(
        None,
        "--working-path",
        "-w",
        help="Directory relative pack paths refer to (default: the inventory's folder).",
    ),
    taxonomy: Optional[Path] = typer.Option(None, "--taxonomy", help="Custom taxonomy YAML file."),
    preserve_pack_structure: bool = typer.Option(
        False,
        "--preserve-pack-structure",
        help="Keep each pack's files in its own subfolder of a fusion target.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable verbose output."),
) -> None:
    """
    Preview the reorganization: operations, fusion groups and risks. Nothing is moved.
    """
    configure_logging(verbose)
    data = load_inventory(inventory)
    validate_target(target, dry_run=True)

    try:
        orchestrator = OrganizationOrchestrator(
            working_path=resolve_working_path(inventory, working_path),
            target_root=target,
            builder_config=FusionBuilderConfig(preserve_pack_structure=preserve_pack_structure),
            taxonomy_path=taxonomy,
            verbose=verbose,
        )
        organization_plan, build_result = orchestrator.plan(data)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    orchestrator.tui.display_fusion_groups(build_result, total_folders=len(data.folders))
    orchestrator.tui.display_plan(organization_plan)


@app.command()
def organize(
    inventory: Path = typer.Argument(..., help="JSON inventory of classified packs and folders."),
    target: Path = typer.Option(..., "--target", "-T", help="Root of the organized library."),
    working_path: Optional[Path] = typer.Option(
        None,
        "--working-path",
        "-w",
        help="Directory relative pack paths refer to (default: the inventory's folder).",
    ),
    conflict: ConflictStrategy = typer.Option(
        ConflictStrategy.RENAME,
        "--conflict",
        "-c",
        help="What to do when a target file already exists.",
        case_sensitive=False,
    ),
    no_rollback: bool = typer.Option(False, "--no-rollback", help="Leave partial results after an abort."),
    no_fusion: bool = typer.Option(False, "--no-fusion", help="Skip folder fusion."),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Plan only, without moving files."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
    log_file: Optional[Path] = typer.Option(None, "--log-file", "-l", help="Path for the run log."),
    taxonomy: Optional[Path] = typer.Option(None, "--taxonomy", help="Custom taxonomy YAML file."),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Enable verbose output."),
) -> None:
    """
    Fuse duplicate folders and move every pack into the organized library.
    """
    configure_logging(verbose)
    data = load_inventory(inventory)
    validate_target(target, dry_run=dry_run)

    if dry_run:
        console.print("[yellow][DRY RUN MODE][/yellow] No files will be modified.\n")

    try:
        options = OrganizationOptions(
            enable_fusion=not no_fusion,
            conflict_resolution=conflict,
            enable_rollback=not no_rollback,
        )
        orchestrator = OrganizationOrchestrator(
            working_path=resolve_working_path(inventory, working_path),
            target_root=target,
            options=options,
            taxonomy_path=taxonomy,
            log_file_path=log_file,
            verbose=verbose,
        )
        summary = orchestrator.organize(
            data,
            dry_run=dry_run,
            confirm=None if yes else orchestrator.tui.confirm_execution,
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Organization interrupted by user.[/yellow]")
        raise typer.Exit(130)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except OSError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if summary.interrupted:
        console.print("[yellow]Organization cancelled. No files were changed.[/yellow]")
        raise typer.Exit(130)
    if summary.errors:
        console.print(f"\n[yellow]Completed with {len(summary.errors)} error(s).[/yellow]")
    if log_file:
        console.print(f"[dim]Log written to: {log_file}[/dim]")
    if not summary.success:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
