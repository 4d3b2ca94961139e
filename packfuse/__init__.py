"""PackFuse - Sample Library Fusion and Organization Engine.

Fuses near-duplicate folders across sample packs and reorganizes a library
into a canonical Family/Type/Style/Function hierarchy.
"""

__version__ = "1.0.0"

from .models import (
    ClassifiedPack,
    FolderCluster,
    FolderPath,
    FusionGroup,
    OrganizationPlan,
    OrganizationSummary,
)

__all__ = [
    "__version__",
    "ClassifiedPack",
    "FolderCluster",
    "FolderPath",
    "FusionGroup",
    "OrganizationPlan",
    "OrganizationSummary",
]


def main() -> None:
    """Entry point for the packfuse command.

    Imports and runs the Typer app from packfuse.cli.
    """
    from packfuse.cli import app
    app()
