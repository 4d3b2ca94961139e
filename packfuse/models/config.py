"""
Configuration objects for the clustering, fusion and execution stages.

All values are validated eagerly; an out-of-range value raises ValueError
from the constructor so that misconfiguration is reported before any
filesystem work starts.
"""

from dataclasses import dataclass

from .enums import ConflictStrategy


def _check_unit_interval(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be between 0.0 and 1.0, got {value}")


@dataclass
class ClusteringConfig:
    """Settings for grouping folder names into clusters."""
    similarity_threshold: float = 0.65
    min_cluster_size: int = 2
    max_cluster_size: int = 100

    def __post_init__(self) -> None:
        _check_unit_interval("similarity_threshold", self.similarity_threshold)
        if self.min_cluster_size < 1:
            raise ValueError(f"min_cluster_size must be at least 1, got {self.min_cluster_size}")
        if self.max_cluster_size < self.min_cluster_size:
            raise ValueError(
                f"max_cluster_size ({self.max_cluster_size}) must be >= "
                f"min_cluster_size ({self.min_cluster_size})"
            )


@dataclass
class FusionBuilderConfig:
    """Settings for FusionGroupBuilder.

    Attributes:
        min_group_size: Clusters with fewer members are dropped.
        max_group_size: Clusters with more members are dropped.
        conflict_threshold: Source-pack Jaccard overlap above which two
            groups are reported as overlapping.
        use_full_path: Build the full Family/Type/Style[/Format]/Canonical[/Variant]
            target path instead of the 3-level Type/Style/Canonical form.
        preserve_pack_structure: Keep each source pack's own sub-folders
            inside the fusion target.
    """
    min_group_size: int = 1
    max_group_size: int = 1000
    conflict_threshold: float = 0.3
    use_full_path: bool = True
    preserve_pack_structure: bool = False

    def __post_init__(self) -> None:
        if self.min_group_size < 1:
            raise ValueError(f"min_group_size must be at least 1, got {self.min_group_size}")
        if self.max_group_size < self.min_group_size:
            raise ValueError(
                f"max_group_size ({self.max_group_size}) must be >= "
                f"min_group_size ({self.min_group_size})"
            )
        _check_unit_interval("conflict_threshold", self.conflict_threshold)


@dataclass
class OrganizationOptions:
    """Execution options for OrganizationExecutor."""
    enable_fusion: bool = True
    conflict_resolution: ConflictStrategy = ConflictStrategy.RENAME
    create_backup: bool = True
    enable_rollback: bool = True
    cleanup_empty_sources: bool = True
    critical_error_threshold: int = 10

    def __post_init__(self) -> None:
        if isinstance(self.conflict_resolution, str):
            try:
                self.conflict_resolution = ConflictStrategy(self.conflict_resolution)
            except ValueError:
                valid = ", ".join(strategy.value for strategy in ConflictStrategy)
                raise ValueError(
                    f"conflict_resolution must be one of {valid}, got {self.conflict_resolution!r}"
                )
        if self.critical_error_threshold < 1:
            raise ValueError(
                f"critical_error_threshold must be at least 1, got {self.critical_error_threshold}"
            )
