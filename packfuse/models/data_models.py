"""
Core data models for PackFuse.

Inputs supplied by the upstream pack detector and classifier:
- PathContext, FolderPath: physical folders belonging to source packs
- Classification, ClassifiedPack: packs with resolved family/style labels
- FolderCluster, ClusterStatistics: groups of near-duplicate folders

Fusion results:
- FusionGroup and its parts (GroupClassification, SourceFileMapping,
  FusionStatistics, ClusterInfo), ConflictResolution, FusionBuildResult

Planning results:
- HierarchyTemplate, Operation, FusionSource, FusionOperation, FileInfo,
  FolderNode, FolderStructure, PlanRisk, EstimatedStats, OrganizationPlan

Execution results:
- OperationRecord, FusionBackup, OrganizationError, OrganizationResult,
  FusionGroupResult, FusionResult, OrganizationMetrics, RollbackReport,
  ExecutionOutcome, ValidationCheck, ValidationReport, OrganizationSummary
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .enums import (
    ClassificationMethod,
    ConflictType,
    ErrorType,
    ExecutionState,
    OperationType,
    ResolutionKind,
    RiskSeverity,
    RiskType,
    Severity,
)

_PATH_SPLIT = re.compile(r"[\\/]+")

HIERARCHY_LEVELS = ("Family", "Type", "Style", "Function")


def path_segments(path: str) -> List[str]:
    """Split a slash or backslash separated path into its non-empty segments."""
    return [segment for segment in _PATH_SPLIT.split(path) if segment]


def folder_name(path: str) -> str:
    """Return the last segment of a path string, or the string itself when it has none."""
    segments = path_segments(path)
    return segments[-1] if segments else path


# =============================================================================
# Upstream inputs
# =============================================================================

@dataclass(frozen=True)
class PathContext:
    """Position of a folder in its source tree, used for contextual scoring."""
    parent_path: str                  # Path of the containing folder
    depth: int                        # Depth below the pack root
    siblings: Tuple[str, ...] = ()    # Names of sibling folders


@dataclass(frozen=True)
class FolderPath:
    """A physical folder belonging to one source pack."""
    pack_id: str                      # Owning pack
    path: str                         # Folder path as discovered upstream
    file_count: int = 0               # Files directly or recursively inside
    context: Optional[PathContext] = None

    @property
    def name(self) -> str:
        return folder_name(self.path)


@dataclass
class Classification:
    """Resolved classifier output for one pack."""
    family: str                       # e.g. "Bass Music"
    style: str                        # e.g. "Dubstep"
    confidence: float = 0.0           # 0.0-1.0
    method: ClassificationMethod = ClassificationMethod.LEXICAL
    type: Optional[str] = None        # Dominant content type, if the classifier knows it


@dataclass
class ClassifiedPack:
    """A detected pack with its classification and internal type zones."""
    pack_id: str
    name: str
    classification: Optional[Classification] = None
    path: Optional[str] = None            # Location reported by the pack detector
    original_path: Optional[str] = None   # Location before any pre-cleaning step
    source_path: Optional[str] = None     # Explicit override
    detected_types: Dict[str, List[str]] = field(default_factory=dict)  # type -> relative dirs
    audio_files: int = 0
    preset_files: int = 0
    avg_bpm: Optional[float] = None
    tags: List[str] = field(default_factory=list)

    @property
    def total_files(self) -> int:
        return self.audio_files + self.preset_files


@dataclass
class ClusterStatistics:
    """Similarity statistics for a folder cluster."""
    avg_similarity: float = 1.0
    min_similarity: float = 1.0
    max_similarity: float = 1.0
    cohesion: float = 1.0             # High mean, low spread of pairwise similarity
    total_files: int = 0
    pack_count: int = 0


@dataclass
class FolderCluster:
    """Folders judged to represent the same conceptual unit."""
    canonical: str                    # Representative name
    members: List[FolderPath]
    confidence: float = 1.0
    statistics: ClusterStatistics = field(default_factory=ClusterStatistics)


# =============================================================================
# Fusion
# =============================================================================

@dataclass
class GroupClassification:
    """Voted classification of a fusion group."""
    family: str
    style: str
    type: str
    format: Optional[str] = None      # OneShot, Loop, MIDI, ...
    variant: Optional[str] = None     # Clean, Dirty, Wet, ...
    confidence: float = 0.0


@dataclass
class SourceFileMapping:
    """One contributing pack's share of a fusion group."""
    pack_id: str
    pack_name: str
    original_path: str
    file_count: int
    estimated_size: int
    confidence: float
    paths: List[str] = field(default_factory=list)   # Every member folder of this pack


@dataclass
class FusionStatistics:
    total_files: int = 0
    total_size: int = 0
    pack_count: int = 0
    duplicate_risk: float = 0.0
    complexity_score: float = 0.0


@dataclass
class ClusterInfo:
    """Traceability back to the cluster(s) a group was built from."""
    original_paths: List[str] = field(default_factory=list)
    pack_count: int = 0
    avg_similarity: float = 0.0


@dataclass
class FusionGroup:
    """Unit of work for fusion: several source folders consolidated into one target."""
    id: str
    canonical: str
    target_path: str                  # "/Family/Type/Style[/Format]/Canonical[/Variant]"
    classification: GroupClassification
    source_files: List[SourceFileMapping] = field(default_factory=list)
    statistics: FusionStatistics = field(default_factory=FusionStatistics)
    confidence: float = 0.0
    cluster_info: ClusterInfo = field(default_factory=ClusterInfo)
    preserve_pack_structure: bool = False


@dataclass
class ConflictResolution:
    """A detected collision between two fusion groups and its proposed resolution."""
    group_id1: str
    group_id2: str
    conflict_type: ConflictType
    resolution: ResolutionKind
    confidence: float
    reason: str


@dataclass
class FusionBuildResult:
    """Output of FusionGroupBuilder.build."""
    groups: List[FusionGroup] = field(default_factory=list)
    conflicts: List[ConflictResolution] = field(default_factory=list)
    unresolved: List[ConflictResolution] = field(default_factory=list)


# =============================================================================
# Planning
# =============================================================================

@dataclass
class HierarchyTemplate:
    """Ordering of the taxonomy levels used for standard target directories."""
    name: str = "default"
    hierarchy: List[str] = field(default_factory=lambda: list(HIERARCHY_LEVELS))

    def __post_init__(self) -> None:
        unknown = [level for level in self.hierarchy if level not in HIERARCHY_LEVELS]
        if unknown:
            raise ValueError(
                f"Unknown hierarchy level(s) {unknown}; expected any of {list(HIERARCHY_LEVELS)}"
            )
        if len(set(self.hierarchy)) != len(self.hierarchy):
            raise ValueError(f"Hierarchy levels must be unique, got {self.hierarchy}")


@dataclass
class Operation:
    """A planned filesystem operation.

    ``final_target`` is set once by the executor when rename-on-collision
    changes where the file actually lands.
    """
    id: str
    type: OperationType
    target: Path
    source: Optional[Path] = None
    priority: int = 5
    dependencies: List[str] = field(default_factory=list)
    retryable: bool = True
    max_retries: int = 3
    rollbackable: bool = True
    estimated_size: int = 0
    estimated_duration: int = 0       # Milliseconds
    pack_id: Optional[str] = None
    final_target: Optional[Path] = None


@dataclass
class FusionSource:
    pack_id: str
    pack_name: str
    source_path: Path
    priority: int                     # 0 is the seed source
    file_count: int = 0
    estimated_size: int = 0
    excluded: List[Path] = field(default_factory=list)   # Nested folders fused elsewhere
    target_subdir: Optional[str] = None                  # Set when pack structure is preserved


@dataclass
class FusionOperation:
    """Consolidation of one fusion group's sources into its target directory."""
    id: str
    group_id: str
    canonical: str
    target_path: Path
    sources: List[FusionSource] = field(default_factory=list)
    merge_strategy: str = "merge_all"
    conflict_handling: str = "rename_duplicates"
    estimated_files: int = 0
    duplicate_risk: float = 0.0


@dataclass
class FileInfo:
    name: str
    path: Path                        # Planned target path
    size: int = 0
    source_pack: Optional[str] = None


@dataclass
class FolderNode:
    """A directory in the planned target tree. Owns its files and children."""
    name: str
    path: Path
    files: List[FileInfo] = field(default_factory=list)
    children: List["FolderNode"] = field(default_factory=list)
    level: int = 0

    @property
    def total_files(self) -> int:
        return len(self.files) + sum(child.total_files for child in self.children)


@dataclass
class FolderStructure:
    root: FolderNode
    total_folders: int = 0
    total_files: int = 0
    max_depth: int = 0


@dataclass
class PlanRisk:
    """Advisory risk attached to a plan. Never blocks planning."""
    type: RiskType
    severity: RiskSeverity
    probability: float
    impact_score: float
    description: str
    mitigation: str


@dataclass
class EstimatedStats:
    total_operations: int = 0
    total_files: int = 0
    total_size: int = 0
    estimated_duration_ms: int = 0
    complexity: float = 0.0


@dataclass
class OrganizationPlan:
    """Complete, ordered description of the reorganization."""
    target_root: Path
    operations: List[Operation] = field(default_factory=list)
    fusion_operations: List[FusionOperation] = field(default_factory=list)
    folder_structure: Optional[FolderStructure] = None
    risks: List[PlanRisk] = field(default_factory=list)
    estimated_stats: EstimatedStats = field(default_factory=EstimatedStats)
    checkpoints: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


# =============================================================================
# Execution
# =============================================================================

@dataclass
class FusionBackup:
    """Relocations performed by one fusion, enough to move every file back."""
    merged_path: Path
    relocations: List[Tuple[Path, Path]] = field(default_factory=list)  # (original, moved_to)
    created_target: bool = False


@dataclass
class OperationRecord:
    """Result of one executed operation, archived for rollback."""
    operation_id: str
    operation_type: OperationType
    success: bool
    source: Optional[Path] = None
    target: Optional[Path] = None
    skipped: bool = False
    backup: Optional[FusionBackup] = None
    error: Optional[str] = None


@dataclass
class OrganizationError:
    error_type: ErrorType
    message: str
    operation_id: Optional[str] = None
    severity: Severity = Severity.ERROR
    recoverable: bool = True
    retry_count: int = 0
    path: Optional[Path] = None


@dataclass
class OrganizationResult:
    success: bool = True
    files_moved: int = 0
    files_copied: int = 0
    files_skipped: int = 0
    files_deleted: int = 0
    folders_created: int = 0
    conflicts_renamed: int = 0
    operations_completed: int = 0
    operations_failed: int = 0
    final_state: ExecutionState = ExecutionState.IDLE


@dataclass
class FusionGroupResult:
    group_id: str
    target_path: Path
    success: bool = True
    files_merged: int = 0
    duplicates: int = 0               # Identical content already present, renamed
    conflicts: int = 0                # Different content under the same name, renamed
    sources_processed: int = 0
    folders_removed: int = 0
    error: Optional[str] = None


@dataclass
class FusionResult:
    success: bool = True
    groups: List[FusionGroupResult] = field(default_factory=list)

    @property
    def total_files_merged(self) -> int:
        return sum(group.files_merged for group in self.groups)

    @property
    def total_duplicates(self) -> int:
        return sum(group.duplicates for group in self.groups)

    @property
    def total_conflicts(self) -> int:
        return sum(group.conflicts for group in self.groups)


@dataclass
class OrganizationMetrics:
    total_operations: int = 0
    completed_operations: int = 0
    failed_operations: int = 0
    skipped_operations: int = 0
    files_processed: int = 0
    bytes_processed: int = 0
    folders_created: int = 0
    fusions_completed: int = 0
    duration_seconds: float = 0.0

    @property
    def throughput(self) -> float:
        """Files processed per second."""
        if self.duration_seconds <= 0:
            return 0.0
        return self.files_processed / self.duration_seconds


@dataclass
class RollbackReport:
    attempted: int = 0
    reverted: int = 0
    left_in_place: List[str] = field(default_factory=list)
    failures: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failures


@dataclass
class ExecutionOutcome:
    """Everything the executor knows after a run."""
    result: OrganizationResult = field(default_factory=OrganizationResult)
    fusion_result: FusionResult = field(default_factory=FusionResult)
    metrics: OrganizationMetrics = field(default_factory=OrganizationMetrics)
    errors: List[OrganizationError] = field(default_factory=list)
    records: List[OperationRecord] = field(default_factory=list)
    rollback: Optional[RollbackReport] = None

    @property
    def success(self) -> bool:
        return self.result.success and self.fusion_result.success and not self.errors


@dataclass
class ValidationCheck:
    name: str
    passed: bool
    severity: Severity = Severity.ERROR   # Weight of the check in the report score
    details: List[str] = field(default_factory=list)


@dataclass
class ValidationReport:
    checks: List[ValidationCheck] = field(default_factory=list)
    score: float = 1.0
    passed: bool = True
    orphaned_files: List[Path] = field(default_factory=list)
    duplicate_files: List[List[Path]] = field(default_factory=list)


@dataclass
class OrganizationSummary:
    """Aggregated result of an orchestrated plan, execute and validate run."""
    plan: OrganizationPlan
    outcome: Optional[ExecutionOutcome] = None
    validation: Optional[ValidationReport] = None
    unresolved_conflicts: List[ConflictResolution] = field(default_factory=list)
    errors: List[OrganizationError] = field(default_factory=list)
    duration_seconds: float = 0.0
    dry_run: bool = False
    interrupted: bool = False         # Execution declined or cancelled by the user

    @property
    def success(self) -> bool:
        return not any(error.severity != Severity.WARNING for error in self.errors)
