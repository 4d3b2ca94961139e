"""
Models package for PackFuse.

This package provides convenient imports for enums, dataclasses,
configuration objects, the id sequence and the inventory loader.
"""

from .enums import (
    ClassificationMethod,
    ConflictStrategy,
    ConflictType,
    ErrorType,
    ExecutionState,
    OperationType,
    ResolutionKind,
    RiskSeverity,
    RiskType,
    Severity,
)
from .data_models import (
    HIERARCHY_LEVELS,
    Classification,
    ClassifiedPack,
    ClusterInfo,
    ClusterStatistics,
    ConflictResolution,
    EstimatedStats,
    ExecutionOutcome,
    FileInfo,
    FolderCluster,
    FolderNode,
    FolderPath,
    FolderStructure,
    FusionBackup,
    FusionBuildResult,
    FusionGroup,
    FusionGroupResult,
    FusionOperation,
    FusionResult,
    FusionSource,
    FusionStatistics,
    GroupClassification,
    HierarchyTemplate,
    Operation,
    OperationRecord,
    OrganizationError,
    OrganizationMetrics,
    OrganizationPlan,
    OrganizationResult,
    OrganizationSummary,
    PathContext,
    PlanRisk,
    RollbackReport,
    SourceFileMapping,
    ValidationCheck,
    ValidationReport,
    folder_name,
    path_segments,
)
from .config import ClusteringConfig, FusionBuilderConfig, OrganizationOptions
from .sequence import IdSequence
from .serialization import OrganizationInput, load_organization_input, parse_organization_input

__all__ = [
    "ClassificationMethod",
    "ConflictStrategy",
    "ConflictType",
    "ErrorType",
    "ExecutionState",
    "OperationType",
    "ResolutionKind",
    "RiskSeverity",
    "RiskType",
    "Severity",
    "HIERARCHY_LEVELS",
    "Classification",
    "ClassifiedPack",
    "ClusterInfo",
    "ClusterStatistics",
    "ConflictResolution",
    "EstimatedStats",
    "ExecutionOutcome",
    "FileInfo",
    "FolderCluster",
    "FolderNode",
    "FolderPath",
    "FolderStructure",
    "FusionBackup",
    "FusionBuildResult",
    "FusionGroup",
    "FusionGroupResult",
    "FusionOperation",
    "FusionResult",
    "FusionSource",
    "FusionStatistics",
    "GroupClassification",
    "HierarchyTemplate",
    "Operation",
    "OperationRecord",
    "OrganizationError",
    "OrganizationMetrics",
    "OrganizationPlan",
    "OrganizationResult",
    "OrganizationSummary",
    "PathContext",
    "PlanRisk",
    "RollbackReport",
    "SourceFileMapping",
    "ValidationCheck",
    "ValidationReport",
    "folder_name",
    "path_segments",
    "ClusteringConfig",
    "FusionBuilderConfig",
    "OrganizationOptions",
    "IdSequence",
    "OrganizationInput",
    "load_organization_input",
    "parse_organization_input",
]
