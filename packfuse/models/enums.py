"""
Enumerations shared by the fusion, planning and execution layers.

The values are lowercase strings so they round-trip through the JSON
inventory format and read naturally in log files.
"""

from enum import Enum


class ClassificationMethod(Enum):
    """How an upstream classifier arrived at a pack's family/style labels."""
    LEXICAL = "lexical"          # Keyword match on names
    CONTEXTUAL = "contextual"    # Inferred from neighbouring folders
    TAXONOMIC = "taxonomic"      # Resolved against the taxonomy table
    AI = "ai"                    # Model fallback
    MANUAL = "manual"            # Set by the user


class ConflictType(Enum):
    """Kind of collision detected between two fusion groups."""
    OVERLAP = "overlap"          # Groups share source packs
    AMBIGUOUS = "ambiguous"      # Canonical names are nearly identical
    DUPLICATE = "duplicate"      # Identical target paths


class ResolutionKind(Enum):
    """Proposed resolution for a fusion group conflict. Only MERGE is auto-applied."""
    MERGE = "merge"
    SPLIT = "split"
    IGNORE = "ignore"
    MANUAL = "manual"


class OperationType(Enum):
    """Filesystem operation kinds produced by the planner."""
    CREATE_FOLDER = "create_folder"
    MOVE_FILE = "move_file"
    COPY_FILE = "copy_file"
    DELETE_FILE = "delete_file"
    FUSION_MERGE = "fusion_merge"


class ConflictStrategy(Enum):
    """What to do when a file operation's target already exists."""
    RENAME = "rename"
    OVERWRITE = "overwrite"
    SKIP = "skip"
    ASK = "ask"                  # Not interactive yet, behaves like RENAME


class ExecutionState(Enum):
    """States of the organization executor."""
    IDLE = "idle"
    CREATING_FOLDERS = "creating_folders"
    FUSING_SOURCES = "fusing_sources"
    MOVING_FILES = "moving_files"
    FINALIZED = "finalized"
    ROLLING_BACK = "rolling_back"
    ABORTED = "aborted"


class ErrorType(Enum):
    """Error taxonomy reported in execution outcomes."""
    FILESYSTEM = "filesystem"
    FUSION = "fusion"
    CONFLICT = "conflict"
    VALIDATION = "validation"


class Severity(Enum):
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class RiskType(Enum):
    CONFLICT = "conflict"
    FUSION = "fusion"
    SPACE = "space"


class RiskSeverity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
