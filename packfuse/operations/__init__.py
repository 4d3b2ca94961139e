"""Filesystem operations package for PackFuse.

- OrganizationExecutor: runs an OrganizationPlan phase by phase and records
  every executed operation.
- FusionMerger: consolidates the source folders of one fusion operation.
- RollbackManager: best-effort reversal of recorded operations.
- OrganizationValidator: post-run checks of the organized tree.

Example:
    >>> from packfuse.operations import OrganizationExecutor, OrganizationValidator
    >>> outcome = OrganizationExecutor().execute(plan)
    >>> report = OrganizationValidator().validate(plan, outcome)
    >>> print(f"Validation score: {report.score:.2f}")
"""

from .fusion_merger import FusionMerger, is_disk_full, unique_target
from .organization_executor import ExecutionProgressCallback, OrganizationExecutor
from .organization_validator import VALIDATION_SCORE_THRESHOLD, OrganizationValidator
from .rollback import RollbackManager

__all__ = [
    "FusionMerger",
    "is_disk_full",
    "unique_target",
    "ExecutionProgressCallback",
    "OrganizationExecutor",
    "VALIDATION_SCORE_THRESHOLD",
    "OrganizationValidator",
    "RollbackManager",
]
