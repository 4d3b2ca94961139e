"""Workflow orchestration package for PackFuse.

- OrganizationLogger: structured, human-readable run log files.
- OrganizationOrchestrator: coordinator of the fusion, planning, execution
  and validation phases.
"""

from packfuse.orchestration.organization_logger import OrganizationLogger
from packfuse.orchestration.organization_orchestrator import OrganizationOrchestrator

__all__ = ["OrganizationLogger", "OrganizationOrchestrator"]
