"""Rich terminal output for PackFuse."""

from .organization_tui import OrganizationTUI

__all__ = ["OrganizationTUI"]
