"""Organization planning package for PackFuse.

- TaxonomyLoader / Taxonomy: family, type and function-bucket tables read
  from YAML.
- OrganizationPlanner: turns classified packs and fusion groups into an
  ordered OrganizationPlan without touching the filesystem.
"""

from .taxonomy_loader import DEFAULT_TAXONOMY_PATH, Taxonomy, TaxonomyFamily, TaxonomyLoader
from .organization_planner import (
    FALLBACK_FUNCTION,
    OrganizationPlanner,
    PlanningProgressCallback,
    resolve_canonical_type,
)

__all__ = [
    "DEFAULT_TAXONOMY_PATH",
    "Taxonomy",
    "TaxonomyFamily",
    "TaxonomyLoader",
    "FALLBACK_FUNCTION",
    "OrganizationPlanner",
    "PlanningProgressCallback",
    "resolve_canonical_type",
]
