"""Taxonomy loading for the organization planner.

The taxonomy lists families with their styles, the primary content types
and, per type, the "function" sub-buckets (One_Shot, Loop, Fill, ...) the
planner looks for in pack folder names. It is read from YAML; the package
ships ``default_taxonomy.yaml``.

A taxonomy that cannot be read degrades to an empty one: the planner then
does no function-bucket matching and files land in the ``Misc`` bucket.

Example:
    >>> from packfuse.planning import TaxonomyLoader
    >>> taxonomy = TaxonomyLoader().load()
    >>> taxonomy.functions_for("perc")
    ['One_Shot', 'Loop', 'Fill', 'Break']
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger("packfuse.planning")

DEFAULT_TAXONOMY_PATH = Path(__file__).with_name("default_taxonomy.yaml")


@dataclass
class TaxonomyFamily:
    name: str
    id: str
    styles: List[str] = field(default_factory=list)


@dataclass
class Taxonomy:
    version: str = "0"
    families: List[TaxonomyFamily] = field(default_factory=list)
    types: List[str] = field(default_factory=list)
    formats: Dict[str, List[str]] = field(default_factory=dict)
    source: Optional[Path] = None

    @property
    def is_empty(self) -> bool:
        return not self.formats

    def functions_for(self, content_type: str) -> List[str]:
        """Function sub-buckets declared for a type (case-insensitive), or []."""
        return list(self.formats.get(content_type.upper(), []))


class TaxonomyLoader:
    """Reads taxonomy YAML files, caching the parsed result per path."""

    def __init__(self) -> None:
        self._cache: Dict[Path, Taxonomy] = {}
        self._errors: List[str] = []

    def load(self, path: Optional[Path] = None) -> Taxonomy:
        """Load a taxonomy, falling back to an empty one on any read or parse error.

        Args:
            path: YAML file to read. Defaults to the bundled taxonomy.

        Returns:
            The parsed Taxonomy, or an empty Taxonomy if loading failed.
        """
        resolved = Path(path) if path is not None else DEFAULT_TAXONOMY_PATH
        if resolved in self._cache:
            return self._cache[resolved]

        try:
            data = yaml.safe_load(resolved.read_text(encoding="utf-8")) or {}
            taxonomy = self._parse(data, resolved)
        except (OSError, yaml.YAMLError, ValueError) as e:
            message = f"Could not load taxonomy {resolved}: {e}"
            logger.warning("%s; function buckets disabled", message)
            self._errors.append(message)
            return Taxonomy(source=resolved)

        logger.info(
            "Loaded taxonomy %s: %d families, %d types, %d typed format lists",
            resolved.name, len(taxonomy.families), len(taxonomy.types), len(taxonomy.formats),
        )
        self._cache[resolved] = taxonomy
        return taxonomy

    def get_errors(self) -> List[str]:
        return self._errors.copy()

    def clear_errors(self) -> None:
        self._errors.clear()

    def clear_cache(self) -> None:
        self._cache.clear()

    def _parse(self, data: Any, source: Path) -> Taxonomy:
        if not isinstance(data, dict):
            raise ValueError("top level must be a mapping")
        if not data.get("families"):
            raise ValueError("missing families section")

        families = []
        for entry in data["families"]:
            if not isinstance(entry, dict) or not entry.get("name"):
                raise ValueError(f"invalid family entry: {entry!r}")
            name = str(entry["name"])
            families.append(TaxonomyFamily(
                name=name,
                id=str(entry.get("id") or name.lower().replace(" ", "_")),
                styles=[str(s) for s in entry.get("styles") or []],
            ))

        types_section = data.get("types") or {}
        primary = types_section.get("primary", []) if isinstance(types_section, dict) else types_section
        formats_section = data.get("formats") or {}
        if not isinstance(formats_section, dict):
            raise ValueError("formats must be a mapping of type to function names")
        for type_name, functions in formats_section.items():
            if functions is not None and not isinstance(functions, list):
                raise ValueError(f"formats.{type_name} must be a list of function names, got {functions!r}")

        return Taxonomy(
            version=str(data.get("version", "0")),
            families=families,
            types=[str(t).upper() for t in primary or []],
            formats={
                str(type_name).upper(): [str(fn) for fn in functions or []]
                for type_name, functions in formats_section.items()
            },
            source=source,
        )
