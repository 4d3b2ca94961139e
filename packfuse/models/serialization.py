"""Loading of pack inventories produced by the upstream detector and classifier.

An inventory is a JSON document::

    {
      "template": {"name": "default", "hierarchy": ["Family", "Type", "Style", "Function"]},
      "packs": [{"pack_id": "p1", "name": "Dubstep Pack", "path": "/samples/Dubstep Pack",
                 "classification": {"family": "Bass Music", "style": "Dubstep",
                                    "confidence": 0.9, "method": "lexical"},
                 "detected_types": {"KICKS": ["Drums/Kicks"]},
                 "audio_files": 120}],
      "clusters": [{"canonical": "Kicks", "members": [{"pack_id": "p1", "path": "...", "file_count": 12}]}],
      "folders": [{"pack_id": "p1", "path": "/samples/Dubstep Pack/Kicks", "file_count": 12}]
    }

``clusters`` and ``folders`` are both optional. When only folders are given,
the caller clusters them with FolderClusterer.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .data_models import (
    Classification,
    ClassifiedPack,
    ClusterStatistics,
    FolderCluster,
    FolderPath,
    HierarchyTemplate,
    PathContext,
)
from .enums import ClassificationMethod


@dataclass
class OrganizationInput:
    packs: List[ClassifiedPack] = field(default_factory=list)
    clusters: List[FolderCluster] = field(default_factory=list)
    folders: List[FolderPath] = field(default_factory=list)
    template: HierarchyTemplate = field(default_factory=HierarchyTemplate)


def load_organization_input(path: Path) -> OrganizationInput:
    """Read and parse an inventory file.

    Args:
        path: Path to the JSON inventory.

    Returns:
        OrganizationInput with typed packs, clusters, folders and template.

    Raises:
        OSError: If the file cannot be read.
        ValueError: If the document is not valid JSON or an entry is malformed.
    """
    try:
        document = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Inventory {path} is not valid JSON: {e}")
    return parse_organization_input(document)


def parse_organization_input(document: Any) -> OrganizationInput:
    """Build an OrganizationInput from an already-decoded JSON document."""
    if not isinstance(document, dict):
        raise ValueError("Inventory must be a JSON object")

    template_data = document.get("template") or {}
    template = HierarchyTemplate(
        name=template_data.get("name", "default"),
        hierarchy=list(template_data.get("hierarchy", HierarchyTemplate().hierarchy)),
    )

    packs = [
        _parse_pack(entry, f"packs[{index}]")
        for index, entry in enumerate(document.get("packs") or [])
    ]
    clusters = [
        _parse_cluster(entry, f"clusters[{index}]")
        for index, entry in enumerate(document.get("clusters") or [])
    ]
    folders = [
        _parse_folder(entry, f"folders[{index}]")
        for index, entry in enumerate(document.get("folders") or [])
    ]

    return OrganizationInput(packs=packs, clusters=clusters, folders=folders, template=template)


def _require(entry: Dict[str, Any], key: str, where: str) -> Any:
    if not isinstance(entry, dict):
        raise ValueError(f"{where}: expected an object, got {type(entry).__name__}")
    if key not in entry or entry[key] in (None, ""):
        raise ValueError(f"{where}: missing required field '{key}'")
    return entry[key]


def _parse_classification(data: Optional[Dict[str, Any]], where: str) -> Optional[Classification]:
    if not data:
        return None
    method_value = data.get("method", ClassificationMethod.LEXICAL.value)
    try:
        method = ClassificationMethod(method_value)
    except ValueError:
        raise ValueError(f"{where}: unknown classification method {method_value!r}")
    return Classification(
        family=str(_require(data, "family", where)),
        style=str(_require(data, "style", where)),
        confidence=float(data.get("confidence", 0.0)),
        method=method,
        type=data.get("type"),
    )


def _parse_pack(entry: Dict[str, Any], where: str) -> ClassifiedPack:
    pack_id = str(_require(entry, "pack_id", where))
    detected_types = entry.get("detected_types") or {}
    if not isinstance(detected_types, dict):
        raise ValueError(f"{where}: detected_types must be an object")
    return ClassifiedPack(
        pack_id=pack_id,
        name=str(entry.get("name") or pack_id),
        classification=_parse_classification(entry.get("classification"), f"{where}.classification"),
        path=entry.get("path"),
        original_path=entry.get("original_path"),
        source_path=entry.get("source_path"),
        detected_types={str(k): [str(p) for p in v] for k, v in detected_types.items()},
        audio_files=int(entry.get("audio_files", 0)),
        preset_files=int(entry.get("preset_files", 0)),
        avg_bpm=entry.get("avg_bpm"),
        tags=[str(tag) for tag in entry.get("tags") or []],
    )


def _parse_folder(entry: Dict[str, Any], where: str) -> FolderPath:
    context_data = entry.get("context") if isinstance(entry, dict) else None
    context = None
    if context_data:
        context = PathContext(
            parent_path=str(_require(context_data, "parent_path", f"{where}.context")),
            depth=int(context_data.get("depth", 0)),
            siblings=tuple(str(s) for s in context_data.get("siblings") or []),
        )
    return FolderPath(
        pack_id=str(_require(entry, "pack_id", where)),
        path=str(_require(entry, "path", where)),
        file_count=int(entry.get("file_count", 0)),
        context=context,
    )


def _parse_cluster(entry: Dict[str, Any], where: str) -> FolderCluster:
    members = [
        _parse_folder(member, f"{where}.members[{index}]")
        for index, member in enumerate(_require(entry, "members", where))
    ]
    stats_data = entry.get("statistics") or {}
    statistics = ClusterStatistics(
        avg_similarity=float(stats_data.get("avg_similarity", 1.0)),
        min_similarity=float(stats_data.get("min_similarity", 1.0)),
        max_similarity=float(stats_data.get("max_similarity", 1.0)),
        cohesion=float(stats_data.get("cohesion", 1.0)),
        total_files=int(stats_data.get("total_files", sum(m.file_count for m in members))),
        pack_count=int(stats_data.get("pack_count", len({m.pack_id for m in members}))),
    )
    return FolderCluster(
        canonical=str(_require(entry, "canonical", where)),
        members=members,
        confidence=float(entry.get("confidence", 1.0)),
        statistics=statistics,
    )
