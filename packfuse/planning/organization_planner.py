"""Organization planning: from classified packs and fusion groups to an ordered plan.

The planner is read-only. It inspects the source tree to enumerate files but
never changes it; everything it decides is recorded on the returned
OrganizationPlan:

1. One FusionOperation per fusion group. Its sources are the group's member
   folders in priority order, and the first source is the seed.
2. One ``move_file`` Operation per remaining pack file. The target directory
   is built from the hierarchy template levels (Family, Type, Style,
   Function) followed by whatever directory segments of the file lie beyond
   the matched type and function folders.
3. One ``create_folder`` Operation per target directory, parents first.
4. Advisory risks, estimated statistics and checkpoint markers.

Files inside a folder claimed by a fusion group belong to that fusion
operation only; the rest of the pack is planned as standard operations.

Example:
    >>> planner = OrganizationPlanner()
    >>> plan = planner.plan(HierarchyTemplate(), packs, groups,
    ...                     working_path=Path("/samples"), target_root=Path("/library"))
    >>> print(len(plan.operations), len(plan.fusion_operations))
"""

import logging
import math
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Set, Tuple

from packfuse.fusion import sanitize_segment
from packfuse.matching import detect_type
from packfuse.models import (
    ClassifiedPack,
    EstimatedStats,
    FileInfo,
    FolderNode,
    FolderStructure,
    FusionGroup,
    FusionOperation,
    FusionSource,
    HierarchyTemplate,
    IdSequence,
    Operation,
    OperationType,
    OrganizationPlan,
    PlanRisk,
    RiskSeverity,
    RiskType,
    path_segments,
)
from packfuse.scanning import FileScanner

from .taxonomy_loader import Taxonomy, TaxonomyLoader

logger = logging.getLogger("packfuse.planning")

PlanningProgressCallback = Callable[[int, str], None]

FALLBACK_FUNCTION = "Misc"
UNKNOWN_TYPE = "UNKNOWN"

TYPE_ALIASES = {
    "PERCUSSION": "PERC",
    "MELODY": "SYNTHS",
    "DRUMS": "DRUM_LOOPS",
    "DRUM": "DRUM_LOOPS",
    "VOX": "VOCALS",
    "VOCAL": "VOCALS",
    "PADS": "SYNTHS",
    "BASSLINE": "BASS",
    "SNARE": "PERC",
    "CLAP": "PERC",
}

# Risk thresholds
COMPLEX_FUSION_SOURCES = 5
SPACE_RISK_BYTES = 10 * 1024 ** 3

# Duration heuristics, milliseconds
MOVE_BYTES_PER_MS = 2048
MIN_MOVE_DURATION = 50
MAX_MOVE_DURATION = 1500
CREATE_FOLDER_DURATION = 100
FUSION_DURATION = 5000

_COMPARISON_STRIP = re.compile(r"[_\s\-.]+")


def resolve_canonical_type(raw_type: Optional[str]) -> str:
    """Upper-case a type name and map known aliases (VOX -> VOCALS, ...)."""
    if not raw_type:
        return UNKNOWN_TYPE
    upper = str(raw_type).upper()
    return TYPE_ALIASES.get(upper, upper)


def _comparable(segment: str) -> str:
    return _COMPARISON_STRIP.sub("", segment).lower()


def _starts_with(segments: Sequence[str], prefix: Sequence[str]) -> bool:
    if len(prefix) > len(segments):
        return False
    return all(_comparable(a) == _comparable(b) for a, b in zip(segments, prefix))


def _is_within(path: Path, folder: Path) -> bool:
    return path == folder or folder in path.parents


@dataclass
class _FolderRecord:
    path: Path
    parent: Optional[Path]
    files: List[FileInfo] = field(default_factory=list)
    children: Set[Path] = field(default_factory=set)


@dataclass
class _TypeMatch:
    canonical_type: str
    segments: List[str]


class OrganizationPlanner:
    """Builds an OrganizationPlan from classified packs and fusion groups.

    Attributes:
        _taxonomy: Function buckets per type.
        _scanner: Enumerates pack and fusion source files.
        _ids: Operation id generator. Identical inputs and a fresh sequence
            yield identical plans.
    """

    def __init__(
        self,
        taxonomy: Optional[Taxonomy] = None,
        taxonomy_loader: Optional[TaxonomyLoader] = None,
        scanner: Optional[FileScanner] = None,
        id_sequence: Optional[IdSequence] = None,
    ) -> None:
        if taxonomy is None:
            loader = taxonomy_loader if taxonomy_loader is not None else TaxonomyLoader()
            taxonomy = loader.load()
        self._taxonomy = taxonomy
        self._scanner = scanner if scanner is not None else FileScanner()
        self._ids = id_sequence if id_sequence is not None else IdSequence()

    @property
    def taxonomy(self) -> Taxonomy:
        return self._taxonomy

    def plan(
        self,
        template: HierarchyTemplate,
        packs: List[ClassifiedPack],
        fusion_groups: List[FusionGroup],
        working_path: Path,
        target_root: Path,
        progress_callback: Optional[PlanningProgressCallback] = None,
    ) -> OrganizationPlan:
        """Plan the complete reorganization.

        Args:
            template: Order of the Family/Type/Style/Function levels.
            packs: Classified packs to organize.
            fusion_groups: Resolved fusion groups (conflicts already applied).
            working_path: Directory the packs were detected in. Used to
                resolve relative pack and folder paths.
            target_root: Root of the organized library.
            progress_callback: Optional ``(percent, message)`` callable.

        Returns:
            The plan. Per-pack problems are logged and listed in
            ``plan.warnings``; they never abort planning.

        Raises:
            ValueError: If target_root is empty, or pack or group ids repeat.
        """
        if not str(target_root):
            raise ValueError("target_root is required")
        self._check_unique([p.pack_id for p in packs], "pack_id")
        self._check_unique([g.id for g in fusion_groups], "fusion group id")

        def report(percent: int, message: str) -> None:
            if progress_callback:
                progress_callback(percent, message)

        target_root = Path(target_root)
        working_path = Path(working_path)
        plan = OrganizationPlan(target_root=target_root)

        logger.info(
            "Planning %d packs and %d fusion groups into %s (hierarchy %s)",
            len(packs), len(fusion_groups), target_root, " > ".join(template.hierarchy),
        )
        report(10, "Resolving pack locations")
        pack_dirs: Dict[str, Path] = {}
        for pack in packs:
            source_dir = self.resolve_pack_source_path(pack, working_path)
            if source_dir is None:
                self._warn(plan.warnings, f"No source directory found for pack {pack.pack_id}")
                continue
            pack_dirs[pack.pack_id] = source_dir

        records: Dict[Path, _FolderRecord] = {}
        self._ensure_record(records, target_root, target_root)

        report(25, "Planning fusion operations")
        plan.fusion_operations = self.plan_fusion_operations(
            fusion_groups, pack_dirs, working_path, target_root, records, plan.warnings
        )
        claimed = [source.source_path for op in plan.fusion_operations for source in op.sources]

        report(50, "Planning file operations")
        file_operations = self.plan_file_operations(
            template, packs, pack_dirs, claimed, target_root, records, plan.warnings
        )
        self.prune_empty_folders(records, target_root)
        folder_operations = self.plan_folder_operations(records, target_root)
        plan.operations = folder_operations + file_operations
        plan.folder_structure = self.build_folder_structure(records, target_root)

        report(75, "Analyzing risks")
        plan.risks = self.analyze_risks(plan)
        report(90, "Finalizing plan")
        plan.estimated_stats = self.estimate(plan)
        plan.checkpoints = self.generate_checkpoints(plan.operations)

        logger.info(
            "Plan ready: %d operations (%d folders, %d files), %d fusion operations, %d risks",
            len(plan.operations), len(folder_operations), len(file_operations),
            len(plan.fusion_operations), len(plan.risks),
        )
        report(100, "Plan ready")
        return plan

    # ------------------------------------------------------------------
    # Fusion operations
    # ------------------------------------------------------------------

    def plan_fusion_operations(
        self,
        groups: List[FusionGroup],
        pack_dirs: Dict[str, Path],
        working_path: Path,
        target_root: Path,
        records: Dict[Path, _FolderRecord],
        warnings: List[str],
    ) -> List[FusionOperation]:
        """One FusionOperation per group, sources in priority order.

        A folder already claimed by an earlier group is skipped with a
        warning. Nested claimed folders are excluded from their enclosing
        source so that every file is consolidated exactly once.
        """
        claimed: Set[Path] = set()
        operations: List[FusionOperation] = []

        for group in groups:
            target_path = target_root.joinpath(*path_segments(group.target_path))
            sources: List[FusionSource] = []
            for mapping in group.source_files:
                folder_paths = mapping.paths or [mapping.original_path]
                for folder in folder_paths:
                    resolved = self._resolve_folder(folder, pack_dirs.get(mapping.pack_id), working_path)
                    if resolved is None:
                        self._warn(warnings, f"Fusion source {folder} of group {group.id} not found")
                        continue
                    if resolved in claimed:
                        self._warn(
                            warnings,
                            f"Folder {resolved} already belongs to another fusion group; "
                            f"skipped for {group.id}",
                        )
                        continue
                    claimed.add(resolved)
                    sources.append(FusionSource(
                        pack_id=mapping.pack_id,
                        pack_name=mapping.pack_name,
                        source_path=resolved,
                        priority=len(sources),
                        target_subdir=(
                            sanitize_segment(mapping.pack_name) if group.preserve_pack_structure else None
                        ),
                    ))

            if not sources:
                self._warn(warnings, f"Fusion group {group.id} has no usable sources; skipped")
                continue

            operations.append(FusionOperation(
                id=self._ids.next("fusion"),
                group_id=group.id,
                canonical=group.canonical,
                target_path=target_path,
                sources=sources,
            ))

        for operation in operations:
            for source in operation.sources:
                source.excluded = sorted(
                    other for other in claimed
                    if other != source.source_path and source.source_path in other.parents
                )
                files = self._scanner.scan_files(source.source_path, source.excluded)
                source.file_count = len(files)
                source.estimated_size = sum(entry.size for entry in files)
                base = operation.target_path
                if source.target_subdir:
                    base = base / source.target_subdir
                for entry in files:
                    planned = base / entry.relative_path
                    record = self._ensure_record(records, planned.parent, target_root)
                    record.files.append(FileInfo(
                        name=entry.path.name, path=planned, size=entry.size, source_pack=source.pack_id
                    ))
            operation.estimated_files = sum(source.file_count for source in operation.sources)
            operation.duplicate_risk = min(len(operation.sources) / 10, 0.9)
            logger.debug(
                "Fusion %s: %s <- %d sources (%d files)",
                operation.id, operation.target_path, len(operation.sources), operation.estimated_files,
            )

        return operations

    # ------------------------------------------------------------------
    # Standard file operations
    # ------------------------------------------------------------------

    def plan_file_operations(
        self,
        template: HierarchyTemplate,
        packs: List[ClassifiedPack],
        pack_dirs: Dict[str, Path],
        claimed: List[Path],
        target_root: Path,
        records: Dict[Path, _FolderRecord],
        warnings: List[str],
    ) -> List[Operation]:
        operations: List[Operation] = []

        for pack in packs:
            source_dir = pack_dirs.get(pack.pack_id)
            if source_dir is None:
                continue
            if any(_is_within(source_dir, folder) for folder in claimed):
                logger.debug("Pack %s is fully absorbed by a fusion operation", pack.pack_id)
                continue

            excluded = [folder for folder in claimed if source_dir in folder.parents]
            files = self._scanner.scan_files(source_dir, excluded)
            if not files:
                self._warn(warnings, f"No files found for pack {pack.pack_id} in {source_dir}")
                continue

            family = pack.classification.family if pack.classification else None
            style = pack.classification.style if pack.classification else None
            pack_type = self.resolve_pack_type(pack)
            type_entries = self.build_detected_type_entries(pack)

            for entry in files:
                dir_segments = list(entry.relative_path.parts[:-1])
                type_match = self.match_detected_type(type_entries, dir_segments)
                effective_type = type_match.canonical_type if type_match else pack_type
                matched_segments = type_match.segments if type_match else None

                function_match = self.match_function_segment(effective_type, dir_segments, matched_segments)
                function_name = (
                    function_match[0] if function_match else self.resolve_fallback_function(effective_type)
                )
                remaining = self.compute_remaining_segments(
                    dir_segments, matched_segments, function_match[1] if function_match else None
                )

                levels = {
                    "Family": sanitize_segment(family or "Unknown_Family"),
                    "Type": sanitize_segment(effective_type or "Unknown_Type"),
                    "Style": sanitize_segment(style or "Unknown_Style"),
                    "Function": sanitize_segment(function_name),
                }
                target_dir = target_root.joinpath(
                    *[levels[level] for level in template.hierarchy], *remaining
                )
                target_file = target_dir / entry.path.name

                record = self._ensure_record(records, target_dir, target_root)
                record.files.append(FileInfo(
                    name=entry.path.name, path=target_file, size=entry.size, source_pack=pack.pack_id
                ))
                operations.append(Operation(
                    id=self._ids.next("move_file"),
                    type=OperationType.MOVE_FILE,
                    source=entry.path,
                    target=target_file,
                    priority=5,
                    max_retries=3,
                    estimated_size=entry.size,
                    estimated_duration=max(
                        MIN_MOVE_DURATION, min(MAX_MOVE_DURATION, round(entry.size / MOVE_BYTES_PER_MS))
                    ),
                    pack_id=pack.pack_id,
                ))

            logger.debug("Pack %s: %d file operations", pack.pack_id, len(files))

        return operations

    def resolve_pack_source_path(self, pack: ClassifiedPack, working_path: Path) -> Optional[Path]:
        """First existing directory among the pack's path fields, then working_path/pack_id."""
        candidates = [pack.path, pack.original_path, pack.source_path]
        for candidate in candidates:
            if not candidate:
                continue
            path = Path(candidate)
            if not path.is_absolute():
                path = working_path / path
            if path.is_dir():
                return path.resolve()

        fallback = working_path / pack.pack_id
        if fallback.is_dir():
            return fallback.resolve()
        return None

    def resolve_pack_type(self, pack: ClassifiedPack) -> str:
        """Pack-wide type: the classifier's type, else one detected from the pack name."""
        if pack.classification and pack.classification.type:
            return resolve_canonical_type(pack.classification.type)
        return resolve_canonical_type(detect_type(pack.name))

    def build_detected_type_entries(self, pack: ClassifiedPack) -> List[Tuple[str, List[List[str]]]]:
        entries = []
        for raw_type, paths in pack.detected_types.items():
            segment_lists = [path_segments(p) for p in paths]
            segment_lists = [segments for segments in segment_lists if segments]
            if segment_lists:
                entries.append((resolve_canonical_type(raw_type), segment_lists))
        return entries

    def match_detected_type(
        self, entries: List[Tuple[str, List[List[str]]]], dir_segments: List[str]
    ) -> Optional[_TypeMatch]:
        """Longest detected type zone that prefixes the file's directory segments."""
        best: Optional[_TypeMatch] = None
        for canonical_type, segment_lists in entries:
            for candidate in segment_lists:
                if _starts_with(dir_segments, candidate):
                    if best is None or len(candidate) > len(best.segments):
                        best = _TypeMatch(canonical_type, candidate)
        return best

    def match_function_segment(
        self,
        content_type: Optional[str],
        dir_segments: List[str],
        matched_type_segments: Optional[List[str]] = None,
    ) -> Optional[Tuple[str, int]]:
        """Find a taxonomy function name among the directory segments.

        The search starts at the last matched type segment and falls back to
        a scan from the first segment.

        Returns:
            (function name as spelled in the taxonomy, segment index), or None.
        """
        functions = self._taxonomy.functions_for(resolve_canonical_type(content_type))
        if not functions or not dir_segments:
            return None

        def search(start: int) -> Optional[Tuple[str, int]]:
            for index in range(start, len(dir_segments)):
                wanted = _comparable(dir_segments[index])
                for function in functions:
                    if _comparable(function) == wanted:
                        return function, index
            return None

        start = max(0, len(matched_type_segments) - 1) if matched_type_segments else 0
        return search(start) or search(0)

    def compute_remaining_segments(
        self,
        dir_segments: List[str],
        matched_type_segments: Optional[List[str]] = None,
        function_index: Optional[int] = None,
    ) -> List[str]:
        """Directory segments kept verbatim below the function bucket."""
        if function_index is not None and function_index >= 0:
            return dir_segments[function_index + 1:]
        if matched_type_segments:
            return dir_segments[len(matched_type_segments):]
        return list(dir_segments)

    def resolve_fallback_function(self, content_type: Optional[str]) -> str:
        functions = self._taxonomy.functions_for(resolve_canonical_type(content_type))
        return functions[0] if functions else FALLBACK_FUNCTION

    # ------------------------------------------------------------------
    # Folder tree
    # ------------------------------------------------------------------

    def prune_empty_folders(self, records: Dict[Path, _FolderRecord], target_root: Path) -> None:
        """Drop folders that hold no files at any depth, bottom-up."""

        def total(path: Path) -> int:
            record = records[path]
            count = len(record.files)
            for child in sorted(record.children):
                if child not in records:
                    record.children.discard(child)
                    continue
                child_total = total(child)
                if child_total == 0:
                    record.children.discard(child)
                    del records[child]
                else:
                    count += child_total
            return count

        total(target_root)

    def plan_folder_operations(
        self, records: Dict[Path, _FolderRecord], target_root: Path
    ) -> List[Operation]:
        """create_folder operations ordered by ascending depth."""
        folders = sorted(
            (path for path in records if path != target_root),
            key=lambda p: (len(p.parts), p.as_posix()),
        )
        operations = []
        for folder in folders:
            depth = len(folder.relative_to(target_root).parts)
            operations.append(Operation(
                id=self._ids.next("create_folder"),
                type=OperationType.CREATE_FOLDER,
                target=folder,
                priority=max(1, 10 - depth),
                estimated_duration=CREATE_FOLDER_DURATION,
            ))
        return operations

    def build_folder_structure(
        self, records: Dict[Path, _FolderRecord], target_root: Path
    ) -> FolderStructure:
        def build(path: Path, level: int) -> FolderNode:
            record = records[path]
            return FolderNode(
                name=path.name,
                path=path,
                files=list(record.files),
                children=[build(child, level + 1) for child in sorted(record.children)],
                level=level,
            )

        def depth(node: FolderNode) -> int:
            if not node.children:
                return node.level + 1
            return max(depth(child) for child in node.children)

        root = build(target_root, 0)
        return FolderStructure(
            root=root,
            total_folders=len(records),
            total_files=sum(len(record.files) for record in records.values()),
            max_depth=depth(root),
        )

    # ------------------------------------------------------------------
    # Risks, statistics, checkpoints
    # ------------------------------------------------------------------

    def analyze_risks(self, plan: OrganizationPlan) -> List[PlanRisk]:
        risks: List[PlanRisk] = []

        collisions = self.count_target_collisions(plan)
        if collisions:
            risks.append(PlanRisk(
                type=RiskType.CONFLICT,
                severity=RiskSeverity.MEDIUM,
                probability=0.7,
                impact_score=0.3,
                description=f"{collisions} planned files share a target path with another file",
                mitigation="Colliding files are renamed with a numeric suffix",
            ))

        complex_fusions = sum(
            1 for op in plan.fusion_operations if len(op.sources) > COMPLEX_FUSION_SOURCES
        )
        if complex_fusions:
            risks.append(PlanRisk(
                type=RiskType.FUSION,
                severity=RiskSeverity.MEDIUM,
                probability=0.8,
                impact_score=0.4,
                description=(
                    f"{complex_fusions} fusion operations merge more than "
                    f"{COMPLEX_FUSION_SOURCES} sources"
                ),
                mitigation="Fusion sources are processed sequentially in priority order",
            ))

        total_size = self._total_size(plan)
        if total_size > SPACE_RISK_BYTES:
            risks.append(PlanRisk(
                type=RiskType.SPACE,
                severity=RiskSeverity.HIGH,
                probability=0.5,
                impact_score=0.8,
                description=f"Plan relocates {total_size / 1024 ** 3:.1f} GiB",
                mitigation="Check free space on the target volume before executing",
            ))

        for risk in risks:
            logger.warning("Plan risk (%s): %s", risk.type.value, risk.description)
        return risks

    def count_target_collisions(self, plan: OrganizationPlan) -> int:
        """Number of planned files whose target path repeats an earlier one.

        Covers standard moves and the planned placement of fusion files.
        """
        if plan.folder_structure is not None:
            targets = list(self._planned_files(plan.folder_structure.root))
        else:
            targets = [op.target for op in plan.operations if op.type != OperationType.CREATE_FOLDER]
        return len(targets) - len(set(targets))

    def estimate(self, plan: OrganizationPlan) -> EstimatedStats:
        source_count = sum(len(op.sources) for op in plan.fusion_operations)
        return EstimatedStats(
            total_operations=len(plan.operations) + len(plan.fusion_operations),
            total_files=(
                sum(1 for op in plan.operations if op.type != OperationType.CREATE_FOLDER)
                + sum(op.estimated_files for op in plan.fusion_operations)
            ),
            total_size=self._total_size(plan),
            estimated_duration_ms=(
                sum(op.estimated_duration for op in plan.operations)
                + FUSION_DURATION * len(plan.fusion_operations)
            ),
            complexity=min(1.0, len(plan.operations) / 1000 + source_count / 100),
        )

    def generate_checkpoints(self, operations: List[Operation]) -> List[str]:
        """Every ceil(n/10)-th operation id, starting with the first."""
        if not operations:
            return []
        interval = max(1, math.ceil(len(operations) / 10))
        return [operations[i].id for i in range(0, len(operations), interval)]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _ensure_record(
        self, records: Dict[Path, _FolderRecord], path: Path, target_root: Path
    ) -> _FolderRecord:
        if path in records:
            return records[path]
        parent = path.parent if path != target_root and path.parent != path else None
        record = _FolderRecord(path=path, parent=parent)
        records[path] = record
        if parent is not None and _is_within(parent, target_root):
            self._ensure_record(records, parent, target_root).children.add(path)
        return record

    def _resolve_folder(
        self, folder: str, pack_dir: Optional[Path], working_path: Path
    ) -> Optional[Path]:
        path = Path(folder)
        candidates = [path] if path.is_absolute() else [
            base / path for base in (pack_dir, working_path) if base is not None
        ]
        for candidate in candidates:
            if candidate.is_dir():
                return candidate.resolve()
        return None

    def _planned_files(self, node: FolderNode):
        for info in node.files:
            yield info.path
        for child in node.children:
            yield from self._planned_files(child)

    def _total_size(self, plan: OrganizationPlan) -> int:
        return (
            sum(op.estimated_size for op in plan.operations)
            + sum(s.estimated_size for op in plan.fusion_operations for s in op.sources)
        )

    def _check_unique(self, values: List[str], label: str) -> None:
        seen: Set[str] = set()
        for value in values:
            if value in seen:
                raise ValueError(f"Duplicate {label}: {value}")
            seen.add(value)

    def _warn(self, warnings: List[str], message: str) -> None:
        logger.warning(message)
        warnings.append(message)
