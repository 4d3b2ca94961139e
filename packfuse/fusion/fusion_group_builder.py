"""Fusion group construction for PackFuse.

This module turns folder clusters and classified packs into FusionGroup
records: one group per cluster, each with a deterministic target path,
per-pack source mappings and risk statistics. Conflicts between groups
are then detected pairwise and ``merge`` resolutions are applied; all
other resolutions are returned to the caller unresolved.

Target path layout::

    /Family/Type/Style[/Format]/Canonical[/Variant]    (use_full_path=True)
    /Type/Style/Canonical                              (use_full_path=False)

Example:
    >>> from packfuse.fusion import FusionGroupBuilder
    >>> builder = FusionGroupBuilder()
    >>> result = builder.build(clusters, packs)
    >>> for group in result.groups:
    ...     print(group.target_path, group.statistics.total_files)
"""

import copy
import logging
import re
from collections import defaultdict
from typing import Dict, List, Optional

from rapidfuzz.distance import Levenshtein

from packfuse.matching import ClusterClassifier
from packfuse.models import (
    ClassifiedPack,
    ClusterInfo,
    ConflictResolution,
    ConflictType,
    FolderCluster,
    FolderPath,
    FusionBuilderConfig,
    FusionBuildResult,
    FusionGroup,
    FusionStatistics,
    GroupClassification,
    IdSequence,
    ResolutionKind,
    SourceFileMapping,
)

logger = logging.getLogger("packfuse.fusion")

# Planning heuristic: average sample size in bytes
ESTIMATED_BYTES_PER_FILE = 500_000

_ILLEGAL_CHARS = re.compile(r'[<>:"|?*\\/]')
_WHITESPACE = re.compile(r"\s+")
_UNDERSCORES = re.compile(r"_+")
_NAME_SEPARATORS = re.compile(r"[_\-\s]")


def sanitize_segment(name: str) -> str:
    """Make a name safe for use as a single path segment.

    Illegal characters and whitespace become underscores, runs of
    underscores collapse to one and leading/trailing underscores are
    trimmed. A name with nothing left becomes ``Unnamed``.

    Example:
        >>> sanitize_segment("  Bass Music: Vol 2? ")
        'Bass_Music_Vol_2'
    """
    cleaned = _ILLEGAL_CHARS.sub("_", name)
    cleaned = _WHITESPACE.sub("_", cleaned)
    cleaned = _UNDERSCORES.sub("_", cleaned)
    cleaned = cleaned.strip("_")
    return cleaned or "Unnamed"


class FusionGroupBuilder:
    """Builds fusion groups from clusters and resolves conflicts between them.

    Attributes:
        config: Group size bounds, conflict threshold and path layout.
    """

    def __init__(
        self,
        config: Optional[FusionBuilderConfig] = None,
        classifier: Optional[ClusterClassifier] = None,
        id_sequence: Optional[IdSequence] = None,
    ) -> None:
        """Initialize the builder.

        Args:
            config: Builder configuration. Defaults to FusionBuilderConfig().
            classifier: Classifier used to vote group classifications.
            id_sequence: Source of group ids. A fresh sequence per builder
                keeps ids deterministic.
        """
        self.config = config if config is not None else FusionBuilderConfig()
        self._classifier = classifier if classifier is not None else ClusterClassifier()
        self._ids = id_sequence if id_sequence is not None else IdSequence()

    def build(
        self, clusters: List[FolderCluster], packs: List[ClassifiedPack]
    ) -> FusionBuildResult:
        """Build fusion groups and apply automatic conflict resolutions.

        Args:
            clusters: Folder clusters to turn into groups.
            packs: Classified packs owning the cluster members.

        Returns:
            FusionBuildResult with the surviving groups, every detected
            conflict and the conflicts that still need a decision.
        """
        pack_index = {pack.pack_id: pack for pack in packs}
        groups: List[FusionGroup] = []

        for cluster in clusters:
            size = len(cluster.members)
            if size < self.config.min_group_size or size > self.config.max_group_size:
                logger.debug(
                    "Skipping cluster %r: %d members outside %d-%d",
                    cluster.canonical, size,
                    self.config.min_group_size, self.config.max_group_size,
                )
                continue

            source_files = self.create_source_mappings(cluster, pack_index)
            if not source_files:
                logger.warning(
                    "Skipping cluster %r: none of its members belong to a known pack",
                    cluster.canonical,
                )
                continue

            classification = self._classifier.classify(cluster, pack_index)
            group = FusionGroup(
                id=self._ids.next("fusion"),
                canonical=cluster.canonical,
                target_path=self.generate_target_path(cluster, classification),
                classification=classification,
                source_files=source_files,
                statistics=self.calculate_statistics(source_files, cluster),
                confidence=cluster.confidence,
                cluster_info=ClusterInfo(
                    original_paths=[member.path for member in cluster.members],
                    pack_count=cluster.statistics.pack_count,
                    avg_similarity=cluster.statistics.avg_similarity,
                ),
                preserve_pack_structure=self.config.preserve_pack_structure,
            )
            groups.append(group)

        logger.info("Built %d fusion groups from %d clusters", len(groups), len(clusters))

        conflicts = self.detect_conflicts(groups)
        resolved = self.apply_conflict_resolutions(groups, conflicts)
        unresolved = [c for c in conflicts if c.resolution != ResolutionKind.MERGE]

        if unresolved:
            logger.warning("%d fusion conflict(s) need a manual decision", len(unresolved))

        return FusionBuildResult(groups=resolved, conflicts=conflicts, unresolved=unresolved)

    def generate_target_path(
        self, cluster: FolderCluster, classification: GroupClassification
    ) -> str:
        """Derive the target path of a group. Identical inputs give identical paths.

        Example:
            >>> builder.generate_target_path(cluster, GroupClassification(
            ...     family="Bass Music", style="Dubstep", type="BASS"))
            '/Bass_Music/BASS/Dubstep/Aggressive_Bass'
        """
        if self.config.use_full_path:
            parts = [classification.family, classification.type, classification.style]
            if classification.format:
                parts.append(classification.format)
            parts.append(cluster.canonical)
            if classification.variant:
                parts.append(classification.variant)
        else:
            parts = [classification.type, classification.style, cluster.canonical]

        return "/" + "/".join(sanitize_segment(part) for part in parts)

    def create_source_mappings(
        self, cluster: FolderCluster, pack_index: Dict[str, ClassifiedPack]
    ) -> List[SourceFileMapping]:
        """One mapping per contributing pack, in order of first appearance.

        Members whose pack is unknown are ignored.
        """
        by_pack: Dict[str, List[FolderPath]] = defaultdict(list)
        for member in cluster.members:
            by_pack[member.pack_id].append(member)

        mappings: List[SourceFileMapping] = []
        for pack_id, members in by_pack.items():
            pack = pack_index.get(pack_id)
            if pack is None:
                logger.debug("Cluster %r references unknown pack %s", cluster.canonical, pack_id)
                continue
            file_count = sum(member.file_count for member in members)
            mappings.append(SourceFileMapping(
                pack_id=pack_id,
                pack_name=pack.name,
                original_path=members[0].path,
                file_count=file_count,
                estimated_size=file_count * ESTIMATED_BYTES_PER_FILE,
                confidence=cluster.confidence,
                paths=[member.path for member in members],
            ))
        return mappings

    def calculate_statistics(
        self, source_files: List[SourceFileMapping], cluster: FolderCluster
    ) -> FusionStatistics:
        avg_similarity = cluster.statistics.avg_similarity
        if avg_similarity > 0.9:
            duplicate_risk = 0.8
        elif avg_similarity > 0.8:
            duplicate_risk = 0.5
        elif avg_similarity > 0.7:
            duplicate_risk = 0.3
        else:
            duplicate_risk = 0.1

        pack_count = len(source_files)
        complexity = min(1.0, pack_count * 0.1 + (1 - cluster.statistics.cohesion) * 0.5)

        return FusionStatistics(
            total_files=sum(sf.file_count for sf in source_files),
            total_size=sum(sf.estimated_size for sf in source_files),
            pack_count=pack_count,
            duplicate_risk=duplicate_risk,
            complexity_score=complexity,
        )

    def detect_conflicts(self, groups: List[FusionGroup]) -> List[ConflictResolution]:
        """Compare every pair of groups and report collisions.

        All-pairs comparison is quadratic in the number of groups, which
        stays small compared to file counts.
        """
        conflicts: List[ConflictResolution] = []
        for i in range(len(groups)):
            for j in range(i + 1, len(groups)):
                conflict = self._detect_conflict(groups[i], groups[j])
                if conflict is not None:
                    conflicts.append(conflict)

        logger.info("Detected %d fusion conflict(s)", len(conflicts))
        return conflicts

    def apply_conflict_resolutions(
        self, groups: List[FusionGroup], conflicts: List[ConflictResolution]
    ) -> List[FusionGroup]:
        """Apply ``merge`` resolutions; every other resolution is left alone.

        Merges are closed transitively: if A merges with B and B with C,
        all three end up in A. The surviving group of each merged set is
        the one that appears first in ``groups``. Input groups are not
        modified.

        Args:
            groups: Groups as built.
            conflicts: Conflicts from detect_conflicts.

        Returns:
            Surviving groups in their original order.
        """
        index_of = {group.id: idx for idx, group in enumerate(groups)}
        parent = list(range(len(groups)))

        def find(x: int) -> int:
            """Find with path compression."""
            if parent[x] != x:
                parent[x] = find(parent[x])
            return parent[x]

        def union(x: int, y: int) -> None:
            """Union keeping the lowest index as root."""
            px, py = find(x), find(y)
            if px == py:
                return
            if py < px:
                px, py = py, px
            parent[py] = px

        for conflict in conflicts:
            if conflict.resolution != ResolutionKind.MERGE:
                continue
            idx1 = index_of.get(conflict.group_id1)
            idx2 = index_of.get(conflict.group_id2)
            if idx1 is None or idx2 is None:
                logger.warning(
                    "Ignoring merge of unknown group(s) %s, %s",
                    conflict.group_id1, conflict.group_id2,
                )
                continue
            union(idx1, idx2)

        survivors: Dict[int, FusionGroup] = {}
        for idx, group in enumerate(groups):
            root = find(idx)
            if root == idx:
                survivors[idx] = group
                continue
            if survivors[root] is groups[root]:
                survivors[root] = copy.deepcopy(groups[root])
            self._merge_into(survivors[root], group)
            logger.debug("Merged fusion group %s into %s", group.id, groups[root].id)

        return [survivors[idx] for idx in sorted(survivors)]

    def _detect_conflict(
        self, group1: FusionGroup, group2: FusionGroup
    ) -> Optional[ConflictResolution]:
        if group1.target_path == group2.target_path:
            return ConflictResolution(
                group_id1=group1.id,
                group_id2=group2.id,
                conflict_type=ConflictType.DUPLICATE,
                resolution=ResolutionKind.MERGE,
                confidence=0.9,
                reason="Same target path",
            )

        overlap = self._pack_overlap(group1, group2)
        if overlap > self.config.conflict_threshold:
            return ConflictResolution(
                group_id1=group1.id,
                group_id2=group2.id,
                conflict_type=ConflictType.OVERLAP,
                resolution=ResolutionKind.MERGE if overlap > 0.7 else ResolutionKind.MANUAL,
                confidence=overlap,
                reason=f"{round(overlap * 100)}% source pack overlap",
            )

        if self._similar_canonicals(group1.canonical, group2.canonical):
            return ConflictResolution(
                group_id1=group1.id,
                group_id2=group2.id,
                conflict_type=ConflictType.AMBIGUOUS,
                resolution=ResolutionKind.MANUAL,
                confidence=0.5,
                reason="Similar canonical names",
            )

        return None

    def _pack_overlap(self, group1: FusionGroup, group2: FusionGroup) -> float:
        packs1 = {sf.pack_id for sf in group1.source_files}
        packs2 = {sf.pack_id for sf in group2.source_files}
        union = packs1 | packs2
        if not union:
            return 0.0
        return len(packs1 & packs2) / len(union)

    def _similar_canonicals(self, name1: str, name2: str) -> bool:
        norm1 = _NAME_SEPARATORS.sub("", name1.lower())
        norm2 = _NAME_SEPARATORS.sub("", name2.lower())
        if not norm1 and not norm2:
            return False
        return Levenshtein.normalized_distance(norm1, norm2) < 0.3

    def _merge_into(self, target: FusionGroup, source: FusionGroup) -> None:
        """Fold ``source`` into ``target``. Ownership of source mappings moves to target."""
        target.source_files.extend(copy.deepcopy(source.source_files))

        stats = target.statistics
        stats.total_files += source.statistics.total_files
        stats.total_size += source.statistics.total_size
        stats.pack_count += source.statistics.pack_count
        stats.duplicate_risk = max(stats.duplicate_risk, source.statistics.duplicate_risk)
        stats.complexity_score = (stats.complexity_score + source.statistics.complexity_score) / 2

        target.confidence = (target.confidence + source.confidence) / 2

        info = target.cluster_info
        info.original_paths.extend(source.cluster_info.original_paths)
        info.pack_count += source.cluster_info.pack_count
        info.avg_similarity = (info.avg_similarity + source.cluster_info.avg_similarity) / 2
