"""Folder clustering for PackFuse.

Seeds FolderCluster records from a flat list of discovered folders. All
pairs are scored with SimilarityScorer; pairs at or above the threshold
are grouped transitively with Union-Find, then each group is tightened so
that every member scores at least the threshold against the group's
canonical name. Members that fail that check are re-clustered among
themselves.

Example:
    >>> from packfuse.matching import FolderClusterer
    >>> clusters = FolderClusterer().cluster(folders)
    >>> for c in clusters:
    ...     print(c.canonical, len(c.members))
"""

import logging
import math
import re
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from packfuse.models import ClusterStatistics, ClusteringConfig, FolderCluster, FolderPath

from .similarity_scorer import SimilarityScorer

logger = logging.getLogger("packfuse.matching")


class FolderClusterer:
    """Groups folders whose names refer to the same conceptual unit.

    Attributes:
        config: Clustering thresholds and size bounds.
    """

    _SEPARATOR_CHARS = re.compile(r"[_\-]")

    def __init__(
        self,
        config: Optional[ClusteringConfig] = None,
        scorer: Optional[SimilarityScorer] = None,
    ) -> None:
        self.config = config if config is not None else ClusteringConfig()
        self._scorer = scorer if scorer is not None else SimilarityScorer()

    def cluster(self, folders: List[FolderPath]) -> List[FolderCluster]:
        """Cluster folders by name similarity.

        Args:
            folders: Folders discovered upstream.

        Returns:
            Clusters within the configured size bounds, ordered by the
            position of their first member in ``folders``.
        """
        if not folders:
            return []

        threshold = self.config.similarity_threshold
        n = len(folders)
        pair_scores: Dict[Tuple[int, int], float] = {}

        parent = list(range(n))
        rank = [0] * n

        def find(x: int) -> int:
            """Find with path compression."""
            if parent[x] != x:
                parent[x] = find(parent[x])
            return parent[x]

        def union(x: int, y: int) -> None:
            """Union by rank."""
            px, py = find(x), find(y)
            if px == py:
                return
            if rank[px] < rank[py]:
                px, py = py, px
            parent[py] = px
            if rank[px] == rank[py]:
                rank[px] += 1

        for i in range(n):
            for j in range(i + 1, n):
                overall = self._scorer.score(
                    folders[i].name, folders[j].name, folders[i].context, folders[j].context
                ).overall
                pair_scores[(i, j)] = overall
                if overall >= threshold:
                    union(i, j)

        components: Dict[int, List[int]] = defaultdict(list)
        for idx in range(n):
            components[find(idx)].append(idx)

        clusters: List[Tuple[int, FolderCluster]] = []
        for indices in components.values():
            for member_indices, canonical in self._tighten(indices, folders):
                cluster = self._make_cluster(member_indices, canonical, folders, pair_scores)
                size = len(cluster.members)
                if not self.config.min_cluster_size <= size <= self.config.max_cluster_size:
                    logger.debug(
                        "Dropping cluster %r with %d members (bounds %d-%d)",
                        canonical, size,
                        self.config.min_cluster_size, self.config.max_cluster_size,
                    )
                    continue
                clusters.append((member_indices[0], cluster))

        clusters.sort(key=lambda item: item[0])
        logger.info("Clustered %d folders into %d clusters", n, len(clusters))
        return [cluster for _, cluster in clusters]

    def select_canonical(self, names: List[str]) -> str:
        """Pick the most representative name.

        Short names without separators or digits, starting with a capital
        letter and close to every other member score highest. Ties go to
        the alphabetically first name.
        """
        unique = sorted(set(names))
        if len(unique) == 1:
            return unique[0]

        def candidate_score(name: str) -> float:
            score = (20 - len(name)) / 20
            score -= len(self._SEPARATOR_CHARS.findall(name)) * 0.1
            if re.match(r"^[A-Z][a-z]", name):
                score += 0.2
            elif re.match(r"^[a-z][a-zA-Z]", name):
                score += 0.15
            if not re.search(r"\d", name):
                score += 0.1
            others = [other for other in names if other != name]
            if others:
                avg = sum(self._scorer.score(name, other).overall for other in others) / len(others)
                score += avg * 0.5
            return score

        return max(unique, key=candidate_score)

    def _tighten(
        self, indices: List[int], folders: List[FolderPath]
    ) -> List[Tuple[List[int], str]]:
        """Split a connected component until every member is close to its canonical."""
        result: List[Tuple[List[int], str]] = []
        remaining = list(indices)

        while remaining:
            canonical = self.select_canonical([folders[i].name for i in remaining])
            kept: List[int] = []
            rejected: List[int] = []
            for idx in remaining:
                overall = self._scorer.score(folders[idx].name, canonical).overall
                if overall >= self.config.similarity_threshold:
                    kept.append(idx)
                else:
                    rejected.append(idx)
            if rejected:
                logger.debug(
                    "Split %d member(s) away from cluster %r", len(rejected), canonical
                )
            result.append((kept, canonical))
            remaining = rejected

        return result

    def _make_cluster(
        self,
        member_indices: List[int],
        canonical: str,
        folders: List[FolderPath],
        pair_scores: Dict[Tuple[int, int], float],
    ) -> FolderCluster:
        members = [folders[i] for i in member_indices]
        similarities = [
            pair_scores[(min(a, b), max(a, b))]
            for pos, a in enumerate(member_indices)
            for b in member_indices[pos + 1:]
        ]

        total_files = sum(m.file_count for m in members)
        pack_count = len({m.pack_id for m in members})

        if not similarities:
            statistics = ClusterStatistics(total_files=total_files, pack_count=pack_count)
        else:
            avg = sum(similarities) / len(similarities)
            variance = sum((s - avg) ** 2 for s in similarities) / len(similarities)
            statistics = ClusterStatistics(
                avg_similarity=avg,
                min_similarity=min(similarities),
                max_similarity=max(similarities),
                cohesion=avg * (1 - math.sqrt(variance)),
                total_files=total_files,
                pack_count=pack_count,
            )

        return FolderCluster(
            canonical=canonical,
            members=members,
            confidence=statistics.cohesion,
            statistics=statistics,
        )
