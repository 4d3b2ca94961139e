"""Classification voting over folder clusters.

A cluster's members usually come from several packs, each classified
independently upstream. ClusterClassifier combines those labels by
plurality vote and fills the gaps (content type, format, variant) from
keyword tables applied to folder names and paths.
"""

import logging
import re
from typing import Dict, List, Optional, Pattern, Tuple

from packfuse.models import ClassifiedPack, FolderCluster, GroupClassification

from .similarity_scorer import SimilarityScorer

logger = logging.getLogger("packfuse.matching")

UNKNOWN = "Unknown"
OTHER_TYPE = "OTHER"


def _keyword(expression: str) -> Pattern:
    """Compile a keyword that must start at a word boundary.

    Underscores and digits count as boundaries too, so "Drum_Kicks" and
    "808kick" both match ``kick``.
    """
    return re.compile(r"(?:^|[^a-z])(?:" + expression + ")", re.IGNORECASE)


# Order matters: the first matching entry wins.
TYPE_PATTERNS: List[Tuple[Pattern, str]] = [
    (_keyword("kick"), "KICKS"),
    (_keyword("bass"), "BASS"),
    (_keyword("synth"), "SYNTHS"),
    (_keyword("perc"), "PERC"),
    (re.compile(r"(?:^|[^a-z])fx|effect", re.IGNORECASE), "FX"),
    (_keyword("vocal|vox"), "VOCALS"),
    (_keyword("pad"), "PADS"),
    (_keyword("lead"), "LEADS"),
    (_keyword("snare"), "SNARES"),
    (_keyword("hi[\\s_-]?hat|hat"), "HIHATS"),
    (_keyword("arp"), "ARPS"),
    (_keyword("chord"), "CHORDS"),
    (_keyword("drum"), "DRUMS"),
    (_keyword("top"), "TOPS"),
    (_keyword("atmos"), "ATMOSPHERES"),
]

FORMAT_PATTERNS: List[Tuple[Pattern, str]] = [
    (_keyword("one[\\s_-]?shot"), "OneShot"),
    (_keyword("loop"), "Loop"),
    (_keyword("midi"), "MIDI"),
    (_keyword("preset"), "Preset"),
    (_keyword("stem"), "Stem"),
    (_keyword("multi"), "Multi"),
    (_keyword("layer"), "Layer"),
    (_keyword("fill"), "Fill"),
    (_keyword("break"), "Break"),
]

VARIANT_PATTERNS: List[Tuple[Pattern, str]] = [
    (_keyword("clean"), "Clean"),
    (_keyword("dirty"), "Dirty"),
    (_keyword("wet"), "Wet"),
    (_keyword("dry"), "Dry"),
    (_keyword("hard"), "Hard"),
    (_keyword("soft"), "Soft"),
    (_keyword("dark"), "Dark"),
    (_keyword("bright"), "Bright"),
    (_keyword("punchy"), "Punchy"),
    (_keyword("fat"), "Fat"),
]


def _first_match(table: List[Tuple[Pattern, str]], text: str) -> Optional[str]:
    for pattern, label in table:
        if pattern.search(text):
            return label
    return None


def _plurality(votes: Dict[str, int]) -> Optional[str]:
    """Most frequent key; ties keep the first-seen key."""
    if not votes:
        return None
    return max(votes, key=lambda key: votes[key])


def detect_type(text: str) -> Optional[str]:
    """Content type implied by a folder name or path, e.g. "Hard Kicks" -> "KICKS"."""
    return _first_match(TYPE_PATTERNS, text)


def detect_format(text: str) -> Optional[str]:
    return _first_match(FORMAT_PATTERNS, text)


def detect_variant(text: str) -> Optional[str]:
    return _first_match(VARIANT_PATTERNS, text)


class ClusterClassifier:
    """Aggregates classification votes and naming patterns across a cluster.

    Example:
        >>> classifier = ClusterClassifier()
        >>> result = classifier.classify(cluster, {p.pack_id: p for p in packs})
        >>> result.family, result.type
        ('Bass Music', 'KICKS')
    """

    def __init__(self, scorer: Optional[SimilarityScorer] = None) -> None:
        self._scorer = scorer if scorer is not None else SimilarityScorer()

    def classify(
        self, cluster: FolderCluster, pack_index: Dict[str, ClassifiedPack]
    ) -> GroupClassification:
        """Vote family, style and type across members and infer format/variant.

        Family and style come only from members whose pack carries a
        classification. Type comes from the pack classification when it
        names one, otherwise from keywords in the member's folder name and
        then its full path. A cluster with no type votes falls back to its
        canonical name and finally to ``OTHER``.

        Args:
            cluster: Cluster to classify.
            pack_index: Classified packs keyed by pack id.

        Returns:
            GroupClassification for the cluster.
        """
        families: Dict[str, int] = {}
        styles: Dict[str, int] = {}
        types: Dict[str, int] = {}
        confidences: List[float] = []

        for member in cluster.members:
            pack = pack_index.get(member.pack_id)
            classification = pack.classification if pack is not None else None

            if classification is not None:
                families[classification.family] = families.get(classification.family, 0) + 1
                styles[classification.style] = styles.get(classification.style, 0) + 1
                confidences.append(classification.confidence)

            if classification is not None and classification.type:
                member_type: Optional[str] = classification.type.upper()
            else:
                member_type = detect_type(member.name) or detect_type(member.path)
            if member_type:
                types[member_type] = types.get(member_type, 0) + 1

        family = _plurality(families) or UNKNOWN
        style = _plurality(styles) or UNKNOWN
        content_type = _plurality(types) or detect_type(cluster.canonical) or OTHER_TYPE

        sample_path = cluster.members[0].path if cluster.members else ""
        content_format = detect_format(f"{cluster.canonical} {sample_path}")
        variant = detect_variant(cluster.canonical)

        confidence = sum(confidences) / len(confidences) if confidences else 0.0

        logger.debug(
            "Classified cluster %r as %s/%s/%s (format=%s, variant=%s)",
            cluster.canonical, family, content_type, style, content_format, variant,
        )

        return GroupClassification(
            family=family,
            style=style,
            type=content_type,
            format=content_format,
            variant=variant,
            confidence=confidence,
        )

    def naming_patterns(self, cluster: FolderCluster) -> Dict[str, List[str]]:
        """Plural, separator and numbering variants among the member names."""
        return self._scorer.detect_common_patterns([member.name for member in cluster.members])
