"""Folder name matching: similarity scoring, clustering and cluster classification."""

from .similarity_scorer import (
    SIMILAR_THRESHOLD,
    STRONG_SIMILAR_THRESHOLD,
    SimilarityScore,
    SimilarityScorer,
    singularize,
)
from .cluster_classifier import ClusterClassifier, detect_format, detect_type, detect_variant
from .folder_clusterer import FolderClusterer

__all__ = [
    "SIMILAR_THRESHOLD",
    "STRONG_SIMILAR_THRESHOLD",
    "SimilarityScore",
    "SimilarityScorer",
    "singularize",
    "ClusterClassifier",
    "detect_format",
    "detect_type",
    "detect_variant",
    "FolderClusterer",
]
