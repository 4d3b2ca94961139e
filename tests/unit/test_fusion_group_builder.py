"""
Unit tests for FusionGroupBuilder.

Tests cover:
- Target path generation and segment sanitizing
- Source mappings and statistics
- Conflict detection (duplicate, overlap, ambiguous)
- Transitive merge resolution and file conservation
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))
from conftest import make_cluster, make_pack

from packfuse.fusion import FusionGroupBuilder, sanitize_segment
from packfuse.matching import FolderClusterer, SimilarityScorer
from packfuse.models import (
    ClusterStatistics,
    ConflictResolution,
    ConflictType,
    FolderCluster,
    FolderPath,
    FusionBuilderConfig,
    GroupClassification,
    PathContext,
    ResolutionKind,
)


@pytest.fixture
def packs():
    return [make_pack(pack_id, Path("/packs") / pack_id) for pack_id in ("p1", "p2", "p3")]


def single(canonical: str, pack_id: str, file_count: int = 10) -> FolderCluster:
    return make_cluster(canonical, [FolderPath(pack_id, canonical, file_count=file_count)])


@pytest.mark.unit
class TestSanitizeSegment:
    """Tests for sanitize_segment."""

    def test_illegal_chars_and_whitespace(self):
        assert sanitize_segment("  Bass Music: Vol 2? ") == "Bass_Music_Vol_2"

    def test_collapses_underscores(self):
        assert sanitize_segment("Kick___Drums") == "Kick_Drums"

    def test_empty_result_becomes_unnamed(self):
        assert sanitize_segment("???") == "Unnamed"

    def test_slashes_are_illegal(self):
        assert sanitize_segment("Drums/Kicks") == "Drums_Kicks"


@pytest.mark.unit
class TestTargetPath:
    """Tests for generate_target_path."""

    def test_full_path(self):
        builder = FusionGroupBuilder()
        classification = GroupClassification(family="Bass Music", style="Dubstep", type="BASS")
        cluster = single("Aggressive Bass", "p1")

        path = builder.generate_target_path(cluster, classification)

        assert path == "/Bass_Music/BASS/Dubstep/Aggressive_Bass"
        assert builder.generate_target_path(cluster, classification) == path

    def test_full_path_with_format_and_variant(self):
        classification = GroupClassification(
            family="Bass Music", style="Dubstep", type="BASS", format="Loop", variant="Dirty"
        )
        path = FusionGroupBuilder().generate_target_path(single("Aggressive Bass", "p1"), classification)
        assert path == "/Bass_Music/BASS/Dubstep/Loop/Aggressive_Bass/Dirty"

    def test_short_path(self):
        builder = FusionGroupBuilder(FusionBuilderConfig(use_full_path=False))
        classification = GroupClassification(
            family="Bass Music", style="Dubstep", type="BASS", format="Loop"
        )
        path = builder.generate_target_path(single("Aggressive Bass", "p1"), classification)
        assert path == "/BASS/Dubstep/Aggressive_Bass"


@pytest.mark.unit
class TestBuild:
    """Tests for FusionGroupBuilder.build."""

    def test_one_group_per_cluster(self, packs):
        cluster = make_cluster("Kicks", [
            FolderPath("p1", "Kicks", file_count=12),
            FolderPath("p2", "Kick", file_count=12),
        ])
        result = FusionGroupBuilder().build([cluster], packs)

        assert len(result.groups) == 1
        group = result.groups[0]
        assert group.id == "fusion_1"
        assert group.target_path == "/Bass_Music/KICKS/Dubstep/Kicks"
        assert [sf.pack_id for sf in group.source_files] == ["p1", "p2"]
        assert group.statistics.total_files == 24
        assert group.statistics.total_size == 24 * 500_000
        assert group.cluster_info.original_paths == ["Kicks", "Kick"]
        assert result.conflicts == []

    def test_members_of_same_pack_share_one_mapping(self, packs):
        cluster = make_cluster("Kicks", [
            FolderPath("p1", "Drums/Kicks", file_count=3),
            FolderPath("p1", "Extras/Kick", file_count=2),
        ])
        group = FusionGroupBuilder().build([cluster], packs).groups[0]

        assert len(group.source_files) == 1
        assert group.source_files[0].file_count == 5
        assert group.source_files[0].original_path == "Drums/Kicks"
        assert group.source_files[0].paths == ["Drums/Kicks", "Extras/Kick"]

    def test_unknown_packs_skip_cluster(self, packs):
        result = FusionGroupBuilder().build([single("Kicks", "ghost")], packs)
        assert result.groups == []

    def test_size_bounds(self, packs):
        builder = FusionGroupBuilder(FusionBuilderConfig(min_group_size=2))
        assert builder.build([single("Kicks", "p1")], packs).groups == []

    def test_preserve_pack_structure_flag(self, packs):
        builder = FusionGroupBuilder(FusionBuilderConfig(preserve_pack_structure=True))
        group = builder.build([single("Kicks", "p1")], packs).groups[0]
        assert group.preserve_pack_structure

    def test_ids_restart_per_builder(self, packs):
        clusters = [single("Kicks", "p1"), single("Vocals", "p2")]
        first = FusionGroupBuilder().build(clusters, packs)
        second = FusionGroupBuilder().build(clusters, packs)
        assert [g.id for g in first.groups] == ["fusion_1", "fusion_2"]
        assert [g.id for g in second.groups] == [g.id for g in first.groups]

    def test_sibling_folders_clustered_then_fused(self, packs):
        """Kicks and Kick under the same parent end up in one fusion group."""
        context = PathContext(parent_path="Drums", depth=1, siblings=("Snares",))
        folders = [
            FolderPath("p1", "Drums/Kicks", file_count=12, context=context),
            FolderPath("p2", "Drums/Kick", file_count=12, context=context),
        ]
        scorer = SimilarityScorer()
        assert scorer.score("Kicks", "Kick", context, context).overall >= 0.80

        clusters = FolderClusterer(scorer=scorer).cluster(folders)
        result = FusionGroupBuilder().build(clusters, packs)

        assert len(clusters) == 1
        assert len(result.groups) == 1
        group = result.groups[0]
        assert group.target_path == "/Bass_Music/KICKS/Dubstep/Kick"
        assert len(group.source_files) == 2
        assert group.statistics.total_files == 24


@pytest.mark.unit
class TestStatistics:
    """Tests for calculate_statistics."""

    @pytest.mark.parametrize("avg_similarity,risk", [
        (0.95, 0.8), (0.85, 0.5), (0.75, 0.3), (0.5, 0.1),
    ])
    def test_duplicate_risk_steps(self, packs, avg_similarity, risk):
        cluster = FolderCluster(
            canonical="Kicks",
            members=[FolderPath("p1", "Kicks")],
            statistics=ClusterStatistics(avg_similarity=avg_similarity),
        )
        builder = FusionGroupBuilder()
        mappings = builder.create_source_mappings(cluster, {p.pack_id: p for p in packs})
        assert builder.calculate_statistics(mappings, cluster).duplicate_risk == risk

    def test_complexity(self, packs):
        cluster = FolderCluster(
            canonical="Kicks",
            members=[FolderPath("p1", "Kicks"), FolderPath("p2", "Kick")],
            statistics=ClusterStatistics(cohesion=0.8),
        )
        builder = FusionGroupBuilder()
        mappings = builder.create_source_mappings(cluster, {p.pack_id: p for p in packs})
        assert builder.calculate_statistics(mappings, cluster).complexity_score == pytest.approx(0.3)


@pytest.mark.unit
class TestConflicts:
    """Tests for conflict detection and resolution."""

    def test_duplicate_target_paths_merge(self, packs):
        clusters = [single("Aggressive Bass", "p1"), single("Aggressive Bass", "p2")]
        result = FusionGroupBuilder().build(clusters, packs)

        assert len(result.conflicts) == 1
        conflict = result.conflicts[0]
        assert conflict.conflict_type == ConflictType.DUPLICATE
        assert conflict.resolution == ResolutionKind.MERGE
        assert conflict.confidence == 0.9
        assert result.unresolved == []

        assert len(result.groups) == 1
        group = result.groups[0]
        assert group.id == "fusion_1"
        assert group.target_path == "/Bass_Music/BASS/Dubstep/Aggressive_Bass"
        assert [sf.pack_id for sf in group.source_files] == ["p1", "p2"]
        assert group.statistics.total_files == 20

    def test_partial_pack_overlap_needs_review(self, packs):
        clusters = [
            make_cluster("Kicks", [FolderPath("p1", "Kicks"), FolderPath("p2", "Kick")]),
            make_cluster("Snares", [FolderPath("p1", "Snares"), FolderPath("p3", "Snare")]),
        ]
        result = FusionGroupBuilder().build(clusters, packs)

        assert len(result.conflicts) == 1
        conflict = result.conflicts[0]
        assert conflict.conflict_type == ConflictType.OVERLAP
        assert conflict.resolution == ResolutionKind.MANUAL
        assert conflict.confidence == pytest.approx(1 / 3)
        assert result.unresolved == [conflict]
        assert len(result.groups) == 2

    def test_full_pack_overlap_merges(self, packs):
        clusters = [
            make_cluster("Kicks", [FolderPath("p1", "Kicks", 4), FolderPath("p2", "Kick", 4)]),
            make_cluster("Snares", [FolderPath("p1", "Snares", 3), FolderPath("p2", "Snare", 3)]),
        ]
        result = FusionGroupBuilder().build(clusters, packs)

        assert result.conflicts[0].conflict_type == ConflictType.OVERLAP
        assert result.conflicts[0].resolution == ResolutionKind.MERGE
        assert len(result.groups) == 1
        assert len(result.groups[0].source_files) == 4
        assert result.groups[0].statistics.total_files == 14

    def test_similar_canonicals_are_ambiguous(self, packs):
        clusters = [single("Kick Loops", "p1"), single("Kick Loop", "p2")]
        result = FusionGroupBuilder().build(clusters, packs)

        assert len(result.conflicts) == 1
        assert result.conflicts[0].conflict_type == ConflictType.AMBIGUOUS
        assert result.conflicts[0].resolution == ResolutionKind.MANUAL
        assert len(result.groups) == 2

    def test_unrelated_groups_do_not_conflict(self, packs):
        clusters = [single("Kicks", "p1"), single("Vocals", "p2")]
        assert FusionGroupBuilder().build(clusters, packs).conflicts == []

    def test_merges_are_transitive_and_conserve_files(self, packs):
        clusters = [single("Kicks", "p1", 5), single("Kicks", "p2", 7), single("Kicks", "p3", 9)]
        result = FusionGroupBuilder().build(clusters, packs)

        assert len(result.conflicts) == 3
        assert len(result.groups) == 1
        group = result.groups[0]
        assert group.id == "fusion_1"
        assert [sf.pack_id for sf in group.source_files] == ["p1", "p2", "p3"]
        assert sum(sf.file_count for sf in group.source_files) == 21
        assert group.statistics.total_files == 21

    def test_apply_resolutions_leaves_input_untouched(self, packs):
        builder = FusionGroupBuilder()
        groups = builder.build([single("Kicks", "p1"), single("Vocals", "p2")], packs).groups
        merge = ConflictResolution(
            group_id1=groups[0].id,
            group_id2=groups[1].id,
            conflict_type=ConflictType.OVERLAP,
            resolution=ResolutionKind.MERGE,
            confidence=1.0,
            reason="forced",
        )

        merged = builder.apply_conflict_resolutions(groups, [merge])

        assert len(merged) == 1
        assert len(merged[0].source_files) == 2
        assert len(groups[0].source_files) == 1
        assert groups[0].statistics.total_files == 10

    def test_non_merge_resolutions_are_not_applied(self, packs):
        builder = FusionGroupBuilder()
        groups = builder.build([single("Kicks", "p1"), single("Vocals", "p2")], packs).groups
        manual = ConflictResolution(
            groups[0].id, groups[1].id, ConflictType.AMBIGUOUS, ResolutionKind.MANUAL, 0.5, "check"
        )
        assert builder.apply_conflict_resolutions(groups, [manual]) == groups
