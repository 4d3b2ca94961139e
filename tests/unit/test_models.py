"""
Unit tests for the models package.

Tests cover:
- Configuration validation
- HierarchyTemplate validation
- IdSequence determinism
- Inventory parsing and loading
- Derived properties on result dataclasses
"""

import json

import pytest

from packfuse.models import (
    ClassificationMethod,
    ClusteringConfig,
    ConflictStrategy,
    ErrorType,
    FusionBuilderConfig,
    FusionGroupResult,
    FusionResult,
    HierarchyTemplate,
    IdSequence,
    OrganizationError,
    OrganizationOptions,
    OrganizationPlan,
    OrganizationSummary,
    RollbackReport,
    Severity,
    folder_name,
    load_organization_input,
    parse_organization_input,
    path_segments,
)


@pytest.mark.unit
class TestConfig:
    """Tests for configuration dataclasses."""

    def test_clustering_defaults(self):
        config = ClusteringConfig()
        assert config.similarity_threshold == 0.65
        assert config.min_cluster_size == 2
        assert config.max_cluster_size == 100

    @pytest.mark.parametrize("kwargs", [
        {"similarity_threshold": 1.2},
        {"min_cluster_size": 0},
        {"min_cluster_size": 5, "max_cluster_size": 4},
    ])
    def test_clustering_invalid(self, kwargs):
        with pytest.raises(ValueError):
            ClusteringConfig(**kwargs)

    @pytest.mark.parametrize("kwargs", [
        {"min_group_size": 0},
        {"min_group_size": 3, "max_group_size": 2},
        {"conflict_threshold": -0.1},
    ])
    def test_builder_invalid(self, kwargs):
        with pytest.raises(ValueError):
            FusionBuilderConfig(**kwargs)

    def test_options_coerce_strategy(self):
        assert OrganizationOptions(conflict_resolution="skip").conflict_resolution == ConflictStrategy.SKIP

    def test_options_reject_unknown_strategy(self):
        with pytest.raises(ValueError, match="rename, overwrite, skip, ask"):
            OrganizationOptions(conflict_resolution="merge")

    def test_options_reject_zero_threshold(self):
        with pytest.raises(ValueError):
            OrganizationOptions(critical_error_threshold=0)


@pytest.mark.unit
class TestHierarchyTemplate:
    """Tests for HierarchyTemplate validation."""

    def test_default_order(self):
        assert HierarchyTemplate().hierarchy == ["Family", "Type", "Style", "Function"]

    def test_unknown_level(self):
        with pytest.raises(ValueError, match="Unknown hierarchy level"):
            HierarchyTemplate(hierarchy=["Family", "Genre"])

    def test_repeated_level(self):
        with pytest.raises(ValueError, match="unique"):
            HierarchyTemplate(hierarchy=["Type", "Type"])


@pytest.mark.unit
class TestIdSequence:
    """Tests for IdSequence."""

    def test_independent_prefixes(self):
        seq = IdSequence()
        assert [seq.next("fusion"), seq.next("op"), seq.next("fusion")] == ["fusion_1", "op_1", "fusion_2"]

    def test_reset_and_start(self):
        seq = IdSequence(start=0)
        seq.next("op")
        seq.reset()
        assert seq.next("op") == "op_0"

    def test_negative_start(self):
        with pytest.raises(ValueError):
            IdSequence(start=-1)


@pytest.mark.unit
class TestPathHelpers:
    """Tests for path_segments and folder_name."""

    def test_mixed_separators(self):
        assert path_segments("/Bass_Music\\KICKS//Dubstep/") == ["Bass_Music", "KICKS", "Dubstep"]

    def test_folder_name(self):
        assert folder_name("Pack/Drums/Kicks") == "Kicks"
        assert folder_name("") == ""


INVENTORY = {
    "template": {"name": "type-first", "hierarchy": ["Type", "Family", "Style", "Function"]},
    "packs": [
        {
            "pack_id": "p1",
            "name": "Dubstep Pack",
            "path": "Dubstep Pack",
            "classification": {"family": "Bass Music", "style": "Dubstep", "confidence": 0.9,
                               "method": "taxonomic", "type": "bass"},
            "detected_types": {"KICKS": ["Drums/Kicks"]},
            "audio_files": 120,
            "tags": ["dark"],
        },
        {"pack_id": "p2"},
    ],
    "clusters": [
        {"canonical": "Kicks", "members": [
            {"pack_id": "p1", "path": "Drums/Kicks", "file_count": 12},
            {"pack_id": "p2", "path": "Kick", "file_count": 8},
        ]},
    ],
    "folders": [
        {"pack_id": "p1", "path": "Drums/Kicks", "file_count": 12,
         "context": {"parent_path": "Drums", "depth": 2, "siblings": ["Snares"]}},
    ],
}


@pytest.mark.unit
class TestInventory:
    """Tests for parse_organization_input and load_organization_input."""

    def test_parse_full_document(self):
        inventory = parse_organization_input(INVENTORY)

        assert inventory.template.name == "type-first"
        assert inventory.template.hierarchy[0] == "Type"

        pack = inventory.packs[0]
        assert pack.classification.method == ClassificationMethod.TAXONOMIC
        assert pack.classification.type == "bass"
        assert pack.detected_types == {"KICKS": ["Drums/Kicks"]}
        assert pack.total_files == 120
        assert inventory.packs[1].name == "p2"
        assert inventory.packs[1].classification is None

        cluster = inventory.clusters[0]
        assert cluster.statistics.total_files == 20
        assert cluster.statistics.pack_count == 2
        assert cluster.confidence == 1.0
        assert [m.name for m in cluster.members] == ["Kicks", "Kick"]

        folder = inventory.folders[0]
        assert folder.context.siblings == ("Snares",)
        assert folder.context.depth == 2

    def test_empty_document(self):
        inventory = parse_organization_input({})
        assert inventory.packs == []
        assert inventory.template.hierarchy == ["Family", "Type", "Style", "Function"]

    @pytest.mark.parametrize("document,message", [
        ([], "JSON object"),
        ({"packs": [{"name": "no id"}]}, "packs\\[0\\]: missing required field 'pack_id'"),
        ({"packs": ["p1"]}, "expected an object"),
        ({"packs": [{"pack_id": "p", "classification": {"family": "F", "style": "S", "method": "guess"}}]},
         "unknown classification method"),
        ({"clusters": [{"canonical": "Kicks"}]}, "missing required field 'members'"),
        ({"template": {"hierarchy": ["Genre"]}}, "Unknown hierarchy level"),
    ])
    def test_malformed_documents(self, document, message):
        with pytest.raises(ValueError, match=message):
            parse_organization_input(document)

    def test_load_from_file(self, temp_dir):
        path = temp_dir / "inventory.json"
        path.write_text(json.dumps(INVENTORY))
        assert len(load_organization_input(path).packs) == 2

    def test_load_invalid_json(self, temp_dir):
        path = temp_dir / "inventory.json"
        path.write_text("{not json")
        with pytest.raises(ValueError, match="not valid JSON"):
            load_organization_input(path)

    def test_load_missing_file(self, temp_dir):
        with pytest.raises(OSError):
            load_organization_input(temp_dir / "missing.json")


@pytest.mark.unit
class TestDerivedProperties:
    """Tests for computed properties on result models."""

    def test_fusion_totals(self, temp_dir):
        result = FusionResult(groups=[
            FusionGroupResult("g1", temp_dir, files_merged=3, duplicates=1, conflicts=0),
            FusionGroupResult("g2", temp_dir, files_merged=2, duplicates=0, conflicts=2),
        ])
        assert result.total_files_merged == 5
        assert result.total_duplicates == 1
        assert result.total_conflicts == 2

    def test_summary_success_ignores_warnings(self, temp_dir):
        summary = OrganizationSummary(plan=OrganizationPlan(target_root=temp_dir))
        summary.errors.append(OrganizationError(ErrorType.CONFLICT, "review", severity=Severity.WARNING))
        assert summary.success

        summary.errors.append(OrganizationError(ErrorType.FILESYSTEM, "failed"))
        assert not summary.success

    def test_rollback_report_success(self):
        assert RollbackReport().success
        assert not RollbackReport(failures=["x"]).success
