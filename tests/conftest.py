"""Pytest fixtures for PackFuse tests."""

import io
import tempfile
from pathlib import Path
from typing import Dict, Generator, List

import pytest
from rich.console import Console

from packfuse.models import (
    Classification,
    ClassifiedPack,
    ClusterStatistics,
    FolderCluster,
    FolderPath,
    OrganizationInput,
)
from packfuse.planning import TaxonomyLoader
from packfuse.ui import OrganizationTUI


def pytest_configure(config) -> None:
    config.addinivalue_line("markers", "unit: fast tests of a single component")
    config.addinivalue_line("markers", "integration: tests touching several components and the filesystem")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for isolated test environments.

    Yields:
        Resolved path to the temporary directory.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def default_taxonomy():
    """The bundled taxonomy, loaded fresh."""
    return TaxonomyLoader().load()


def write_file(path: Path, content: str) -> Path:
    """Create a file and its parents. Content doubles as a unique fingerprint."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


def make_pack(
    pack_id: str,
    path: Path,
    family: str = "Bass Music",
    style: str = "Dubstep",
    detected_types: Dict[str, List[str]] = None,
    content_type: str = None,
) -> ClassifiedPack:
    return ClassifiedPack(
        pack_id=pack_id,
        name=path.name.replace("_", " "),
        classification=Classification(family=family, style=style, confidence=0.9, type=content_type),
        path=str(path),
        detected_types=detected_types or {},
    )


def make_cluster(canonical: str, members: List[FolderPath]) -> FolderCluster:
    return FolderCluster(
        canonical=canonical,
        members=members,
        confidence=1.0,
        statistics=ClusterStatistics(
            total_files=sum(m.file_count for m in members),
            pack_count=len({m.pack_id for m in members}),
        ),
    )


def snapshot(root: Path) -> Dict[str, int]:
    """Relative posix path -> size for every file below root."""
    return {
        p.relative_to(root).as_posix(): p.stat().st_size
        for p in root.rglob("*") if p.is_file()
    }


@pytest.fixture
def sample_library(temp_dir: Path) -> Dict:
    """Two dubstep packs with a Kicks/Kick folder pair to fuse.

    Creates:
        incoming/
        ├── Dubstep_Pack_A/
        │   ├── Kicks/kick1.wav, kick2.wav
        │   └── Bass/One_Shot/bass1.wav
        └── Dubstep_Pack_B/
            ├── Kick/kick1.wav (different content), kick3.wav
            └── Perc/Loop/loop1.wav

    Returns:
        Dictionary with 'working', 'target', 'packs', 'clusters', 'inventory'.
    """
    working = temp_dir / "incoming"
    pack_a = working / "Dubstep_Pack_A"
    pack_b = working / "Dubstep_Pack_B"

    write_file(pack_a / "Kicks" / "kick1.wav", "pack a kick one")
    write_file(pack_a / "Kicks" / "kick2.wav", "pack a kick two")
    write_file(pack_a / "Bass" / "One_Shot" / "bass1.wav", "pack a bass shot")
    write_file(pack_b / "Kick" / "kick1.wav", "pack b kick one, longer")
    write_file(pack_b / "Kick" / "kick3.wav", "pack b kick three")
    write_file(pack_b / "Perc" / "Loop" / "loop1.wav", "pack b perc loop")

    packs = [
        make_pack("pack_a", pack_a, detected_types={"BASS": ["Bass"]}),
        make_pack("pack_b", pack_b, detected_types={"PERCUSSION": ["Perc"]}),
    ]
    clusters = [
        make_cluster("Kicks", [
            FolderPath(pack_id="pack_a", path="Kicks", file_count=2),
            FolderPath(pack_id="pack_b", path="Kick", file_count=2),
        ]),
    ]

    return {
        "working": working,
        "target": temp_dir / "library",
        "packs": packs,
        "clusters": clusters,
        "inventory": OrganizationInput(packs=packs, clusters=clusters),
    }


@pytest.fixture
def captured_tui() -> OrganizationTUI:
    """OrganizationTUI writing to a StringIO. Read with tui.console.file.getvalue()."""
    output = io.StringIO()
    console = Console(file=output, force_terminal=False, width=160)
    return OrganizationTUI(console=console)
