from pathlib import Path

import pytest

from bandscope.services.paths import StorageLayout
from bandscope.services.project_store import ProjectStore
from bandscope.services.resource_store import BandStructureStore, FermiSurfaceStore


@pytest.fixture
def layout(tmp_path: Path) -> StorageLayout:
    return StorageLayout(tmp_path / "data")


@pytest.fixture
def project_store(layout: StorageLayout) -> ProjectStore:
    return ProjectStore(layout)


@pytest.fixture
def band_store(layout: StorageLayout) -> BandStructureStore:
    return BandStructureStore(layout)


@pytest.fixture
def fermi_store(layout: StorageLayout) -> FermiSurfaceStore:
    return FermiSurfaceStore(layout)


@pytest.fixture
def make_source(tmp_path: Path):
    """Write an external file the stores can import from."""
    src_dir = tmp_path / "external"
    src_dir.mkdir()

    def _make(name: str, content: str) -> Path:
        path = src_dir / name
        path.write_text(content)
        return path

    return _make
