import gc
import json
import shutil
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from bandscope.common.errors import Corrupt, IoFailure, NotFound
from bandscope.services import project_store as project_store_module


T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _with_created(store, project, created_at):
    """Pin a deterministic creation time through the public update path."""
    return store.update_project(replace(project, created_at=created_at, updated_at=created_at))


def test_create_project_writes_directory_and_metadata(project_store, layout):
    project = project_store.create_project("Copper", "Cu")
    project_dir = layout.root / "projects" / project.id
    assert project_dir.is_dir()
    payload = json.loads((project_dir / "project.json").read_text())
    assert payload["id"] == project.id
    assert payload["name"] == "Copper"
    assert payload["formula"] == "Cu"
    assert payload["has_cif"] is False
    assert project.created_at == project.updated_at
    assert project.last_opened_at is None


def test_list_reflects_surviving_projects_ordered_by_recency(project_store):
    a = _with_created(project_store, project_store.create_project("A", "Al"), T0)
    b = _with_created(project_store, project_store.create_project("B", "B"), T0 + timedelta(days=1))
    c = _with_created(project_store, project_store.create_project("C", "C"), T0 + timedelta(days=2))

    assert [p.id for p in project_store.list_projects()] == [c.id, b.id, a.id]

    project_store.mark_opened(a.id)
    assert [p.id for p in project_store.list_projects()] == [a.id, c.id, b.id]

    project_store.delete_project(c.id)
    assert [p.id for p in project_store.list_projects()] == [a.id, b.id]


def test_list_skips_directories_without_metadata(project_store, layout):
    project = project_store.create_project("A", "Al")
    (layout.projects_dir() / "stray").mkdir()
    (layout.projects_dir() / "notes.txt").write_text("hello")
    assert [p.id for p in project_store.list_projects()] == [project.id]


def test_list_fails_on_corrupt_metadata(project_store, layout):
    project_store.create_project("A", "Al")
    broken = layout.projects_dir() / "broken"
    broken.mkdir()
    (broken / "project.json").write_text("{")
    with pytest.raises(Corrupt):
        project_store.list_projects()


def test_update_with_stale_timestamp_still_moves_forward(project_store):
    project = project_store.create_project("Copper", "Cu")
    stale = replace(project, name="Copper (fcc)", updated_at=project.created_at - timedelta(days=3))
    updated = project_store.update_project(stale)
    assert updated.updated_at > project.created_at
    assert updated.name == "Copper (fcc)"
    assert updated.id == project.id
    assert updated.created_at == project.created_at
    assert project_store.get_project(project.id) == updated


def test_update_missing_project_is_not_found(project_store):
    project = project_store.create_project("Copper", "Cu")
    ghost = replace(project, id="00000000-0000-4000-8000-000000000000")
    with pytest.raises(NotFound):
        project_store.update_project(ghost)


def test_mark_opened_leaves_updated_at_untouched(project_store):
    project = project_store.create_project("Copper", "Cu")
    opened = project_store.mark_opened(project.id)
    assert opened.last_opened_at is not None
    assert opened.last_opened_at >= project.created_at
    assert opened.updated_at == project.updated_at
    with pytest.raises(NotFound):
        project_store.mark_opened("missing")


def test_delete_project_removes_subtree(project_store, band_store, fermi_store, layout, make_source):
    project = project_store.create_project("Copper", "Cu")
    band_store.import_band_structure(
        project.id, "bands", make_source("cu.qtl", "q"), "cu.qtl", make_source("cu.klist_band", "k"), "cu.klist_band"
    )
    fermi_store.import_fermi_surface(
        project.id,
        "fs",
        (make_source("Cu.output1", "1"), "Cu.output1"),
        (make_source("Cu.output2", "2"), "Cu.output2"),
        (make_source("Cu.outputkgen", "k"), "Cu.outputkgen"),
        (make_source("Cu.struct", "s"), "Cu.struct"),
    )

    project_store.delete_project(project.id)

    assert not (layout.root / "projects" / project.id).exists()
    with pytest.raises(NotFound):
        band_store.list_resources(project.id)
    with pytest.raises(NotFound):
        fermi_store.list_resources(project.id)
    with pytest.raises(NotFound):
        project_store.delete_project(project.id)


def test_import_structure_file_twice_keeps_latest(project_store, make_source):
    project = project_store.create_project("Copper", "Cu")
    first = project_store.import_structure_file(project.id, make_source("a.cif", "data_first"), "a.cif")
    assert first.has_cif is True
    assert first.cif_filename == "a.cif"
    assert first.updated_at > project.updated_at

    second = project_store.import_structure_file(project.id, make_source("b.cif", "data_second"), "b.cif")
    assert second.cif_filename == "b.cif"
    assert project_store.read_structure_file(project.id) == "data_second"
    assert project_store.get_project(project.id).cif_filename == "b.cif"


def test_import_structure_from_missing_source_is_io_failure(project_store, layout, tmp_path):
    project = project_store.create_project("Copper", "Cu")
    with pytest.raises(IoFailure):
        project_store.import_structure_file(project.id, tmp_path / "nope.cif", "nope.cif")
    project_dir = layout.root / "projects" / project.id
    assert sorted(p.name for p in project_dir.iterdir()) == ["project.json"]
    assert project_store.get_project(project.id).has_cif is False


def test_read_structure_file_without_import_is_not_found(project_store):
    project = project_store.create_project("Copper", "Cu")
    with pytest.raises(NotFound):
        project_store.read_structure_file(project.id)


def test_crystal_data_absent_until_saved(project_store):
    project = project_store.create_project("Copper", "Cu")
    assert project_store.load_crystal_data(project.id) is None
    blob = '{"a": 3.61, "sites": []}'
    project_store.save_crystal_data(project.id, blob)
    assert project_store.load_crystal_data(project.id) == blob
    project_store.save_crystal_data(project.id, "{}")
    assert project_store.load_crystal_data(project.id) == "{}"


def test_crystal_data_for_missing_project_is_not_found(project_store):
    with pytest.raises(NotFound):
        project_store.load_crystal_data("missing")
    with pytest.raises(NotFound):
        project_store.save_crystal_data("missing", "{}")


def test_create_project_directory_failure_is_io_failure(project_store, layout, monkeypatch):
    monkeypatch.setattr(project_store_module.uuid, "uuid4", lambda: "taken")
    (layout.projects_dir() / "taken").write_text("a file where the directory should go")
    with pytest.raises(IoFailure):
        project_store.create_project("Copper", "Cu")


def test_legacy_project_file_loads(project_store, layout):
    project_dir = layout.projects_dir() / "legacy"
    project_dir.mkdir()
    (project_dir / "project.json").write_text(
        json.dumps(
            {
                "id": "legacy",
                "name": "Old",
                "formula": "NaCl",
                "created_at": "2024-05-01T10:00:00.000000000Z",
                "updated_at": "2024-05-02T10:00:00Z",
                "cif_filename": None,
            },
            indent=2,
        )
    )
    projects = project_store.list_projects()
    assert len(projects) == 1
    project = projects[0]
    assert project.id == "legacy"
    assert project.has_cif is False


def test_delete_project_failure_is_io_failure(project_store, monkeypatch):
    project = project_store.create_project("Copper", "Cu")

    def _boom(path):
        raise PermissionError("denied")

    monkeypatch.setattr(shutil, "rmtree", _boom)
    with pytest.raises(IoFailure):
        project_store.delete_project(project.id)


def test_update_accepts_naive_timestamps_as_utc(project_store):
    project = project_store.create_project("Copper", "Cu")
    naive = datetime(2025, 1, 1)
    updated = project_store.update_project(
        replace(project, created_at=naive, updated_at=naive, last_opened_at=naive)
    )
    assert updated.created_at == T0
    assert updated.last_opened_at == T0
    assert updated.updated_at.tzinfo is not None
    assert updated.updated_at > updated.created_at
    assert project_store.get_project(project.id).created_at == T0


def test_structure_import_cleanup_failure_is_still_io_failure(project_store, make_source, monkeypatch):
    project = project_store.create_project("Copper", "Cu")
    source = make_source("a.cif", "data_a")

    def _broken_copy(src, dst):
        raise OSError("disk full")

    def _broken_unlink(self, missing_ok=False):
        raise PermissionError("read-only directory")

    monkeypatch.setattr(project_store_module.shutil, "copyfile", _broken_copy)
    monkeypatch.setattr(project_store_module.Path, "unlink", _broken_unlink)
    with pytest.raises(IoFailure):
        project_store.import_structure_file(project.id, source, "a.cif")


def test_locks_for_unknown_and_deleted_projects_are_released(project_store, layout):
    for index in range(20):
        try:
            project_store.mark_opened(f"ghost-{index}")
        except NotFound:
            pass
    project = project_store.create_project("Copper", "Cu")
    project_store.mark_opened(project.id)
    project_store.delete_project(project.id)
    gc.collect()
    assert len(layout._locks) == 0
