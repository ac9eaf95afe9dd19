"""
Persistent storage for projects.

Each project owns one directory under ``<root>/projects`` named after its id:

    project.json      metadata (see ``Project``)
    structure.cif     copy of the imported crystal structure file
    cif_data.json     crystal data saved by the editor (opaque text)

Band structures and Fermi surfaces live in sub-collections handled by
``bandscope.services.resource_store``.
"""

from __future__ import annotations

import logging
import shutil
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional, Union

from bandscope.common.errors import IoFailure, NotFound
from bandscope.common.utils import utc_now
from bandscope.services.metadata import (
    load_record,
    parse_timestamp,
    read_text,
    read_text_optional,
    save_record,
    timestamp_field,
    write_text,
)
from bandscope.services.paths import PROJECT_METADATA_FILENAME, StorageLayout


logger = logging.getLogger(__name__)

STRUCTURE_FILENAME = "structure.cif"
CRYSTAL_DATA_FILENAME = "cif_data.json"

_TICK = timedelta(microseconds=1)


@dataclass
class Project:
    """High-level information about a project."""

    id: str
    name: str
    formula: str
    created_at: datetime = timestamp_field()
    updated_at: datetime = timestamp_field()
    last_opened_at: Optional[datetime] = timestamp_field(default=None)
    has_cif: bool = False
    cif_filename: Optional[str] = None

    @property
    def recency(self) -> datetime:
        return self.last_opened_at or self.created_at


def _later_than(*floors: Optional[datetime]) -> datetime:
    """Current time, nudged forward so it is strictly after every floor."""
    now = utc_now()
    for floor in floors:
        if floor is None:
            continue
        floor = parse_timestamp(floor)
        if now <= floor:
            now = floor + _TICK
    return now


class ProjectStore:
    """Handles creation and persistence of projects."""

    def __init__(self, layout: StorageLayout):
        self.layout = layout

    # ------------------------------------------------------------------
    # Project-level helpers
    # ------------------------------------------------------------------

    def _project_dir(self, project_id: str) -> Path:
        return self.layout.project_dir(project_id)

    def _project_meta_path(self, project_id: str) -> Path:
        return self._project_dir(project_id) / PROJECT_METADATA_FILENAME

    def _save_project(self, project: Project) -> None:
        save_record(project, self._project_meta_path(project.id))

    def get_project(self, project_id: str) -> Project:
        meta_path = self._project_meta_path(project_id)
        if not meta_path.exists():
            raise NotFound(f"Project '{project_id}' not found.")
        return load_record(Project, meta_path)

    def list_projects(self) -> List[Project]:
        projects: List[Project] = []
        for project_dir in sorted(self.layout.projects_dir().iterdir()):
            if not project_dir.is_dir() or project_dir.name.startswith("."):
                continue
            meta_path = project_dir / PROJECT_METADATA_FILENAME
            if not meta_path.exists():
                continue
            projects.append(load_record(Project, meta_path))
        projects.sort(key=lambda p: p.recency, reverse=True)
        return projects

    def create_project(self, name: str, formula: str) -> Project:
        project_id = str(uuid.uuid4())
        project_dir = self.layout.projects_dir() / project_id
        try:
            project_dir.mkdir(parents=True, exist_ok=False)
        except OSError as exc:
            raise IoFailure(f"Failed to create project directory: {exc}") from exc

        now = utc_now()
        project = Project(
            id=project_id,
            name=name,
            formula=formula,
            created_at=now,
            updated_at=now,
        )
        self._save_project(project)
        logger.info("Created project %s (%s)", project_id, name)
        return project

    def update_project(self, project: Project) -> Project:
        with self.layout.project_lock(project.id):
            stored = self.get_project(project.id)
            # Naive timestamps from callers are taken as UTC, as on disk.
            created_at = parse_timestamp(project.created_at)
            updated = replace(
                project,
                created_at=created_at,
                updated_at=_later_than(created_at, project.updated_at, stored.updated_at),
                last_opened_at=(
                    parse_timestamp(project.last_opened_at) if project.last_opened_at is not None else None
                ),
            )
            self._save_project(updated)
        return updated

    def mark_opened(self, project_id: str) -> Project:
        with self.layout.project_lock(project_id):
            project = self.get_project(project_id)
            project.last_opened_at = _later_than(project.last_opened_at)
            self._save_project(project)
        return project

    def delete_project(self, project_id: str) -> None:
        with self.layout.project_lock(project_id):
            project_dir = self._project_dir(project_id)
            try:
                shutil.rmtree(project_dir)
            except OSError as exc:
                raise IoFailure(f"Failed to delete project '{project_id}': {exc}") from exc
        logger.info("Deleted project %s", project_id)

    # ------------------------------------------------------------------
    # Structure file and crystal data
    # ------------------------------------------------------------------

    def structure_path(self, project_id: str) -> Path:
        return self._project_dir(project_id) / STRUCTURE_FILENAME

    def import_structure_file(
        self,
        project_id: str,
        source_path: Union[str, Path],
        original_filename: str,
    ) -> Project:
        with self.layout.project_lock(project_id):
            project = self.get_project(project_id)
            dest = self.structure_path(project_id)
            tmp_dest = dest.with_name(f".{dest.name}.tmp")
            try:
                shutil.copyfile(source_path, tmp_dest)
                tmp_dest.replace(dest)
            except OSError as exc:
                try:
                    tmp_dest.unlink(missing_ok=True)
                except OSError:
                    pass
                logger.error("Structure import failed for project %s: %s", project_id, exc, exc_info=True)
                raise IoFailure(f"Failed to copy CIF file: {exc}") from exc

            project.has_cif = True
            project.cif_filename = original_filename
            project.updated_at = _later_than(project.created_at, project.updated_at)
            self._save_project(project)
        logger.info("Imported structure %s into project %s", original_filename, project_id)
        return project

    def read_structure_file(self, project_id: str) -> str:
        path = self.structure_path(project_id)
        if not path.exists():
            raise NotFound("CIF file not found")
        return read_text(path)

    def save_crystal_data(self, project_id: str, crystal_data: str) -> None:
        with self.layout.project_lock(project_id):
            write_text(self._project_dir(project_id) / CRYSTAL_DATA_FILENAME, crystal_data)

    def load_crystal_data(self, project_id: str) -> Optional[str]:
        return read_text_optional(self._project_dir(project_id) / CRYSTAL_DATA_FILENAME)
