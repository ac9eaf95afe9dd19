"""
On-disk layout of the project store.

Every directory the stores touch is computed here:

    <root>/projects/<project-id>/
    <root>/projects/<project-id>/<collection>/<resource-id>/

Directories are created lazily and idempotently. Resolving an existing
project or resource that is absent raises ``NotFound``.
"""

from __future__ import annotations

import threading
import weakref
from pathlib import Path
from typing import Union

from bandscope.common.errors import IoFailure, NotFound, StorageUnavailable


PROJECTS_DIRNAME = "projects"
PROJECT_METADATA_FILENAME = "project.json"
RESOURCE_METADATA_FILENAME = "info.json"
STAGING_PREFIX = ".staging-"


def _mkdir(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise IoFailure(f"Failed to create directory {path}: {exc}") from exc


def is_valid_identifier(value: str) -> bool:
    if not value or not isinstance(value, str):
        return False
    if value.startswith("."):
        return False
    return "/" not in value and "\\" not in value and "\x00" not in value


class StorageLayout:
    """Resolves (and creates) directories under an injected storage root."""

    def __init__(self, root: Union[str, Path]):
        if root is None or not str(root).strip():
            raise StorageUnavailable("Storage root is not configured.")
        self.root = Path(root)
        # An entry lives only while some caller holds a reference to its lock.
        self._locks: "weakref.WeakValueDictionary[str, threading.RLock]" = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Directories
    # ------------------------------------------------------------------

    def projects_dir(self) -> Path:
        projects_dir = self.root / PROJECTS_DIRNAME
        try:
            projects_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailable(f"Failed to create projects directory {projects_dir}: {exc}") from exc
        return projects_dir

    def project_dir(self, project_id: str, create: bool = False) -> Path:
        if not is_valid_identifier(project_id):
            raise NotFound(f"Project '{project_id}' not found.")
        project_dir = self.projects_dir() / project_id
        if create:
            _mkdir(project_dir)
        elif not project_dir.is_dir():
            raise NotFound(f"Project '{project_id}' not found.")
        return project_dir

    def project_meta_path(self, project_id: str) -> Path:
        return self.project_dir(project_id) / PROJECT_METADATA_FILENAME

    def collection_dir(self, project_id: str, collection: str) -> Path:
        collection_dir = self.project_dir(project_id) / collection
        _mkdir(collection_dir)
        return collection_dir

    def resource_dir(self, project_id: str, collection: str, resource_id: str, create: bool = False) -> Path:
        collection_dir = self.collection_dir(project_id, collection)
        if not is_valid_identifier(resource_id):
            raise NotFound(f"Resource '{resource_id}' not found in project '{project_id}'.")
        resource_dir = collection_dir / resource_id
        if create:
            _mkdir(resource_dir)
        elif not resource_dir.is_dir():
            raise NotFound(f"Resource '{resource_id}' not found in project '{project_id}'.")
        return resource_dir

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def project_lock(self, project_id: str) -> threading.RLock:
        """Per-project lock serialising mutations within this process.

        Callers must keep a reference for as long as they need the lock;
        the registry itself only holds it weakly.
        """
        with self._locks_guard:
            lock = self._locks.get(project_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[project_id] = lock
            return lock
