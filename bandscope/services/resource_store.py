"""
Project-scoped resource collections (band structures, Fermi surfaces).

A resource is a directory ``<project>/<collection>/<resource-id>/`` holding an
``info.json`` metadata file, a fixed set of data files copied in at import
time under canonical names, and (for band structures) optional sidecar blobs.

Imports are staged in a hidden ``.staging-<uuid>`` directory next to the final
location and renamed into place once every file and the metadata are written,
so a listing never observes a half-imported resource.
"""

from __future__ import annotations

import logging
import shutil
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Tuple, Type, Union

from bandscope.common.errors import IoFailure, NotFound, StoreError
from bandscope.common.utils import utc_now
from bandscope.services.metadata import (
    load_record,
    read_text,
    read_text_optional,
    save_record,
    timestamp_field,
    write_text,
)
from bandscope.services.paths import (
    RESOURCE_METADATA_FILENAME,
    STAGING_PREFIX,
    StorageLayout,
    is_valid_identifier,
)


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
SourceFile = Tuple[PathLike, str]

WIEN2K_EXTENSIONS = (".output1", ".output2", ".outputkgen", ".struct")


@dataclass
class BandStructureInfo:
    """Metadata of one imported band structure."""

    id: str
    name: str
    created_at: datetime = timestamp_field()
    qtl_filename: str = ""
    klist_filename: str = ""


@dataclass
class FermiSurfaceInfo:
    """Metadata of one imported Fermi surface."""

    id: str
    name: str
    created_at: datetime = timestamp_field()
    case_name: str = "unknown"


def extract_case_name(filename: str) -> str:
    """WIEN2k case name from a file such as ``Cu.output1`` (``"Cu"``)."""
    name = Path(filename).name if filename else ""
    for ext in WIEN2K_EXTENSIONS:
        if name.lower().endswith(ext):
            name = name[: -len(ext)]
            break
    return name or "unknown"


class ResourceStore:
    """CRUD over one resource collection inside every project."""

    collection: ClassVar[str]
    record_type: ClassVar[Type[Any]]
    data_files: ClassVar[Tuple[str, ...]]
    sidecars: ClassVar[Dict[str, str]] = {}

    def __init__(self, layout: StorageLayout):
        self.layout = layout

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def _collection_dir(self, project_id: str) -> Path:
        return self.layout.collection_dir(project_id, self.collection)

    def _resource_dir(self, project_id: str, resource_id: str) -> Path:
        return self.layout.resource_dir(project_id, self.collection, resource_id)

    def _sidecar_filename(self, kind: str) -> str:
        try:
            return self.sidecars[kind]
        except KeyError:
            raise ValueError(f"Unknown sidecar '{kind}' for {self.collection}.") from None

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def build_record(
        self,
        resource_id: str,
        name: str,
        created_at: datetime,
        declared_filenames: Sequence[str],
        **extra: Any,
    ) -> Any:
        raise NotImplementedError

    def import_resource(
        self,
        project_id: str,
        name: str,
        sources: Sequence[SourceFile],
        **extra: Any,
    ) -> Any:
        if len(sources) != len(self.data_files):
            raise ValueError(
                f"{self.collection} import expects {len(self.data_files)} files, got {len(sources)}."
            )

        with self.layout.project_lock(project_id):
            collection_dir = self._collection_dir(project_id)
            resource_id = str(uuid.uuid4())
            staging_dir = collection_dir / f"{STAGING_PREFIX}{resource_id}"
            try:
                staging_dir.mkdir(parents=True, exist_ok=False)
                for (source_path, declared), canonical in zip(sources, self.data_files):
                    try:
                        shutil.copyfile(source_path, staging_dir / canonical)
                    except OSError as exc:
                        raise IoFailure(f"Failed to copy {declared} into {canonical}: {exc}") from exc

                record = self.build_record(
                    resource_id,
                    name,
                    utc_now(),
                    [declared for _, declared in sources],
                    **extra,
                )
                save_record(record, staging_dir / RESOURCE_METADATA_FILENAME)
                staging_dir.rename(collection_dir / resource_id)
            except Exception as exc:
                shutil.rmtree(staging_dir, ignore_errors=True)
                if isinstance(exc, OSError) and not isinstance(exc, StoreError):
                    raise IoFailure(f"Failed to import {self.collection}: {exc}") from exc
                raise

        logger.info("Imported %s %s into project %s", self.collection, resource_id, project_id)
        return record

    def get_resource(self, project_id: str, resource_id: str) -> Any:
        resource_dir = self._resource_dir(project_id, resource_id)
        meta_path = resource_dir / RESOURCE_METADATA_FILENAME
        if not meta_path.exists():
            raise NotFound(f"Resource '{resource_id}' not found in project '{project_id}'.")
        return load_record(self.record_type, meta_path)

    def list_resources(self, project_id: str) -> List[Any]:
        results: List[Any] = []
        for resource_dir in sorted(self._collection_dir(project_id).iterdir()):
            if not resource_dir.is_dir() or resource_dir.name.startswith("."):
                continue
            meta_path = resource_dir / RESOURCE_METADATA_FILENAME
            if not meta_path.exists():
                continue
            results.append(load_record(self.record_type, meta_path))
        results.sort(key=lambda r: r.created_at, reverse=True)
        return results

    def load_files(self, project_id: str, resource_id: str) -> Tuple[str, ...]:
        resource_dir = self._resource_dir(project_id, resource_id)
        contents: List[str] = []
        for canonical in self.data_files:
            try:
                contents.append(read_text(resource_dir / canonical))
            except NotFound as exc:
                raise IoFailure(f"Failed to read {canonical}: file is missing.") from exc
        return tuple(contents)

    def delete_resource(self, project_id: str, resource_id: str) -> None:
        with self.layout.project_lock(project_id):
            resource_dir = self._resource_dir(project_id, resource_id)
            try:
                shutil.rmtree(resource_dir)
            except OSError as exc:
                raise IoFailure(f"Failed to delete {self.collection} '{resource_id}': {exc}") from exc
        logger.info("Deleted %s %s from project %s", self.collection, resource_id, project_id)

    # ------------------------------------------------------------------
    # Sidecars
    # ------------------------------------------------------------------

    def save_sidecar(self, kind: str, project_id: str, resource_id: str, blob: str) -> None:
        filename = self._sidecar_filename(kind)
        with self.layout.project_lock(project_id):
            write_text(self._resource_dir(project_id, resource_id) / filename, blob)

    def load_sidecar(self, kind: str, project_id: str, resource_id: str) -> Optional[str]:
        filename = self._sidecar_filename(kind)
        collection_dir = self._collection_dir(project_id)
        if not is_valid_identifier(resource_id):
            return None
        return read_text_optional(collection_dir / resource_id / filename)


class BandStructureStore(ResourceStore):
    collection = "band_structures"
    record_type = BandStructureInfo
    data_files = ("data.qtl", "data.klist_band")
    sidecars = {
        "labels": "labels.json",
        "atom_names": "atom_names.json",
    }

    def build_record(
        self,
        resource_id: str,
        name: str,
        created_at: datetime,
        declared_filenames: Sequence[str],
        **extra: Any,
    ) -> Any:
        qtl_filename, klist_filename = declared_filenames
        return BandStructureInfo(
            id=resource_id,
            name=name,
            created_at=created_at,
            qtl_filename=qtl_filename,
            klist_filename=klist_filename,
        )

    def import_band_structure(
        self,
        project_id: str,
        name: str,
        qtl_source_path: PathLike,
        qtl_filename: str,
        klist_source_path: PathLike,
        klist_filename: str,
    ) -> BandStructureInfo:
        return self.import_resource(
            project_id,
            name,
            [(qtl_source_path, qtl_filename), (klist_source_path, klist_filename)],
        )

    def save_labels(self, project_id: str, band_structure_id: str, labels_json: str) -> None:
        self.save_sidecar("labels", project_id, band_structure_id, labels_json)

    def load_labels(self, project_id: str, band_structure_id: str) -> Optional[str]:
        return self.load_sidecar("labels", project_id, band_structure_id)

    def save_atom_names(self, project_id: str, band_structure_id: str, atom_names_json: str) -> None:
        self.save_sidecar("atom_names", project_id, band_structure_id, atom_names_json)

    def load_atom_names(self, project_id: str, band_structure_id: str) -> Optional[str]:
        return self.load_sidecar("atom_names", project_id, band_structure_id)


class FermiSurfaceStore(ResourceStore):
    collection = "fermi_surfaces"
    record_type = FermiSurfaceInfo
    data_files = ("data.output1", "data.output2", "data.outputkgen", "data.struct")

    def build_record(
        self,
        resource_id: str,
        name: str,
        created_at: datetime,
        declared_filenames: Sequence[str],
        **extra: Any,
    ) -> Any:
        case_name = extra.get("case_name") or extract_case_name(declared_filenames[0])
        return FermiSurfaceInfo(
            id=resource_id,
            name=name or case_name,
            created_at=created_at,
            case_name=case_name,
        )

    def import_fermi_surface(
        self,
        project_id: str,
        name: str,
        output1: SourceFile,
        output2: SourceFile,
        outputkgen: SourceFile,
        struct: SourceFile,
        case_name: Optional[str] = None,
    ) -> FermiSurfaceInfo:
        return self.import_resource(
            project_id,
            name,
            [output1, output2, outputkgen, struct],
            case_name=case_name,
        )
