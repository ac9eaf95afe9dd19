from fastapi import APIRouter, HTTPException

from backend.api.v1.common import call_store, project_store, serialize_project
from backend.api.v1.schemas import (
    ProjectCreateRequest,
    ProjectUpdateRequest,
    StructureImportRequest,
    TextBlob,
)
from bandscope.services.metadata import parse_timestamp
from bandscope.services.project_store import Project


router = APIRouter()


@router.get("/projects", summary="List all projects, most recently opened first")
async def list_projects():
    projects = await call_store(project_store.list_projects)
    return [serialize_project(p) for p in projects]


@router.post("/projects", summary="Create a new project")
async def create_project(payload: ProjectCreateRequest):
    project = await call_store(project_store.create_project, payload.name, payload.formula)
    return serialize_project(project)


@router.get("/projects/{project_id}", summary="Project metadata")
async def get_project(project_id: str):
    project = await call_store(project_store.get_project, project_id)
    return serialize_project(project)


@router.put("/projects/{project_id}", summary="Replace project metadata")
async def update_project(project_id: str, payload: ProjectUpdateRequest):
    if payload.id != project_id:
        raise HTTPException(status_code=400, detail="Project id in body does not match the URL.")
    project = Project(
        id=payload.id,
        name=payload.name,
        formula=payload.formula,
        created_at=parse_timestamp(payload.created_at),
        updated_at=parse_timestamp(payload.updated_at),
        last_opened_at=parse_timestamp(payload.last_opened_at) if payload.last_opened_at else None,
        has_cif=payload.has_cif,
        cif_filename=payload.cif_filename,
    )
    updated = await call_store(project_store.update_project, project)
    return serialize_project(updated)


@router.post("/projects/{project_id}/open", summary="Record that a project was opened")
async def open_project(project_id: str):
    project = await call_store(project_store.mark_opened, project_id)
    return serialize_project(project)


@router.delete("/projects/{project_id}", summary="Delete a project and all its resources")
async def delete_project(project_id: str):
    await call_store(project_store.delete_project, project_id)
    return {"status": "deleted", "project_id": project_id}


@router.post("/projects/{project_id}/structure", summary="Import a CIF file into the project")
async def import_structure_file(project_id: str, payload: StructureImportRequest):
    project = await call_store(
        project_store.import_structure_file,
        project_id,
        payload.source_path,
        payload.original_filename,
    )
    return serialize_project(project)


@router.get("/projects/{project_id}/structure", summary="Read the imported CIF file")
async def read_structure_file(project_id: str):
    content = await call_store(project_store.read_structure_file, project_id)
    return {"content": content}


@router.put("/projects/{project_id}/crystal-data", summary="Save crystal data for the project")
async def save_crystal_data(project_id: str, payload: TextBlob):
    await call_store(project_store.save_crystal_data, project_id, payload.content)
    return {"status": "saved", "project_id": project_id}


@router.get("/projects/{project_id}/crystal-data", summary="Load saved crystal data, if any")
async def load_crystal_data(project_id: str):
    content = await call_store(project_store.load_crystal_data, project_id)
    return {"content": content}
