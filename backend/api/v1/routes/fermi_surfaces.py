from fastapi import APIRouter

from backend.api.v1.common import call_store, fermi_surface_store, serialize_resource
from backend.api.v1.schemas import FermiSurfaceImportRequest


router = APIRouter()


@router.get("/projects/{project_id}/fermi-surfaces", summary="List Fermi surfaces, newest first")
async def list_fermi_surfaces(project_id: str):
    records = await call_store(fermi_surface_store.list_resources, project_id)
    return [serialize_resource(r) for r in records]


@router.post("/projects/{project_id}/fermi-surfaces", summary="Import WIEN2k output1/output2/outputkgen/struct files")
async def import_fermi_surface(project_id: str, payload: FermiSurfaceImportRequest):
    record = await call_store(
        fermi_surface_store.import_fermi_surface,
        project_id,
        payload.name,
        (payload.output1_source_path, payload.output1_filename),
        (payload.output2_source_path, payload.output2_filename),
        (payload.outputkgen_source_path, payload.outputkgen_filename),
        (payload.struct_source_path, payload.struct_filename),
        case_name=payload.case_name,
    )
    return serialize_resource(record)


@router.get("/projects/{project_id}/fermi-surfaces/{fermi_surface_id}", summary="Fermi surface metadata")
async def get_fermi_surface(project_id: str, fermi_surface_id: str):
    record = await call_store(fermi_surface_store.get_resource, project_id, fermi_surface_id)
    return serialize_resource(record)


@router.get(
    "/projects/{project_id}/fermi-surfaces/{fermi_surface_id}/files",
    summary="Contents of the four WIEN2k files",
)
async def load_fermi_surface_files(project_id: str, fermi_surface_id: str):
    return list(await call_store(fermi_surface_store.load_files, project_id, fermi_surface_id))


@router.delete("/projects/{project_id}/fermi-surfaces/{fermi_surface_id}", summary="Delete a Fermi surface")
async def delete_fermi_surface(project_id: str, fermi_surface_id: str):
    await call_store(fermi_surface_store.delete_resource, project_id, fermi_surface_id)
    return {"status": "deleted", "fermi_surface_id": fermi_surface_id}
