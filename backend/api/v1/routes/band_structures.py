from fastapi import APIRouter

from backend.api.v1.common import band_structure_store, call_store, serialize_resource
from backend.api.v1.schemas import BandStructureImportRequest, TextBlob


router = APIRouter()


@router.get("/projects/{project_id}/band-structures", summary="List band structures, newest first")
async def list_band_structures(project_id: str):
    records = await call_store(band_structure_store.list_resources, project_id)
    return [serialize_resource(r) for r in records]


@router.post("/projects/{project_id}/band-structures", summary="Import a .qtl/.klist_band pair")
async def import_band_structure(project_id: str, payload: BandStructureImportRequest):
    record = await call_store(
        band_structure_store.import_band_structure,
        project_id,
        payload.name,
        payload.qtl_source_path,
        payload.qtl_filename,
        payload.klist_source_path,
        payload.klist_filename,
    )
    return serialize_resource(record)


@router.get("/projects/{project_id}/band-structures/{band_structure_id}", summary="Band structure metadata")
async def get_band_structure(project_id: str, band_structure_id: str):
    record = await call_store(band_structure_store.get_resource, project_id, band_structure_id)
    return serialize_resource(record)


@router.get(
    "/projects/{project_id}/band-structures/{band_structure_id}/files",
    summary="Contents of the .qtl and .klist_band files",
)
async def load_band_structure_files(project_id: str, band_structure_id: str):
    return list(await call_store(band_structure_store.load_files, project_id, band_structure_id))


@router.delete("/projects/{project_id}/band-structures/{band_structure_id}", summary="Delete a band structure")
async def delete_band_structure(project_id: str, band_structure_id: str):
    await call_store(band_structure_store.delete_resource, project_id, band_structure_id)
    return {"status": "deleted", "band_structure_id": band_structure_id}


@router.put("/projects/{project_id}/band-structures/{band_structure_id}/labels", summary="Save k-point labels")
async def save_band_structure_labels(project_id: str, band_structure_id: str, payload: TextBlob):
    await call_store(band_structure_store.save_labels, project_id, band_structure_id, payload.content)
    return {"status": "saved"}


@router.get("/projects/{project_id}/band-structures/{band_structure_id}/labels", summary="Load k-point labels")
async def load_band_structure_labels(project_id: str, band_structure_id: str):
    content = await call_store(band_structure_store.load_labels, project_id, band_structure_id)
    return {"content": content}


@router.put("/projects/{project_id}/band-structures/{band_structure_id}/atom-names", summary="Save atom names")
async def save_band_structure_atom_names(project_id: str, band_structure_id: str, payload: TextBlob):
    await call_store(band_structure_store.save_atom_names, project_id, band_structure_id, payload.content)
    return {"status": "saved"}


@router.get("/projects/{project_id}/band-structures/{band_structure_id}/atom-names", summary="Load atom names")
async def load_band_structure_atom_names(project_id: str, band_structure_id: str):
    content = await call_store(band_structure_store.load_atom_names, project_id, band_structure_id)
    return {"content": content}
