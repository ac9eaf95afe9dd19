"""
Pydantic Schemas for API request models.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ProjectCreateRequest(BaseModel):
    """Request payload for creating a new project."""
    name: str
    formula: str = ""


class ProjectUpdateRequest(BaseModel):
    """Full project record as edited by the client; updated_at is recomputed server-side."""
    id: str
    name: str
    formula: str
    created_at: datetime
    updated_at: datetime
    last_opened_at: Optional[datetime] = None
    has_cif: bool = False
    cif_filename: Optional[str] = None


class StructureImportRequest(BaseModel):
    """A CIF file already on the server's disk."""
    source_path: str
    original_filename: str


class TextBlob(BaseModel):
    """Opaque JSON-shaped text stored without validation."""
    content: str


class BandStructureImportRequest(BaseModel):
    name: str
    qtl_source_path: str
    qtl_filename: str
    klist_source_path: str
    klist_filename: str


class FermiSurfaceImportRequest(BaseModel):
    name: str = ""
    output1_source_path: str
    output1_filename: str
    output2_source_path: str
    output2_filename: str
    outputkgen_source_path: str
    outputkgen_filename: str
    struct_source_path: str
    struct_filename: str
    case_name: Optional[str] = None
