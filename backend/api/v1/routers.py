"""
API Routers for V1
Aggregates the project, resource, and SIRIUS run endpoints.
"""

from fastapi import APIRouter

from backend.api.v1.routes import band_structures, fermi_surfaces, projects, sirius


api_router = APIRouter()
api_router.include_router(projects.router, tags=["Projects"])
api_router.include_router(band_structures.router, tags=["Band structures"])
api_router.include_router(fermi_surfaces.router, tags=["Fermi surfaces"])
api_router.include_router(sirius.router, tags=["SIRIUS"])
