"""
FastAPI Main Application
Initializes the app and includes the API routers.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.api.v1 import routers as v1_routers
from backend.api.v1.common import settings
from bandscope.common.config import configure_logging
from bandscope.common.errors import NotFound, StorageUnavailable, StoreError


configure_logging(settings.log_level)
logger = logging.getLogger("bandscope.api")

app = FastAPI(
    title="bandscope API",
    description="Project, band-structure and Fermi-surface storage with simulated SIRIUS runs.",
    version="0.1.0",
)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    """
    Fallback for store errors raised outside ``call_store``; the message is
    returned verbatim so the client can show it.
    """
    if isinstance(exc, NotFound):
        status_code = 404
    elif isinstance(exc, StorageUnavailable):
        status_code = 503
    else:
        status_code = 500
        logger.error("[api] %s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


app.include_router(v1_routers.api_router, prefix="/api/v1")


@app.get("/", tags=["Root"])
async def read_root():
    """
    Root endpoint for health check.
    """
    return {"message": "Welcome to the bandscope API. Go to /docs for details.", "data_root": str(settings.data_root)}
