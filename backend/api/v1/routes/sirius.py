from typing import Optional

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from backend.api.v1.common import run_broadcaster, stream_run_events


router = APIRouter()


@router.post("/projects/{project_id}/sirius/runs", summary="Start a simulated SIRIUS run")
async def start_sirius_run(project_id: str):
    run_id = run_broadcaster.start(project_id)
    return {"run_id": run_id}


@router.post(
    "/projects/{project_id}/sirius/runs/stream",
    summary="Start a simulated SIRIUS run and stream its events until completion",
)
async def start_sirius_run_streaming(project_id: str):
    return StreamingResponse(
        stream_run_events(run_broadcaster, start_project_id=project_id),
        media_type="text/event-stream",
    )


@router.get("/sirius/events", summary="Server-sent stream of status/log events for all runs")
async def sirius_events(run_id: Optional[str] = None):
    return StreamingResponse(
        stream_run_events(run_broadcaster, run_id=run_id),
        media_type="text/event-stream",
    )
