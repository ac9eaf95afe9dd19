"""
Shared API utilities and dependencies for v1 routers.
"""

from __future__ import annotations

import json
import queue
from typing import Any, AsyncIterator, Callable, Dict, Optional, TypeVar

from fastapi import HTTPException
from fastapi.concurrency import run_in_threadpool

from bandscope.common.config import load_settings
from bandscope.common.errors import Corrupt, IoFailure, NotFound, StorageUnavailable
from bandscope.common.utils import format_relative_time
from bandscope.services.metadata import encode_record
from bandscope.services.paths import StorageLayout
from bandscope.services.project_store import Project, ProjectStore
from bandscope.services.resource_store import BandStructureStore, FermiSurfaceStore
from bandscope.services.sirius_runs import RunBroadcaster, RunEvent, is_run_finished


T = TypeVar("T")

SSE_KEEPALIVE_SECONDS = 15.0

settings = load_settings()
layout = StorageLayout(settings.data_root)
project_store = ProjectStore(layout)
band_structure_store = BandStructureStore(layout)
fermi_surface_store = FermiSurfaceStore(layout)
run_broadcaster = RunBroadcaster(
    start_delay=settings.run_start_delay,
    step_delay=settings.run_step_delay,
)


def serialize_project(project: Project) -> Dict[str, Any]:
    payload = encode_record(project)
    payload["updated_relative"] = format_relative_time(project.updated_at)
    return payload


def serialize_resource(record: Any) -> Dict[str, Any]:
    return encode_record(record)


async def call_store(func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Run a blocking store call off the event loop and map store errors to HTTP errors."""
    try:
        return await run_in_threadpool(func, *args, **kwargs)
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StorageUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except (Corrupt, IoFailure) as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def format_sse(event: RunEvent) -> str:
    return f"event: {event.kind}\ndata: {json.dumps(event.to_dict())}\n\n"


async def stream_run_events(
    broadcaster: RunBroadcaster,
    run_id: Optional[str] = None,
    start_project_id: Optional[str] = None,
    keepalive: float = SSE_KEEPALIVE_SECONDS,
) -> AsyncIterator[str]:
    """Server-sent events for a broadcaster; ends after ``run_id`` completes when given.

    The subscription only exists while the body is being iterated. When
    ``start_project_id`` is set, a new run for that project is started after
    subscribing, so its running status cannot be missed.
    """
    subscription = broadcaster.subscribe()
    try:
        if start_project_id is not None:
            run_id = broadcaster.start(start_project_id)
        if run_id:
            yield f"event: run\ndata: {json.dumps({'run_id': run_id})}\n\n"
        while True:
            try:
                event = await run_in_threadpool(subscription.get, keepalive)
            except queue.Empty:
                yield ": keep-alive\n\n"
                continue
            if run_id and event.run_id != run_id:
                continue
            yield format_sse(event)
            if run_id and is_run_finished(event):
                break
    finally:
        subscription.close()
