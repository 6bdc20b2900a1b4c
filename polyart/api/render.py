"""POST /api/render, /api/render/stream and /api/frame."""

from __future__ import annotations

import asyncio
import json
import time
from collections import Counter
from collections.abc import AsyncGenerator

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse

from polyart.config import settings
from polyart.engine.context import RenderSession
from polyart.engine.imaging import decode_data_uri
from polyart.engine.pipeline import create_pipeline
from polyart.engine.session import render_final, render_frame, start_animation
from polyart.models.requests import FrameRequest, RenderRequest
from polyart.models.responses import FrameResponse, RenderResponse

router = APIRouter()

_SENTINEL = object()  # marks end of queue
_PALETTE_SIZE = 8


def _open_session(req: RenderRequest) -> RenderSession:
    try:
        data = decode_data_uri(req.image)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail="Image exceeds upload size limit")
    try:
        return RenderSession.from_bytes(data, quality=req.quality, speed=req.speed, seed=req.seed)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


def _build_response(session: RenderSession, elapsed_ms: float) -> RenderResponse:
    response = RenderResponse(
        width=session.width,
        height=session.height,
        status=session.status,
        processing_time_ms=round(elapsed_ms, 1),
    )
    if session.failed:
        response.error = "; ".join(session.errors.values())
        return response

    palette = Counter(t.css for t in session.triangles)
    response.image = render_final(session).to_data_uri()
    response.points = session.mesh.num_points
    response.triangles = len(session.triangles)
    response.palette = [css for css, _ in palette.most_common(_PALETTE_SIZE)]
    return response


async def _stream_render(session: RenderSession) -> AsyncGenerator[str, None]:
    """Drive pipeline.run_streaming() in a thread, yielding SSE events as they arrive."""
    start = time.perf_counter()
    pipeline = create_pipeline()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    def _run_pipeline() -> None:
        """Sync pipeline in thread — pushes progress dicts onto the async queue."""
        try:
            for progress in pipeline.run_streaming(session):
                loop.call_soon_threadsafe(queue.put_nowait, progress)
        finally:
            loop.call_soon_threadsafe(queue.put_nowait, _SENTINEL)

    loop.run_in_executor(None, _run_pipeline)

    while True:
        item = await queue.get()
        if item is _SENTINEL:
            break
        yield f"event: progress\ndata: {json.dumps(item)}\n\n"

    response = _build_response(session, (time.perf_counter() - start) * 1000)
    yield f"event: result\ndata: {json.dumps(response.model_dump())}\n\n"
    yield f"event: done\ndata: {json.dumps({'type': 'done'})}\n\n"


@router.post("/render/stream")
async def render_stream(req: RenderRequest) -> StreamingResponse:
    session = _open_session(req)
    return StreamingResponse(
        _stream_render(session),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.post("/render", response_model=RenderResponse)
async def render(req: RenderRequest) -> RenderResponse:
    start = time.perf_counter()
    session = _open_session(req)
    create_pipeline().run(session)
    return _build_response(session, (time.perf_counter() - start) * 1000)


@router.post("/frame", response_model=FrameResponse)
async def frame(req: FrameRequest) -> FrameResponse:
    session = _open_session(req)
    create_pipeline().run(session)
    if session.failed:
        raise HTTPException(status_code=422, detail=session.status)
    if start_animation(session) is None:
        raise HTTPException(status_code=503, detail="Drawing surface unavailable")

    # First tick latches the start time
    render_frame(session, 0.0)
    result = render_frame(session, req.time_ms)
    return FrameResponse(
        phase=result.phase.value,
        progress=round(result.progress, 4),
        label=result.label,
        image=session.surface.to_data_uri(),
        complete=not result.request_next,
    )
