"""POST /api/segment — run the segmentation engine over HTTP."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import Response, StreamingResponse

from quadotsu.config import MAX_THREADS, Settings
from quadotsu.dependencies import get_settings
from quadotsu.engine.context import Raster, SegmentationContext
from quadotsu.engine.parallel import WorkerPool
from quadotsu.engine.pipeline import create_pipeline
from quadotsu.engine.segmenter import SegmentationResult, segment
from quadotsu.errors import PnmFormatError, QuadOtsuError, RasterError, SegmentationError
from quadotsu.io.pnm import decode_pgm, encode_pgm
from quadotsu.models.requests import RasterRequest, SegmentRequest
from quadotsu.models.responses import HistogramResponse, SegmentResponse

logger = logging.getLogger(__name__)

router = APIRouter()

_SENTINEL = object()  # marks end of queue


def _to_raster(req: RasterRequest) -> Raster:
    try:
        return Raster(req.width, req.height, req.pixels)
    except RasterError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


def _to_response(result: SegmentationResult) -> SegmentResponse:
    return SegmentResponse(
        thresholds=result.triple.as_list(),
        dispersion=result.dispersion,
        width=result.raster.width,
        height=result.raster.height,
        pixels=result.raster.pixels.tolist(),
        elapsed_ms=round(result.elapsed_ms, 3),
        workers=result.workers,
        timings={k: round(v, 3) for k, v in result.timings.items()},
    )


async def _segment_in_executor(raster: Raster, threads: int) -> SegmentationResult:
    loop = asyncio.get_running_loop()
    try:
        return await loop.run_in_executor(None, segment, raster, threads)
    except SegmentationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e


@router.post("/segment", response_model=SegmentResponse)
async def segment_raster(
    req: SegmentRequest,
    settings: Settings = Depends(get_settings),
) -> SegmentResponse:
    raster = _to_raster(req)
    threads = settings.quadotsu_threads if req.threads is None else req.threads
    result = await _segment_in_executor(raster, threads)
    logger.info(
        "Segmented %dx%d raster: thresholds %s in %.1fms",
        raster.width,
        raster.height,
        result.triple.as_list(),
        result.elapsed_ms,
    )
    return _to_response(result)


@router.post("/segment/pgm")
async def segment_pgm(
    request: Request,
    threads: int | None = Query(default=None, ge=-1, le=MAX_THREADS),
    settings: Settings = Depends(get_settings),
) -> Response:
    try:
        raster = decode_pgm(await request.body())
    except PnmFormatError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    result = await _segment_in_executor(
        raster, settings.quadotsu_threads if threads is None else threads
    )
    return Response(
        content=encode_pgm(result.raster),
        media_type="image/x-portable-graymap",
        headers={
            "X-Thresholds": " ".join(str(f) for f in result.triple),
            "X-Elapsed-Ms": f"{result.elapsed_ms:.3f}",
        },
    )


async def _stream_segment(raster: Raster, threads: int) -> AsyncGenerator[str, None]:
    """Drive pipeline.run_streaming() in a thread, yielding SSE events as they arrive."""
    pipeline = create_pipeline()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()
    holder: dict[str, SegmentationContext] = {}

    def _run_pipeline() -> None:
        """Sync pipeline in thread — pushes progress dicts onto the async queue."""
        try:
            with WorkerPool(threads) as pool:
                ctx = SegmentationContext(raster=raster, pool=pool)
                holder["ctx"] = ctx
                for progress in pipeline.run_streaming(ctx):
                    loop.call_soon_threadsafe(queue.put_nowait, progress)
        finally:
            loop.call_soon_threadsafe(queue.put_nowait, _SENTINEL)

    future = loop.run_in_executor(None, _run_pipeline)

    while True:
        item = await queue.get()
        if item is _SENTINEL:
            break
        yield f"event: progress\ndata: {json.dumps(item)}\n\n"

    try:
        await future
    except QuadOtsuError as e:
        yield f"event: error\ndata: {json.dumps({'type': 'error', 'message': str(e)})}\n\n"
        return

    ctx = holder["ctx"]
    if ctx.errors:
        data = json.dumps({"type": "error", "message": "; ".join(ctx.errors.values())})
        yield f"event: error\ndata: {data}\n\n"
        return

    result = {
        "thresholds": ctx.triple.as_list(),
        "dispersion": ctx.dispersion,
        "elapsed_ms": round(ctx.elapsed_ms, 3),
    }
    yield f"event: result\ndata: {json.dumps(result)}\n\n"
    yield f"event: done\ndata: {json.dumps({'type': 'done'})}\n\n"


@router.post("/segment/stream")
async def segment_stream(
    req: SegmentRequest,
    settings: Settings = Depends(get_settings),
) -> StreamingResponse:
    raster = _to_raster(req)
    threads = settings.quadotsu_threads if req.threads is None else req.threads
    return StreamingResponse(
        _stream_segment(raster, threads),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.post("/histogram", response_model=HistogramResponse)
async def histogram(req: RasterRequest) -> HistogramResponse:
    ctx = SegmentationContext(raster=_to_raster(req))
    create_pipeline().run(ctx, stages={"S2.01"})
    if ctx.errors:
        raise HTTPException(status_code=422, detail="; ".join(ctx.errors.values()))
    return HistogramResponse(
        histogram=ctx.histogram.tolist(),
        prob=ctx.stats.prob.tolist(),
        expect=ctx.stats.expect.tolist(),
        total=ctx.stats.total,
    )
