from fastapi import APIRouter, Response

from status_monitor.core.metrics import render_latest

router = APIRouter(tags=["Metrics"])


@router.get("/metrics")
async def metrics() -> Response:
    return Response(content=render_latest(), media_type="text/plain; version=0.0.4")
