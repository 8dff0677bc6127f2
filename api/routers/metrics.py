from __future__ import annotations

from fastapi import APIRouter, Request, Response

from api.metrics import CONTENT_TYPE_LATEST, GALLERY_SIZE, QUEUE_DEPTH, generate_latest

router = APIRouter(tags=["Metrics"])


@router.get("/metrics", include_in_schema=False)
async def metrics(request: Request) -> Response:
    """Prometheus scrape endpoint."""
    task_queue = getattr(request.app.state, "task_queue", None)
    if task_queue is not None:
        QUEUE_DEPTH.set(task_queue.depth)
    gallery = getattr(request.app.state, "gallery", None)
    if gallery is not None:
        GALLERY_SIZE.set(gallery.count)
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
