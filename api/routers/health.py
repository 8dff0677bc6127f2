# ============================================================
# Suspect Re-identification
# api/routers/health.py
# ============================================================
# GET /api/health — liveness + readiness check endpoint.
#
# Reports overall API status plus per-component health for the
# face locator, the embedder, the gallery and the task queue.
# ============================================================

from __future__ import annotations

import time
from typing import Dict, Optional

from fastapi import APIRouter, Request

from api.schemas.responses import (
    ComponentHealth,
    ComponentStatus,
    HealthResponse,
)
from utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Health"])

# Module-level start time for uptime calculation
_START_TIME: float = time.perf_counter()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description=(
        "Returns the overall API health status and per-component readiness. "
        "status='down' means re-identification requests will fail."
    ),
)
async def health_check(request: Request) -> HealthResponse:
    """
    Liveness + readiness probe.

    - ``ok``       — every component is ready.
    - ``down``     — a model is missing or the task queue is not running.
    """
    uptime = time.perf_counter() - _START_TIME
    state = request.app.state
    cfg = state.config

    registry = getattr(state, "registry", None)
    gallery = getattr(state, "gallery", None)
    task_queue = getattr(state, "task_queue", None)

    components: Dict[str, ComponentHealth] = {
        "face_locator": _check_component(
            getattr(registry, "locator", None),
            "face_locator",
            detail=lambda obj: obj.model_name,
        ),
        "embedder": _check_component(
            getattr(registry, "embedder", None),
            "embedder",
            detail=lambda obj: obj.model_name,
        ),
        "gallery": _check_component(
            gallery,
            "gallery",
            detail=lambda obj: f"{obj.count} records",
        ),
        "task_queue": _check_component(
            task_queue,
            "task_queue",
            ready_attr="is_running",
            detail=lambda obj: f"depth={obj.depth}",
        ),
    }

    overall = ComponentStatus.OK
    if any(c.status == ComponentStatus.DOWN for c in components.values()):
        overall = ComponentStatus.DOWN

    logger.debug(f"Health check: overall={overall.value} uptime={uptime:.1f}s")

    return HealthResponse(
        status=overall,
        version=cfg.app_version,
        environment=cfg.environment,
        uptime_seconds=uptime,
        components=components,
    )


# ============================================================
# Helpers
# ============================================================

def _check_component(
    obj,
    name: str,
    ready_attr: str = "is_loaded",
    detail=None,
) -> ComponentHealth:
    """
    Build a ``ComponentHealth`` for *obj*.

    Missing objects and objects whose *ready_attr* is falsy are DOWN.
    Objects without *ready_attr* (the gallery) count as ready.
    """
    if obj is None:
        return ComponentHealth(
            status=ComponentStatus.DOWN,
            loaded=False,
            detail=f"Component '{name}' not initialised.",
        )

    ready = getattr(obj, ready_attr, None)
    if ready is not None and not bool(ready):
        return ComponentHealth(
            status=ComponentStatus.DOWN,
            loaded=False,
            detail=f"Component '{name}' exists but is not ready.",
        )

    info: Optional[str] = None
    if detail is not None:
        try:
            info = str(detail(obj))
        except Exception as exc:  # noqa: BLE001
            info = f"unavailable: {exc}"
    return ComponentHealth(status=ComponentStatus.OK, loaded=True, detail=info)
