# ============================================================
# Suspect Re-identification
# api/main.py
# ============================================================
# FastAPI application entry point.
#
# Responsibilities:
#   - Create and configure the FastAPI app instance
#   - Lifespan handler: load the model registry (fatal on failure),
#     load the gallery, start the inference queue; stop and release
#     everything on shutdown
#   - Register all routers under /api
#   - CORS, request ID and metrics middleware
#   - Global exception handlers (pipeline, validation, HTTP, generic)
#   - Static file serving for stored uploads
#
# Run with:
#   uvicorn api.main:app --host 0.0.0.0 --port 5000
# ============================================================

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.metrics import record_outcome
from api.routers import activity, health, metrics, photos, suspicious
from api.schemas.responses import ErrorDetail, ErrorResponse, PipelineErrorResponse
from config.settings import Settings, settings as default_settings
from core.activity.store import ActivityLogStore
from core.errors import NotFoundError, ReidError, ValidationError
from core.gallery.store import GalleryStore
from core.pipeline.reid_pipeline import ReidPipeline
from core.pipeline.service import ReidentificationService
from core.registry import ModelRegistry
from core.tasks.task_queue import BackgroundTaskQueue
from utils.error_log import ErrorLog
from utils.logger import get_logger, setup_from_settings

# Configure logger from settings before any other logging
setup_from_settings()

logger = get_logger(__name__)


# ============================================================
# Lifespan — model loading / teardown
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    On startup:
      - Load both models through the ModelRegistry; any failure aborts
        startup with InitializationError
      - Load the gallery and activity-log snapshots
      - Start the single-worker inference queue
      - Attach everything to app.state for the route handlers

    On shutdown:
      - Stop the queue, release the models, close the error log
    """
    cfg: Settings = app.state.config

    logger.info("=" * 60)
    logger.info(f"{cfg.app_name} — starting up | env={cfg.environment} v={cfg.app_version}")
    logger.info("=" * 60)

    # ── Models (fatal) ───────────────────────────────────────────────
    registry: ModelRegistry = getattr(app.state, "registry", None) or ModelRegistry.from_settings(cfg)
    registry.load()
    app.state.registry = registry

    # ── Stores ───────────────────────────────────────────────────────
    gallery = GalleryStore(cfg.storage.gallery_path)
    gallery.load()
    app.state.gallery = gallery

    activity_store = ActivityLogStore(cfg.storage.activity_log_path)
    activity_store.load()
    app.state.activity_store = activity_store

    app.state.upload_dir = cfg.storage.upload_dir

    # ── Queue + service ──────────────────────────────────────────────
    error_log = ErrorLog(cfg.logging.error_log_path)
    app.state.error_log = error_log

    task_queue = BackgroundTaskQueue(
        task_timeout=cfg.queue.task_timeout_seconds,
        error_log=error_log,
    )
    await task_queue.start()
    app.state.task_queue = task_queue

    pipeline = ReidPipeline(registry, gallery, threshold=cfg.matcher.similarity_threshold)
    app.state.service = ReidentificationService(
        pipeline,
        task_queue,
        error_log=error_log,
        on_outcome=record_outcome,
    )

    logger.info(
        f"Startup complete | gallery={gallery.count} records | "
        f"threshold={cfg.matcher.similarity_threshold}"
    )
    logger.info("=" * 60)

    yield

    # ── Shutdown ─────────────────────────────────────────────────────
    logger.info("Shutting down — draining inference queue...")
    await task_queue.stop()
    registry.release()
    error_log.close()
    logger.info("Shutdown complete.")


# ============================================================
# App factory
# ============================================================

def create_app(
    config: Optional[Settings] = None,
    registry: Optional[ModelRegistry] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Separated into a factory so tests can build isolated apps, either
    with mocks attached to ``app.state`` (no lifespan) or with a
    pre-built *registry* of fake models.

    Args:
        config:   Settings to use; defaults to the process-wide settings.
        registry: Model registry to use instead of the YOLO + ArcFace
                  backends built from *config*. Loaded during lifespan.
    """
    cfg = config or default_settings
    api_prefix = cfg.api.api_prefix

    app = FastAPI(
        title=cfg.app_name,
        version=cfg.app_version,
        description=(
            "# Suspect Re-identification API\n\n"
            "- **/authenticate** — re-identify a photo and wait for the outcome\n"
            "- **/upload** — store a photo and re-identify it in the background\n"
            "- **/suspicious**, **/photos** — browse the gallery\n"
            "- **/logs/activity** — capture client activity reports\n"
        ),
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        debug=cfg.environment == "development",
    )
    app.state.config = cfg
    if registry is not None:
        app.state.registry = registry

    from api.middleware.cors import configure_middleware  # noqa: PLC0415
    configure_middleware(app)

    # ── Routers ──────────────────────────────────────────────────────
    app.include_router(health.router,     prefix=api_prefix)
    app.include_router(suspicious.router, prefix=api_prefix)
    app.include_router(photos.router,     prefix=api_prefix)
    app.include_router(activity.router,   prefix=api_prefix)
    app.include_router(metrics.router,    prefix=api_prefix)

    # ── Static files (stored uploads) ───────────────────────────────
    upload_dir = cfg.storage.upload_dir
    upload_dir.mkdir(parents=True, exist_ok=True)
    app.mount("/uploads", StaticFiles(directory=str(upload_dir)), name="uploads")

    _register_exception_handlers(app)

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        return JSONResponse(
            content={
                "message": cfg.app_name,
                "docs": "/docs",
                "health": f"{api_prefix}/health",
            }
        )

    logger.info(f"FastAPI app created | version={cfg.app_version} prefix={api_prefix}")
    return app


# ============================================================
# Exception handlers
# ============================================================

def _register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers on *app*."""

    @app.exception_handler(ReidError)
    async def reid_exception_handler(request: Request, exc: ReidError) -> JSONResponse:
        """Client-safe body for domain errors; the cause only reaches the log."""
        status_code = _reid_status(exc)
        request_id = getattr(request.state, "request_id", None)
        if status_code >= 500:
            logger.error(f"[{request_id}] {request.url.path} failed: {exc!r} (cause: {exc.__cause__!r})")
        return JSONResponse(
            status_code=status_code,
            content=PipelineErrorResponse(
                message=exc.public_message,
                error=_status_to_error_code(status_code),
                correlation_id=request_id,
            ).model_dump(),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """Return a structured 422 for Pydantic / FastAPI validation errors."""
        details = []
        for error in exc.errors():
            loc = " → ".join(str(part) for part in error.get("loc", []))
            details.append(
                ErrorDetail(
                    field=loc or None,
                    message=error.get("msg", "Validation error"),
                    code=error.get("type", "validation_error"),
                )
            )

        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=ErrorResponse(
                error="validation_error",
                message="One or more request fields failed validation.",
                details=details,
                request_id=getattr(request.state, "request_id", None),
            ).model_dump(),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request,
        exc: StarletteHTTPException,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(
                error=_status_to_error_code(exc.status_code),
                message=str(exc.detail),
                details=[],
                request_id=getattr(request.state, "request_id", None),
            ).model_dump(),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Catch-all handler — prevents stack traces leaking to clients."""
        logger.exception(f"Unhandled exception on {request.url}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(
                error="internal_server_error",
                message="An unexpected error occurred. Please try again later.",
                details=[],
                request_id=getattr(request.state, "request_id", None),
            ).model_dump(),
        )


def _reid_status(exc: ReidError) -> int:
    if isinstance(exc, ValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def _status_to_error_code(status_code: int) -> str:
    """Map an HTTP status code to a short machine-readable error string."""
    mapping = {
        400: "bad_request",
        404: "not_found",
        405: "method_not_allowed",
        413: "payload_too_large",
        415: "unsupported_media_type",
        422: "unprocessable_entity",
        500: "internal_server_error",
        503: "service_unavailable",
        504: "gateway_timeout",
    }
    return mapping.get(status_code, f"http_{status_code}")


# ============================================================
# App instance (module-level for Uvicorn)
# ============================================================

app = create_app()
