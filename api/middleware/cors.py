# CORS configuration + request-ID and metrics middleware.
#
# Provides:
#   - configure_cors(app)   — attach CORSMiddleware with app.state.config
#   - RequestIDMiddleware   — stamps every request/response with an
#                             X-Request-ID, reused as the correlation id
#                             in pipeline error responses
#   - MetricsMiddleware     — Prometheus request counters and latency

from __future__ import annotations

import time
import uuid
from typing import Callable

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from api.metrics import ACTIVE_REQUESTS, REQUEST_COUNT, REQUEST_LATENCY
from utils.logger import get_logger

logger = get_logger(__name__)


def configure_cors(app: FastAPI) -> None:
    origins = app.state.config.api.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        # Browsers reject credentials with a wildcard origin
        allow_credentials="*" not in origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID", "Accept", "Origin"],
        expose_headers=["X-Request-ID", "X-Processing-Ms"],
        max_age=600,
    )
    logger.info(f"CORS configured | allowed origins: {origins}")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Stamps every HTTP request and response with a unique id and records
    processing time.

    - Honours a client-supplied ``X-Request-ID``; otherwise generates a
      ``uuid4`` hex string.
    - Stores it in ``request.state.request_id`` for handlers and logs.
    - Echoes it in the ``X-Request-ID`` response header, with the
      wall-clock time in ``X-Processing-Ms``.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        request.state.request_id = request_id

        t_start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - t_start) * 1000.0

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Processing-Ms"] = f"{elapsed_ms:.1f}"
        return response


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record per-request Prometheus counters and latency histogram."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        ACTIVE_REQUESTS.inc()
        t_start = time.perf_counter()
        response = None
        try:
            response = await call_next(request)
            return response
        finally:
            elapsed = time.perf_counter() - t_start
            route = request.scope.get("route")
            endpoint = getattr(route, "path", request.url.path) if route else request.url.path
            method = request.method
            sc = str(response.status_code) if response else "500"
            REQUEST_LATENCY.labels(method=method, endpoint=endpoint).observe(elapsed)
            REQUEST_COUNT.labels(method=method, endpoint=endpoint, status=sc).inc()
            ACTIVE_REQUESTS.dec()


def configure_middleware(app: FastAPI) -> None:
    """Attach all middleware to *app* in the correct order.

    Starlette applies middleware in **reverse** registration order, so
    the **last** registered middleware is the outermost (runs first on
    request). We register from innermost to outermost.
    """
    # 1. CORS (innermost)
    configure_cors(app)

    # 2. Prometheus metrics
    app.add_middleware(MetricsMiddleware)

    # 3. Request ID (outermost — always runs first)
    app.add_middleware(RequestIDMiddleware)

    logger.info("Middleware configured | RequestID=on | Metrics=on | CORS=on")
