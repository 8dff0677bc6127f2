"""Prometheus metrics for the re-identification API."""

from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "Request latency in seconds",
    ["method", "endpoint"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)
ACTIVE_REQUESTS = Gauge(
    "http_requests_in_progress",
    "Number of requests currently being processed",
)
PIPELINE_OUTCOMES = Counter(
    "reid_pipeline_runs_total",
    "Finished re-identification runs",
    ["outcome"],  # matched | created | failed
)
QUEUE_DEPTH = Gauge(
    "reid_task_queue_depth",
    "Tasks waiting on the inference queue",
)
GALLERY_SIZE = Gauge(
    "reid_gallery_records",
    "Records currently in the gallery",
)


def record_outcome(outcome: str) -> None:
    """Hook passed to the service; called on the worker thread."""
    PIPELINE_OUTCOMES.labels(outcome=outcome).inc()


__all__ = [
    "ACTIVE_REQUESTS",
    "CONTENT_TYPE_LATEST",
    "GALLERY_SIZE",
    "PIPELINE_OUTCOMES",
    "QUEUE_DEPTH",
    "REQUEST_COUNT",
    "REQUEST_LATENCY",
    "generate_latest",
    "record_outcome",
]
