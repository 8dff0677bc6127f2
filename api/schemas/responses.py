# Pydantic v2 response models for all FastAPI endpoints.
#
# These models define the exact JSON structure returned by:
#   GET  /api/health
#   POST /api/authenticate
#   GET  /api/suspicious
#   POST /api/upload
#   GET  /api/photos[/{record_id}]
#   POST /api/logs/activity

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from core.gallery.models import SuspiciousRecord


class ComponentStatus(str, Enum):
    """Status of an individual system component."""

    OK = "ok"
    DEGRADED = "degraded"
    DOWN = "down"
    UNKNOWN = "unknown"


class ComponentHealth(BaseModel):
    """Health status for a single service component."""

    status: ComponentStatus = Field(..., description="Component health status.")
    loaded: bool = Field(..., description="Whether the model/component is ready.")
    detail: Optional[str] = Field(None, description="Extra info or error message.")


class HealthResponse(BaseModel):
    """
    Response for GET /api/health.

    Overall status plus per-component checks for the face locator, the
    embedder, the gallery and the task queue.
    """

    status: ComponentStatus = Field(
        ..., description="Overall API health: 'ok' | 'degraded' | 'down'."
    )
    version: str = Field(..., description="Application version string.")
    environment: str = Field(..., description="Deployment environment.")
    uptime_seconds: float = Field(..., description="Seconds since the API process started.")
    components: Dict[str, ComponentHealth] = Field(
        default_factory=dict,
        description="Per-component health map keyed by component name.",
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "status": "ok",
                "version": "1.0.0",
                "environment": "development",
                "uptime_seconds": 42.3,
                "components": {
                    "face_locator": {"status": "ok", "loaded": True, "detail": "yolov8n-face.pt"},
                    "embedder": {"status": "ok", "loaded": True, "detail": "w600k_r50.onnx"},
                    "gallery": {"status": "ok", "loaded": True, "detail": "12 records"},
                    "task_queue": {"status": "ok", "loaded": True, "detail": "depth=0"},
                },
            }
        }
    }


class SuspiciousRecordResponse(BaseModel):
    """One gallery record."""

    id: str = Field(..., description="Opaque record id.")
    filename: str = Field(..., description="Stored upload that created the record.")
    storage_path: str = Field(..., description="Public path of the stored upload.")
    signature: List[float] = Field(..., description="Face signature vector.")
    sighting_count: int = Field(..., ge=1, description="Number of matched uploads.")
    is_legitimate: bool = Field(False, description="Operator flag.")
    first_seen_at: datetime = Field(..., description="First sighting (UTC).")
    last_seen_at: datetime = Field(..., description="Most recent sighting (UTC).")

    @classmethod
    def from_record(cls, record: SuspiciousRecord) -> "SuspiciousRecordResponse":
        return cls(
            id=record.record_id,
            filename=record.filename,
            storage_path=record.storage_path,
            signature=record.signature.tolist(),
            sighting_count=record.sighting_count,
            is_legitimate=record.is_legitimate,
            first_seen_at=record.first_seen_at,
            last_seen_at=record.last_seen_at,
        )


class AuthenticateResponse(BaseModel):
    """
    Response for POST /api/authenticate.

    200 with ``similarity`` for a repeat sighting, 201 without it for a
    newly created record.
    """

    message: str
    user: SuspiciousRecordResponse
    similarity: Optional[float] = Field(
        None, description="Cosine similarity to the matched record."
    )


class UploadAcceptedResponse(BaseModel):
    """Response for POST /api/upload (202)."""

    message: str
    filename: str = Field(..., description="Stored file name; processing continues in the background.")


class MessageResponse(BaseModel):
    message: str


class PipelineErrorResponse(BaseModel):
    """
    Error envelope for re-identification failures.

    ``error`` is always a client-safe summary; the underlying cause is
    only logged, under the same ``correlation_id``.
    """

    message: str = Field(..., description="What the request was trying to do.")
    error: str = Field(..., description="Client-safe failure reason.")
    correlation_id: Optional[str] = Field(None, description="X-Request-ID of the failed request.")

    model_config = {
        "json_schema_extra": {
            "example": {
                "message": "Authentication failed.",
                "error": "No face detected in the image.",
                "correlation_id": "5f0c6c2b0b8e4f6f9a3d1f7e2c4b9a10",
            }
        }
    }


class ActivityActionResponse(BaseModel):
    name: str
    resource: str
    duration_seconds: float
    result: str


class ActivityLogResponse(BaseModel):
    id: str
    timestamp: datetime
    user_id: str
    device_id: str
    location: Optional[str] = None
    session_name: Optional[str] = None
    actions: List[ActivityActionResponse] = Field(default_factory=list)


class ActivityCapturedResponse(BaseModel):
    message: str
    log: ActivityLogResponse


class ErrorDetail(BaseModel):
    """A single structured error detail."""

    field: Optional[str] = Field(None, description="Field name the error relates to (if any).")
    message: str = Field(..., description="Human-readable error description.")
    code: Optional[str] = Field(None, description="Machine-readable error code.")


class ErrorResponse(BaseModel):
    """
    Standardised error envelope for HTTP and request-validation errors.
    """

    error: str = Field(..., description="Short error category (e.g. 'validation_error').")
    message: str = Field(..., description="Human-readable description of the error.")
    details: List[ErrorDetail] = Field(
        default_factory=list,
        description="Optional list of per-field or per-item error details.",
    )
    request_id: Optional[str] = Field(
        None, description="Unique request ID for tracing (from X-Request-ID header)."
    )


__all__ = [
    "ActivityActionResponse",
    "ActivityCapturedResponse",
    "ActivityLogResponse",
    "AuthenticateResponse",
    "ComponentHealth",
    "ComponentStatus",
    "ErrorDetail",
    "ErrorResponse",
    "HealthResponse",
    "MessageResponse",
    "PipelineErrorResponse",
    "SuspiciousRecordResponse",
    "UploadAcceptedResponse",
]
