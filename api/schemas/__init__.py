# ============================================================
# api/schemas/__init__.py
# API Schema Package — re-exports all request/response models
# ============================================================

from api.schemas.requests import (
    ActionResult,
    ActivityActionRequest,
    ActivityLogRequest,
    BaseAPIRequest,
)
from api.schemas.responses import (
    ActivityActionResponse,
    ActivityCapturedResponse,
    ActivityLogResponse,
    AuthenticateResponse,
    ComponentHealth,
    ComponentStatus,
    ErrorDetail,
    ErrorResponse,
    HealthResponse,
    MessageResponse,
    PipelineErrorResponse,
    SuspiciousRecordResponse,
    UploadAcceptedResponse,
)

__all__ = [
    # Requests
    "ActionResult",
    "ActivityActionRequest",
    "ActivityLogRequest",
    "BaseAPIRequest",
    # Responses
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
