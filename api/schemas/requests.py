# ============================================================
# Suspect Re-identification
# api/schemas/requests.py
# ============================================================
# Pydantic v2 request models for JSON endpoints.
#
# Photo endpoints take multipart form data and have no body
# schema; see api/uploads.py.
#
# Schemas:
#   ActivityLogRequest — POST /api/logs/activity
# ============================================================

from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from core.activity.store import ActivityAction, ActivityLog


class BaseAPIRequest(BaseModel):
    """Common config shared across all request bodies."""

    model_config = {"str_strip_whitespace": True, "extra": "ignore"}


class ActionResult(str, Enum):
    allowed = "allowed"
    blocked = "blocked"
    failed = "failed"


class ActivityActionRequest(BaseAPIRequest):
    """One action performed during a monitored session."""

    name: str = Field(..., min_length=1, description="Action name, e.g. 'open_file'.")
    resource: str = Field(..., min_length=1, description="Resource the action touched.")
    duration_seconds: float = Field(..., ge=0.0, description="How long the action took.")
    result: ActionResult = Field(..., description="'allowed' | 'blocked' | 'failed'.")


class ActivityLogRequest(BaseAPIRequest):
    """
    POST /api/logs/activity

    A client-side report of suspicious activity for one user/device.
    The server stamps the timestamp.
    """

    user_id: str = Field(..., min_length=1)
    device_id: str = Field(..., min_length=1)
    location: Optional[str] = None
    session_name: Optional[str] = None
    actions: List[ActivityActionRequest] = Field(..., description="Actions in the session.")

    def to_entry(self) -> ActivityLog:
        return ActivityLog(
            user_id=self.user_id,
            device_id=self.device_id,
            location=self.location,
            session_name=self.session_name,
            actions=[
                ActivityAction(
                    name=a.name,
                    resource=a.resource,
                    duration_seconds=a.duration_seconds,
                    result=a.result.value,
                )
                for a in self.actions
            ],
        )

    model_config = {
        "str_strip_whitespace": True,
        "extra": "ignore",
        "json_schema_extra": {
            "example": {
                "user_id": "u-1042",
                "device_id": "laptop-17",
                "location": "Lab 3",
                "session_name": "exam-2025-01",
                "actions": [
                    {
                        "name": "open_file",
                        "resource": "/etc/shadow",
                        "duration_seconds": 0.4,
                        "result": "blocked",
                    }
                ],
            }
        },
    }


__all__ = [
    "ActionResult",
    "ActivityActionRequest",
    "ActivityLogRequest",
    "BaseAPIRequest",
]
