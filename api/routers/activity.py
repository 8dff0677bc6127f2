from __future__ import annotations

from typing import List

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.concurrency import run_in_threadpool

from api.schemas.requests import ActivityLogRequest
from api.schemas.responses import (
    ActivityCapturedResponse,
    ActivityLogResponse,
    MessageResponse,
)
from utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/logs", tags=["Activity logs"])


@router.post(
    "/activity",
    response_model=ActivityCapturedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Capture a suspicious activity log",
    responses={400: {"model": MessageResponse, "description": "Invalid log data provided."}},
)
async def capture_log(request: Request):
    # Parsed by hand so a bad payload is a 400, like the photo endpoints
    try:
        payload = ActivityLogRequest.model_validate(await request.json())
    except (ValueError, PydanticValidationError) as exc:
        logger.debug(f"Rejected activity log: {exc}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": "Invalid log data provided."},
        )

    # append() writes the snapshot to disk
    entry = await run_in_threadpool(request.app.state.activity_store.append, payload.to_entry())
    return ActivityCapturedResponse(
        message="Log captured successfully.",
        log=ActivityLogResponse.model_validate(entry.to_dict()),
    )


@router.get(
    "/activity",
    response_model=List[ActivityLogResponse],
    summary="List captured activity logs, newest first",
)
async def list_logs(request: Request) -> List[ActivityLogResponse]:
    entries = request.app.state.activity_store.list_recent()
    return [ActivityLogResponse.model_validate(e.to_dict()) for e in entries]
