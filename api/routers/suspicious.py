from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, File, Request, UploadFile, status
from fastapi.responses import JSONResponse

from api.schemas.responses import (
    AuthenticateResponse,
    MessageResponse,
    PipelineErrorResponse,
    SuspiciousRecordResponse,
)
from api.uploads import read_photo, store_upload
from core.errors import ReidError
from core.pipeline.service import ExecutionMode
from utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Suspicious"])

_UNEXPECTED_ERROR = "An unexpected error occurred. Please try again later."


@router.post(
    "/authenticate",
    response_model=AuthenticateResponse,
    summary="Re-identify a photo and wait for the result",
    responses={
        200: {"description": "Matched a known record; its sighting count was incremented."},
        201: {"description": "No match; a new suspicious record was created."},
        400: {"model": MessageResponse, "description": "No photo uploaded."},
        500: {"model": PipelineErrorResponse, "description": "Re-identification failed."},
    },
)
async def authenticate(
    request: Request,
    photo: Optional[UploadFile] = File(None, description="Photo to re-identify."),
) -> JSONResponse:
    """
    Run the pipeline synchronously.

    The run still goes through the shared task queue, so it waits behind
    any queued uploads.
    """
    data = await read_photo(photo, request.app.state.config.api)
    upload = await store_upload(
        data, photo.filename, request.app.state.upload_dir, photo.content_type
    )
    logger.info(f"Authenticating {upload.filename} ({upload.size} bytes)")

    service = request.app.state.service
    try:
        result = await service.process(upload, ExecutionMode.SYNCHRONOUS)
    except ReidError as exc:
        return _pipeline_error(request, exc.public_message)
    except Exception:  # noqa: BLE001  logged and recorded by the service
        return _pipeline_error(request, _UNEXPECTED_ERROR)

    user = SuspiciousRecordResponse.from_record(result.record)
    if result.created:
        body = AuthenticateResponse(message="New suspicious user added to database", user=user)
        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content=body.model_dump(mode="json", exclude_none=True),
        )

    body = AuthenticateResponse(
        message="Suspicious user detected again",
        user=user,
        similarity=result.similarity,
    )
    return JSONResponse(status_code=status.HTTP_200_OK, content=body.model_dump(mode="json"))


@router.get(
    "/suspicious",
    response_model=List[SuspiciousRecordResponse],
    summary="List suspicious records, most sighted first",
)
async def list_suspicious(request: Request) -> List[SuspiciousRecordResponse]:
    records = request.app.state.gallery.list_by_sightings()
    return [SuspiciousRecordResponse.from_record(r) for r in records]


def _pipeline_error(request: Request, error: str) -> JSONResponse:
    body = PipelineErrorResponse(
        message="Authentication failed.",
        error=error,
        correlation_id=getattr(request.state, "request_id", None),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=body.model_dump(),
    )
