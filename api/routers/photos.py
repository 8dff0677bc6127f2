from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, File, Request, UploadFile, status

from api.schemas.responses import (
    MessageResponse,
    SuspiciousRecordResponse,
    UploadAcceptedResponse,
)
from api.uploads import read_photo, store_upload
from core.pipeline.service import ExecutionMode
from utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["Photos"])


@router.post(
    "/upload",
    response_model=UploadAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Store a photo and re-identify it in the background",
    responses={400: {"model": MessageResponse, "description": "No photo uploaded."}},
)
async def upload_photo(
    request: Request,
    photo: Optional[UploadFile] = File(None, description="Photo to store and re-identify."),
) -> UploadAcceptedResponse:
    """
    Accept a photo and return immediately.

    The re-identification result is only visible through ``/suspicious``
    and ``/photos``; failures go to the error log.
    """
    data = await read_photo(photo, request.app.state.config.api)
    upload = await store_upload(
        data, photo.filename, request.app.state.upload_dir, photo.content_type
    )
    await request.app.state.service.process(upload, ExecutionMode.QUEUED)
    logger.info(f"Upload {upload.filename} queued (depth={request.app.state.task_queue.depth})")
    return UploadAcceptedResponse(
        message="Photo uploaded successfully; processing in background",
        filename=upload.filename,
    )


@router.get(
    "/photos",
    response_model=List[SuspiciousRecordResponse],
    summary="List gallery records, most recently seen first",
)
async def list_photos(request: Request) -> List[SuspiciousRecordResponse]:
    records = request.app.state.gallery.list_recent()
    return [SuspiciousRecordResponse.from_record(r) for r in records]


@router.get(
    "/photos/{record_id}",
    response_model=SuspiciousRecordResponse,
    summary="Get one gallery record",
    responses={404: {"model": MessageResponse, "description": "Unknown record id."}},
)
async def get_photo(record_id: str, request: Request) -> SuspiciousRecordResponse:
    # NotFoundError is mapped to 404 by the app-level handler
    record = request.app.state.gallery.get(record_id)
    return SuspiciousRecordResponse.from_record(record)
