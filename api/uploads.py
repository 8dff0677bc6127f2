"""Validation and storage of multipart photo uploads."""

from __future__ import annotations

import itertools
import time
from pathlib import Path
from typing import Optional

from fastapi import HTTPException, UploadFile, status
from starlette.concurrency import run_in_threadpool

from config.settings import APISettings
from core.errors import ValidationError
from core.pipeline.reid_pipeline import UploadedImage
from utils.logger import get_logger

logger = get_logger(__name__)


async def read_photo(photo: Optional[UploadFile], limits: APISettings) -> bytes:
    """
    Read and validate the ``photo`` form field against *limits*
    (the app's ``config.api``).

    Raises:
        ValidationError: No file, or an empty one.
        HTTPException:   413 if too large, 415 for a non-image type.
    """
    if photo is None or not photo.filename:
        raise ValidationError()

    max_bytes = limits.max_upload_bytes
    claimed_size = photo.size
    if claimed_size is not None and claimed_size > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large ({claimed_size} bytes). Maximum: {max_bytes // (1024 * 1024)} MB.",
        )

    content_type = (photo.content_type or "").lower()
    if content_type not in limits.allowed_image_types:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail=f"Unsupported file type {content_type or 'unknown'!r}.",
        )

    data = await photo.read()
    if not data:
        raise ValidationError("Uploaded photo is empty.")
    if len(data) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large ({len(data)} bytes). Maximum: {max_bytes // (1024 * 1024)} MB.",
        )
    return data


def _write_unique(upload_dir: Path, data: bytes, ext: str) -> str:
    """Write *data* as ``<epoch-ms><ext>``, suffixing ``-N`` on a collision."""
    upload_dir.mkdir(parents=True, exist_ok=True)
    stem = str(int(time.time() * 1000))
    for n in itertools.count():
        filename = f"{stem}{ext}" if n == 0 else f"{stem}-{n}{ext}"
        try:
            with open(upload_dir / filename, "xb") as f:
                f.write(data)
        except FileExistsError:
            continue
        return filename


async def store_upload(
    data: bytes,
    original_name: str,
    upload_dir: Path,
    content_type: Optional[str] = None,
) -> UploadedImage:
    """Persist the raw bytes under *upload_dir* and describe the stored file."""
    ext = Path(original_name).suffix.lower()
    filename = await run_in_threadpool(_write_unique, upload_dir, data, ext)
    logger.debug(f"Stored upload {original_name!r} as {filename} ({len(data)} bytes)")
    return UploadedImage(
        data=data,
        filename=filename,
        storage_path=f"/uploads/{filename}",
        content_type=content_type,
    )
