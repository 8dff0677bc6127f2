# Exception taxonomy for the re-identification pipeline.
#
# Every error carries a ``public_message`` that is safe to show to an
# API client. The underlying library error (if any) is chained via
# ``raise ... from exc`` and only ever reaches the logs.

from __future__ import annotations

from typing import Optional


class ReidError(Exception):
    """Base class for all re-identification errors."""

    public_message: str = "Processing failed."

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.public_message
        super().__init__(self.message)


class ValidationError(ReidError):
    """The request is missing a photo or carries an unusable one."""

    public_message = "No image uploaded."


class NotFoundError(ReidError):
    """A record id does not exist in the gallery."""

    public_message = "Record not found."


class DecodeError(ReidError):
    """Uploaded bytes could not be decoded into an image."""

    public_message = "Failed to decode the uploaded image. Please ensure it's a valid format."


class NoFaceDetected(ReidError):
    """The face locator returned no candidate faces."""

    public_message = "No face detected in the image."


class CropError(ReidError):
    """The clamped face rectangle is degenerate."""

    public_message = "Failed to crop the face from the image."


class EmbeddingError(ReidError):
    """The embedding capability failed to produce a signature."""

    public_message = "Failed to run the embedding model."


class LocatorError(ReidError):
    """The face locator capability raised during inference."""

    public_message = "Failed to run the face detection model."


class PersistenceError(ReidError):
    """A gallery write could not be made durable."""

    public_message = "Failed to save the record."


class InitializationError(ReidError):
    """Model handles could not be loaded at process start. Fatal."""

    public_message = "Application cannot start due to model loading failure."


class PipelineCancelled(ReidError):
    """A pipeline run observed a cancelled token between stages."""

    public_message = "Processing was cancelled."


class TaskTimeoutError(ReidError):
    """A queued task exceeded its deadline."""

    public_message = "Processing timed out."
