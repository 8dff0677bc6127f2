from __future__ import annotations

import io
import math
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np
from loguru import logger
from PIL import Image, UnidentifiedImageError

from core.errors import CropError, DecodeError

# ── Type aliases ────────────────────────────────────────────
# All internal frames are np.ndarray in BGR uint8 (OpenCV convention)
Frame = np.ndarray  # shape (H, W, 3)  dtype=uint8
Size = Tuple[int, int]  # (width, height)


# ============================================================
# Scoped pixel buffer
# ============================================================


class PixelBuffer:
    """
    Decoded image pixels owned by exactly one pipeline stage.

    Use as a context manager so the pixel array is dropped on every exit
    path::

        with decode_image(raw) as image:
            faces = locator.locate_faces(image)

    ``release()`` is idempotent; touching ``pixels`` after release raises.
    """

    __slots__ = ("_pixels", "_width", "_height")

    def __init__(self, pixels: Frame) -> None:
        if pixels.ndim != 3 or pixels.shape[2] != 3:
            raise ValueError(f"PixelBuffer expects an (H, W, 3) array, got {pixels.shape}")
        self._pixels: Optional[Frame] = pixels
        self._height, self._width = pixels.shape[:2]

    @property
    def pixels(self) -> Frame:
        if self._pixels is None:
            raise RuntimeError("PixelBuffer has already been released.")
        return self._pixels

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def released(self) -> bool:
        return self._pixels is None

    def release(self) -> None:
        self._pixels = None

    def __enter__(self) -> "PixelBuffer":
        return self

    def __exit__(self, *_) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "released" if self.released else "live"
        return f"PixelBuffer({self._width}x{self._height}, {state})"


# ============================================================
# Decoding
# ============================================================


def normalise_channels(image: np.ndarray) -> Frame:
    """
    Ensure the image has exactly 3 channels (BGR).
    Converts BGRA → BGR, GRAY → BGR as needed.
    """
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    if image.ndim == 3:
        c = image.shape[2]
        if c == 4:
            return cv2.cvtColor(image, cv2.COLOR_BGRA2BGR)
        if c == 3:
            return image
        if c == 1:
            return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    raise ValueError(f"Unsupported image shape: {image.shape}")


def _decode_with_pillow(raw: bytes) -> Optional[Frame]:
    """Second chance for formats OpenCV cannot read (PCX, TGA, some TIFF variants)."""
    try:
        with Image.open(io.BytesIO(raw)) as pil_image:
            rgb = np.array(pil_image.convert("RGB"))
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError):
        return None
    return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)


def decode_image(raw: bytes) -> PixelBuffer:
    """
    Decode an encoded image (JPEG, PNG, WebP, …) into a 3-channel buffer.

    Alpha is discarded and grayscale is expanded, so callers always
    receive BGR ``uint8`` pixels.

    Args:
        raw: Encoded image bytes as uploaded.

    Returns:
        A live :class:`PixelBuffer`; the caller owns its release.

    Raises:
        DecodeError: If *raw* is empty or not a decodable image.
    """
    if not raw:
        raise DecodeError("Empty image payload.")

    arr = np.frombuffer(raw, dtype=np.uint8)
    img = cv2.imdecode(arr, cv2.IMREAD_UNCHANGED)
    if img is None:
        img = _decode_with_pillow(raw)
    if img is None:
        raise DecodeError(f"Could not decode {len(raw)} bytes as an image.")

    if img.dtype != np.uint8:
        # 16-bit PNG / TIFF → 8-bit
        img = cv2.convertScaleAbs(img, alpha=255.0 / max(float(img.max()), 1.0))

    try:
        img = normalise_channels(img)
    except ValueError as exc:
        raise DecodeError(str(exc)) from exc

    buffer = PixelBuffer(np.ascontiguousarray(img))
    logger.debug(f"Decoded image: {buffer.width}x{buffer.height}")
    return buffer


# ============================================================
# Face crop normalisation
# ============================================================


@dataclass(frozen=True)
class CropRect:
    """Integer crop rectangle in source pixel space."""

    left: int
    top: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.left + self.width

    @property
    def bottom(self) -> int:
        return self.top + self.height


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_crop_rect(face, image_width: int, image_height: int) -> CropRect:
    """
    Clamp a detected face box to the image and convert it to integers.

    The origin is clamped at zero and the extent at the image edge; the
    rectangle is never expanded or re-centred.

    Args:
        face:         Anything with ``x1, y1, x2, y2`` floats (a DetectedFace).
        image_width:  Source image width in pixels.
        image_height: Source image height in pixels.

    Returns:
        The clamped :class:`CropRect`.

    Raises:
        CropError: If the clamped width or height is zero or negative.
    """
    left = max(0, _round_half_up(face.x1))
    top = max(0, _round_half_up(face.y1))
    width = min(image_width - left, _round_half_up(face.x2 - face.x1))
    height = min(image_height - top, _round_half_up(face.y2 - face.y1))

    if width <= 0 or height <= 0:
        raise CropError(
            f"Degenerate crop {width}x{height} at ({left}, {top}) "
            f"for a {image_width}x{image_height} image."
        )
    return CropRect(left=left, top=top, width=width, height=height)


def crop_and_resize(
    image: PixelBuffer,
    face,
    size: Size,
    interpolation: int = cv2.INTER_LINEAR,
) -> PixelBuffer:
    """
    Crop *face* out of *image* and stretch it to exactly *size*.

    Aspect ratio is not preserved; the embedder expects a fixed square.

    Returns:
        A new :class:`PixelBuffer` owned by the caller.

    Raises:
        CropError: If the clamped rectangle is degenerate.
    """
    rect = compute_crop_rect(face, image.width, image.height)
    region = image.pixels[rect.top : rect.bottom, rect.left : rect.right]
    resized = cv2.resize(region, size, interpolation=interpolation)
    return PixelBuffer(np.ascontiguousarray(resized))
