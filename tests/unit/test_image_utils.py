# Unit tests for:
#   - PixelBuffer          (scoping, release, context manager)
#   - decode_image()       (formats, channel normalisation, bad input)
#   - compute_crop_rect()  (clamping, rounding, degenerate boxes)
#   - crop_and_resize()

from __future__ import annotations

import io

import cv2
import numpy as np
import pytest
from PIL import Image

from core.detector.base_detector import DetectedFace
from core.errors import CropError, DecodeError
from utils.image_utils import (
    CropRect,
    PixelBuffer,
    compute_crop_rect,
    crop_and_resize,
    decode_image,
    normalise_channels,
)


def _make_bgr_image(h: int = 120, w: int = 160, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, (h, w, 3), dtype=np.uint8)


def _encode(image: np.ndarray, ext: str = ".png") -> bytes:
    ok, buf = cv2.imencode(ext, image)
    assert ok
    return buf.tobytes()


def _face(x1, y1, x2, y2) -> DetectedFace:
    return DetectedFace(x1=x1, y1=y1, x2=x2, y2=y2, confidence=0.9)


# ============================================================
# PixelBuffer
# ============================================================

class TestPixelBuffer:

    def test_dimensions(self):
        buf = PixelBuffer(_make_bgr_image(50, 70))
        assert buf.width == 70
        assert buf.height == 50
        assert not buf.released

    def test_rejects_non_bgr_shape(self):
        with pytest.raises(ValueError):
            PixelBuffer(np.zeros((10, 10), dtype=np.uint8))

    def test_release_drops_pixels(self):
        buf = PixelBuffer(_make_bgr_image())
        buf.release()
        assert buf.released
        with pytest.raises(RuntimeError):
            _ = buf.pixels

    def test_release_is_idempotent(self):
        buf = PixelBuffer(_make_bgr_image())
        buf.release()
        buf.release()
        assert buf.released

    def test_context_manager_releases(self):
        with PixelBuffer(_make_bgr_image()) as buf:
            assert buf.pixels.shape == (120, 160, 3)
        assert buf.released

    def test_context_manager_releases_on_error(self):
        buf = PixelBuffer(_make_bgr_image())
        with pytest.raises(KeyError):
            with buf:
                raise KeyError("boom")
        assert buf.released

    def test_dimensions_survive_release(self):
        buf = PixelBuffer(_make_bgr_image(30, 40))
        buf.release()
        assert (buf.width, buf.height) == (40, 30)
        assert "released" in repr(buf)


# ============================================================
# decode_image()
# ============================================================

class TestDecodeImage:

    def test_decodes_jpeg(self):
        with decode_image(_encode(_make_bgr_image(), ".jpg")) as buf:
            assert (buf.width, buf.height) == (160, 120)
            assert buf.pixels.dtype == np.uint8

    def test_png_roundtrip_is_lossless(self):
        img = _make_bgr_image()
        with decode_image(_encode(img, ".png")) as buf:
            np.testing.assert_array_equal(buf.pixels, img)

    def test_grayscale_expanded_to_three_channels(self):
        gray = np.full((40, 60), 128, dtype=np.uint8)
        with decode_image(_encode(gray)) as buf:
            assert buf.pixels.shape == (40, 60, 3)

    def test_alpha_channel_dropped(self):
        bgra = np.zeros((40, 60, 4), dtype=np.uint8)
        bgra[..., 3] = 255
        with decode_image(_encode(bgra)) as buf:
            assert buf.pixels.shape == (40, 60, 3)

    def test_sixteen_bit_converted_to_uint8(self):
        deep = np.full((20, 30, 3), 40000, dtype=np.uint16)
        with decode_image(_encode(deep)) as buf:
            assert buf.pixels.dtype == np.uint8

    def test_pillow_only_format(self):
        pil = Image.new("RGB", (32, 24), color=(255, 0, 0))
        out = io.BytesIO()
        pil.save(out, format="PCX")
        with decode_image(out.getvalue()) as buf:
            assert (buf.width, buf.height) == (32, 24)

    def test_oversized_pillow_image_raises_decode_error(self, monkeypatch):
        pil = Image.new("RGB", (32, 24), color=(255, 0, 0))
        out = io.BytesIO()
        pil.save(out, format="PCX")
        # More than twice the limit makes Pillow refuse to open it
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)
        with pytest.raises(DecodeError):
            decode_image(out.getvalue())

    def test_empty_bytes_raise(self):
        with pytest.raises(DecodeError):
            decode_image(b"")

    def test_garbage_bytes_raise(self):
        with pytest.raises(DecodeError):
            decode_image(b"definitely not an image" * 10)


class TestNormaliseChannels:

    def test_single_channel_3d(self):
        out = normalise_channels(np.zeros((5, 5, 1), dtype=np.uint8))
        assert out.shape == (5, 5, 3)

    def test_unsupported_shape(self):
        with pytest.raises(ValueError):
            normalise_channels(np.zeros((5, 5, 2), dtype=np.uint8))


# ============================================================
# compute_crop_rect()
# ============================================================

class TestComputeCropRect:

    def test_inside_image_unchanged(self):
        rect = compute_crop_rect(_face(10, 20, 50, 80), 100, 100)
        assert rect == CropRect(left=10, top=20, width=40, height=60)
        assert (rect.right, rect.bottom) == (50, 80)

    def test_negative_origin_clamped_to_zero(self):
        rect = compute_crop_rect(_face(-10, -5, 50, 40), 100, 100)
        assert (rect.left, rect.top) == (0, 0)
        # Extent comes from the box size, not the clamped origin
        assert (rect.width, rect.height) == (60, 45)

    def test_extent_clamped_to_image_edge(self):
        rect = compute_crop_rect(_face(80, 70, 130, 150), 100, 100)
        assert rect == CropRect(left=80, top=70, width=20, height=30)
        assert rect.right <= 100 and rect.bottom <= 100

    def test_rounds_half_up(self):
        rect = compute_crop_rect(_face(10.5, 20.25, 31.0, 40.75), 100, 100)
        assert rect.left == 11
        assert rect.top == 20
        assert rect.width == 21   # round(20.5)
        assert rect.height == 21  # round(20.5)

    def test_box_outside_image_is_degenerate(self):
        with pytest.raises(CropError):
            compute_crop_rect(_face(100, 10, 150, 60), 100, 100)

    def test_inverted_box_is_degenerate(self):
        with pytest.raises(CropError):
            compute_crop_rect(_face(50, 50, 40, 60), 100, 100)

    def test_zero_height_is_degenerate(self):
        with pytest.raises(CropError):
            compute_crop_rect(_face(10, 30, 40, 30.2), 100, 100)


# ============================================================
# crop_and_resize()
# ============================================================

class TestCropAndResize:

    def test_output_size(self):
        with PixelBuffer(_make_bgr_image(200, 300)) as image:
            with crop_and_resize(image, _face(20, 30, 120, 190), (112, 112)) as crop:
                assert crop.pixels.shape == (112, 112, 3)

    def test_source_buffer_untouched(self):
        img = _make_bgr_image(200, 300)
        original = img.copy()
        with PixelBuffer(img) as image:
            crop = crop_and_resize(image, _face(0, 0, 100, 100), (64, 64))
            crop.release()
            np.testing.assert_array_equal(image.pixels, original)

    def test_uniform_region_stays_uniform(self):
        img = np.zeros((100, 100, 3), dtype=np.uint8)
        img[10:60, 10:60] = (0, 0, 255)
        with PixelBuffer(img) as image:
            with crop_and_resize(image, _face(10, 10, 60, 60), (112, 112)) as crop:
                assert np.all(crop.pixels[..., 2] == 255)
                assert np.all(crop.pixels[..., :2] == 0)

    def test_degenerate_face_raises(self):
        with PixelBuffer(_make_bgr_image(50, 50)) as image:
            with pytest.raises(CropError):
                crop_and_resize(image, _face(60, 60, 90, 90), (112, 112))
