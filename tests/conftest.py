"""Shared pytest fixtures for all test modules."""

from __future__ import annotations

from typing import List, Optional

import cv2
import numpy as np
import pytest

from core.detector.base_detector import BaseFaceLocator, DetectedFace
from core.embedder.base_embedder import BaseEmbedder
from core.gallery.store import GalleryStore
from core.registry import ModelRegistry


# ============================================================
# Fake capabilities
# ============================================================

class FakeLocator(BaseFaceLocator):
    """Returns a fixed list of faces; records the buffers it saw."""

    def __init__(self, faces: Optional[List[DetectedFace]] = None, fail: bool = False) -> None:
        super().__init__(model_path="fake-locator.pt")
        self.faces = list(faces) if faces is not None else []
        self.fail = fail
        self.seen = []

    def load_model(self) -> None:
        self._is_loaded = True

    def locate_faces(self, image) -> List[DetectedFace]:
        self._require_loaded()
        self.seen.append(image)
        if self.fail:
            raise RuntimeError("locator exploded")
        return list(self.faces)


class FakeEmbedder(BaseEmbedder):
    """Returns ``vector`` for every crop; records the crops it saw."""

    def __init__(self, vector: Optional[np.ndarray] = None, input_size: int = 112) -> None:
        super().__init__(model_path="fake-arcface.onnx", input_size=input_size)
        self.vector = vector if vector is not None else unit_vec(seed=1)
        self.crops = []

    def load_model(self) -> None:
        self._is_loaded = True

    def embed(self, crop):
        self.crops.append(crop)
        return super().embed(crop)

    def _infer(self, pixels: np.ndarray) -> np.ndarray:
        return np.asarray(self.vector, dtype=np.float32)[np.newaxis, :]


class BrokenLocator(FakeLocator):
    def load_model(self) -> None:
        raise RuntimeError("weights missing")


# ============================================================
# Helpers
# ============================================================

def unit_vec(dim: int = 512, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    v = rng.standard_normal(dim).astype(np.float32)
    return v / np.linalg.norm(v)


def encode_jpeg(image: np.ndarray) -> bytes:
    ok, buf = cv2.imencode(".jpg", image)
    assert ok
    return buf.tobytes()


# ============================================================
# Fixtures
# ============================================================

@pytest.fixture
def random_image() -> np.ndarray:
    rng = np.random.default_rng(42)
    return rng.integers(0, 256, (480, 640, 3), dtype=np.uint8)


@pytest.fixture
def jpeg_bytes(random_image) -> bytes:
    return encode_jpeg(random_image)


@pytest.fixture
def sample_face() -> DetectedFace:
    return DetectedFace(x1=100.0, y1=80.0, x2=300.0, y2=320.0, confidence=0.92)


@pytest.fixture
def fake_locator(sample_face) -> FakeLocator:
    locator = FakeLocator(faces=[sample_face])
    locator.load_model()
    return locator


@pytest.fixture
def fake_embedder() -> FakeEmbedder:
    embedder = FakeEmbedder()
    embedder.load_model()
    return embedder


@pytest.fixture
def registry(fake_locator, fake_embedder) -> ModelRegistry:
    return ModelRegistry(locator=fake_locator, embedder=fake_embedder)


@pytest.fixture
def gallery() -> GalleryStore:
    return GalleryStore()


@pytest.fixture
def unloaded_registry(sample_face) -> ModelRegistry:
    return ModelRegistry(locator=FakeLocator(faces=[sample_face]), embedder=FakeEmbedder())


@pytest.fixture
def broken_registry() -> ModelRegistry:
    return ModelRegistry(locator=BrokenLocator(), embedder=FakeEmbedder())


@pytest.fixture
def make_embedder():
    """Factory for loaded embedders that always return *vector*."""

    def _make(vector: Optional[np.ndarray] = None, input_size: int = 112) -> FakeEmbedder:
        embedder = FakeEmbedder(vector=vector, input_size=input_size)
        embedder.load_model()
        return embedder

    return _make


@pytest.fixture
def make_locator():
    """Factory for loaded locators returning *faces* (or failing)."""

    def _make(faces: Optional[List[DetectedFace]] = None, fail: bool = False) -> FakeLocator:
        locator = FakeLocator(faces=faces, fail=fail)
        locator.load_model()
        return locator

    return _make
