# Unit tests for:
#   - ArcFaceEmbedder (InsightFace model mocked)
#
# No ONNX weights are loaded.

from __future__ import annotations

from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from core.embedder.arcface_embedder import ArcFaceEmbedder
from core.errors import EmbeddingError
from utils.image_utils import PixelBuffer


def _rand_vec(dim: int = 512, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    v = rng.standard_normal(dim).astype(np.float32)
    return v / np.linalg.norm(v)


def _crop(size: int = 112) -> PixelBuffer:
    return PixelBuffer(np.zeros((size, size, 3), dtype=np.uint8))


@pytest.fixture
def mock_arcface() -> ArcFaceEmbedder:
    embedder = ArcFaceEmbedder(model_path="models/w600k_r50.onnx")
    embedder._model = MagicMock()
    embedder._model.get_feat.return_value = _rand_vec()[np.newaxis, :]
    embedder._is_loaded = True
    return embedder


class TestArcFaceEmbedder:

    def test_missing_model_raises(self, tmp_path):
        embedder = ArcFaceEmbedder(model_path=str(tmp_path / "missing.onnx"))
        with pytest.raises(FileNotFoundError):
            embedder.load_model()
        assert not embedder.is_loaded

    def test_embed_calls_get_feat(self, mock_arcface):
        signature = mock_arcface.embed(_crop())
        mock_arcface._model.get_feat.assert_called_once()
        pixels = mock_arcface._model.get_feat.call_args.args[0]
        assert pixels.shape == (112, 112, 3)
        np.testing.assert_allclose(signature, _rand_vec())

    def test_deterministic_for_same_input(self, mock_arcface):
        a = mock_arcface.embed(_crop())
        b = mock_arcface.embed(_crop())
        np.testing.assert_array_equal(a, b)

    def test_model_failure_wrapped(self, mock_arcface):
        mock_arcface._model.get_feat.side_effect = RuntimeError("onnxruntime exploded")
        crop = _crop()
        with pytest.raises(EmbeddingError):
            mock_arcface.embed(crop)
        assert crop.released

    def test_wrong_size_rejected(self, mock_arcface):
        with pytest.raises(EmbeddingError):
            mock_arcface.embed(_crop(96))
        mock_arcface._model.get_feat.assert_not_called()

    def test_custom_input_size(self):
        assert ArcFaceEmbedder(input_size=128).input_shape == (128, 128)

    def test_providers_filtered_to_available(self):
        embedder = ArcFaceEmbedder(providers=["CUDAExecutionProvider", "CPUExecutionProvider"])
        with patch("onnxruntime.get_available_providers", return_value=["CPUExecutionProvider"]):
            assert embedder._resolve_providers() == ["CPUExecutionProvider"]

    def test_providers_fall_back_to_cpu(self):
        embedder = ArcFaceEmbedder(providers=["TensorrtExecutionProvider"])
        with patch("onnxruntime.get_available_providers", return_value=["CPUExecutionProvider"]):
            assert embedder._resolve_providers() == ["CPUExecutionProvider"]

    def test_release(self, mock_arcface):
        mock_arcface.release()
        assert not mock_arcface.is_loaded
