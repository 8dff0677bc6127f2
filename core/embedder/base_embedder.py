# ============================================================
# Suspect Re-identification
# core/embedder/base_embedder.py
# ============================================================
# Abstract contract for signature generators.
#
# Hierarchy:
#   BaseEmbedder  (abstract)
#       └── ArcFaceEmbedder
#       └── <any future embedder>
# ============================================================

from __future__ import annotations

import os
import time
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

import numpy as np

from core.errors import EmbeddingError
from utils.image_utils import PixelBuffer


class BaseEmbedder(ABC):
    """
    Abstract base class for face signature generators.

    An embedder turns a normalised face crop into a fixed-length float
    vector. Output is deterministic for a given model and input.

    Subclasses must implement:
        - ``load_model()``
        - ``_infer(pixels)`` — raw model call on a BGR crop

    ``embed()`` is concrete: it checks the crop size, calls ``_infer``
    and always releases the crop buffer.
    """

    def __init__(
        self,
        model_path: str,
        input_size: int = 112,
        providers: Optional[List[str]] = None,
        ctx_id: int = -1,
    ) -> None:
        self.model_path = model_path
        self.input_size = int(input_size)
        self.providers: List[str] = list(providers or ["CPUExecutionProvider"])
        self.ctx_id = ctx_id

        self._model = None
        self._is_loaded: bool = False

    # ------------------------------------------------------------------
    # Abstract interface
    # ------------------------------------------------------------------

    @abstractmethod
    def load_model(self) -> None:
        """Load the model; set ``self._is_loaded``. Raise RuntimeError on failure."""

    @abstractmethod
    def _infer(self, pixels: np.ndarray) -> np.ndarray:
        """Run the model on one BGR crop of ``input_shape`` and return its raw output."""

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def embed(self, crop: PixelBuffer) -> np.ndarray:
        """
        Produce the signature for one normalised face crop.

        The crop buffer is released before returning, on success and on
        failure.

        Args:
            crop: Live buffer of exactly ``input_shape`` pixels.

        Returns:
            1-D ``float32`` signature vector.

        Raises:
            EmbeddingError: If the crop has the wrong size or the model fails.
        """
        with crop:
            self._require_loaded()
            if (crop.width, crop.height) != self.input_shape:
                raise EmbeddingError(
                    f"Expected a {self.input_shape} crop, got {(crop.width, crop.height)}."
                )
            try:
                raw = self._infer(crop.pixels)
            except Exception as exc:
                raise EmbeddingError(f"{self.__class__.__name__} inference failed: {exc}") from exc

        signature = np.asarray(raw, dtype=np.float32).reshape(-1)
        if signature.size == 0:
            raise EmbeddingError("Embedding model returned an empty vector.")
        return signature

    def release(self) -> None:
        self._model = None
        self._is_loaded = False

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def input_shape(self) -> Tuple[int, int]:
        """(width, height) the crop stage must resize to."""
        return self.input_size, self.input_size

    @property
    def is_loaded(self) -> bool:
        return self._is_loaded

    @property
    def model_name(self) -> str:
        return os.path.basename(self.model_path)

    # ------------------------------------------------------------------
    # Context manager support
    # ------------------------------------------------------------------

    def __enter__(self) -> "BaseEmbedder":
        if not self._is_loaded:
            self.load_model()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_loaded(self) -> None:
        if not self._is_loaded:
            raise RuntimeError(
                f"{self.__class__.__name__} model is not loaded. "
                "Call load_model() or use the embedder as a context manager."
            )

    @staticmethod
    def _timer() -> float:
        return time.perf_counter() * 1000.0

    def __repr__(self) -> str:
        status = "loaded" if self._is_loaded else "not loaded"
        return (
            f"{self.__class__.__name__}("
            f"model={self.model_name!r}, "
            f"input={self.input_size}x{self.input_size}, "
            f"status={status})"
        )
