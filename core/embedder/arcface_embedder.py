# ArcFace signature generator backed by an InsightFace ONNX model.
#
# Loads a single recognition model (w600k_r50.onnx or a MobileFaceNet
# variant) through ``insightface.model_zoo`` and calls ``get_feat`` on
# the fixed-size face crop produced by the crop stage.

from __future__ import annotations

import threading
from pathlib import Path
from typing import List, Optional

import numpy as np
from loguru import logger

from core.embedder.base_embedder import BaseEmbedder


class ArcFaceEmbedder(BaseEmbedder):
    """
    InsightFace ArcFace embedder.

    Quick usage::

        embedder = ArcFaceEmbedder(model_path="models/w600k_r50.onnx")
        embedder.load_model()
        signature = embedder.embed(crop)   # crop is 112×112
    """

    def __init__(
        self,
        model_path: str = "models/w600k_r50.onnx",
        input_size: int = 112,
        providers: Optional[List[str]] = None,
        ctx_id: int = -1,
    ) -> None:
        super().__init__(
            model_path=model_path,
            input_size=input_size,
            providers=providers,
            ctx_id=ctx_id,
        )
        self._load_lock = threading.Lock()

    def load_model(self) -> None:
        """
        Load the ArcFace ONNX model.

        Raises:
            FileNotFoundError: If ``model_path`` does not exist.
            RuntimeError:      If InsightFace cannot build the model.
        """
        with self._load_lock:
            if self._is_loaded:
                logger.debug(f"{self.__class__.__name__} already loaded — skipping.")
                return

            model_path = Path(self.model_path)
            if not model_path.exists():
                raise FileNotFoundError(f"ArcFace model not found: {model_path.resolve()}")

            providers = self._resolve_providers()
            logger.info(f"Loading ArcFace embedder | model={model_path} | providers={providers}")
            t0 = self._timer()

            try:
                from insightface.model_zoo import get_model  # noqa: PLC0415

                model = get_model(str(model_path), providers=providers)
                if model is None:
                    raise RuntimeError(f"insightface could not identify model {model_path.name}")
                model.prepare(ctx_id=self.ctx_id)
                self._model = model
                self._is_loaded = True
            except Exception as exc:
                raise RuntimeError(f"Failed to load ArcFace model '{model_path}': {exc}") from exc

            logger.success(f"ArcFace embedder ready in {self._timer() - t0:.0f} ms")

    def _infer(self, pixels: np.ndarray) -> np.ndarray:
        # get_feat does its own blob normalisation and returns (1, D)
        return self._model.get_feat(pixels)

    def _resolve_providers(self) -> List[str]:
        """Drop configured ONNX providers that this machine cannot run."""
        import onnxruntime as ort  # noqa: PLC0415

        available = ort.get_available_providers()
        resolved = [p for p in self.providers if p in available]
        if not resolved:
            resolved = ["CPUExecutionProvider"]
        logger.debug(f"ONNX providers resolved: {resolved}")
        return resolved
