# ============================================================
# Suspect Re-identification
# core/registry.py
# ============================================================
# Process-wide owner of the loaded model handles.
#
# Built once in the FastAPI lifespan and stored on app.state;
# everything else receives it by reference.
# ============================================================

from __future__ import annotations

from typing import Optional

from loguru import logger

from config.settings import Settings
from core.detector.base_detector import BaseFaceLocator
from core.embedder.base_embedder import BaseEmbedder
from core.errors import InitializationError


class ModelRegistry:
    """
    Holds the face locator and the embedder for the lifetime of the process.

    ``load()`` is fail-fast: any error while loading either model raises
    :class:`InitializationError` and the service must not start.
    """

    def __init__(self, locator: BaseFaceLocator, embedder: BaseEmbedder) -> None:
        self.locator = locator
        self.embedder = embedder

    @classmethod
    def from_settings(cls, cfg: Settings) -> "ModelRegistry":
        """Build (but do not load) the concrete YOLO + ArcFace backends."""
        from core.detector.yolo_detector import YOLOFaceLocator  # noqa: PLC0415
        from core.embedder.arcface_embedder import ArcFaceEmbedder  # noqa: PLC0415

        locator = YOLOFaceLocator(
            model_path=cfg.detector.model_path,
            confidence_threshold=cfg.detector.confidence_threshold,
            iou_threshold=cfg.detector.iou_threshold,
            max_faces=cfg.detector.max_faces,
            device=cfg.detector.device,
            input_size=cfg.detector.input_size,
        )
        embedder = ArcFaceEmbedder(
            model_path=cfg.embedder.model_path,
            input_size=cfg.embedder.input_size,
            providers=cfg.embedder.providers,
            ctx_id=cfg.embedder.ctx_id,
        )
        return cls(locator=locator, embedder=embedder)

    def load(self) -> "ModelRegistry":
        """
        Load both models.

        Raises:
            InitializationError: If either model fails to load.
        """
        for name, component in (("face locator", self.locator), ("embedder", self.embedder)):
            try:
                component.load_model()
            except Exception as exc:
                logger.critical(f"Failed to load {name}: {exc}")
                raise InitializationError(f"Could not load {name}: {exc}") from exc
        logger.success("Model registry ready")
        return self

    def release(self) -> None:
        for component in (self.locator, self.embedder):
            try:
                component.release()
            except Exception as exc:
                logger.warning(f"Error releasing {component!r}: {exc}")

    @property
    def is_ready(self) -> bool:
        return self.locator.is_loaded and self.embedder.is_loaded

    def status(self) -> dict:
        return {
            "face_locator": self._component_status(self.locator),
            "embedder": self._component_status(self.embedder),
        }

    @staticmethod
    def _component_status(component: Optional[object]) -> dict:
        if component is None:
            return {"status": "unavailable", "loaded": False}
        loaded = bool(getattr(component, "is_loaded", False))
        return {
            "status": "ok" if loaded else "not_loaded",
            "loaded": loaded,
            "model": getattr(component, "model_name", None),
        }

    def __repr__(self) -> str:
        return f"ModelRegistry(locator={self.locator!r}, embedder={self.embedder!r})"
