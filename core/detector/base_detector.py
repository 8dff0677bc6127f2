# Defines the abstract contract that every face locator must
# implement, plus the DetectedFace type handed to the crop stage.
#
# Hierarchy:
#   BaseFaceLocator  (abstract)
#       └── YOLOFaceLocator
#       └── <any future locator>

from __future__ import annotations

import os
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Tuple

from utils.image_utils import PixelBuffer


@dataclass(frozen=True)
class DetectedFace:
    """
    One candidate face returned by a locator.

    Coordinates are floats in the absolute pixel space of the source
    image. Boxes may extend past the image edges; the crop stage clamps
    them.

    Attributes:
        x1:         Left edge (pixels).
        y1:         Top edge (pixels).
        x2:         Right edge (pixels).
        y2:         Bottom edge (pixels).
        confidence: Detector score in [0.0, 1.0].
    """

    x1: float
    y1: float
    x2: float
    y2: float
    confidence: float

    @property
    def width(self) -> float:
        return self.x2 - self.x1

    @property
    def height(self) -> float:
        return self.y2 - self.y1

    @property
    def as_tuple(self) -> Tuple[float, float, float, float]:
        return self.x1, self.y1, self.x2, self.y2

    def __repr__(self) -> str:
        return (
            f"DetectedFace(bbox=[{self.x1:.1f},{self.y1:.1f},{self.x2:.1f},{self.y2:.1f}], "
            f"conf={self.confidence:.3f})"
        )


class BaseFaceLocator(ABC):
    """
    Abstract base class for face locators.

    Subclasses must implement:
        - ``load_model()``          — load weights into memory
        - ``locate_faces(image)``   — return candidate faces

    A locator is created and loaded once at process start (see
    ``core.registry.ModelRegistry``) and then shared by every pipeline run.

    Usage::

        with YOLOFaceLocator(model_path="models/yolov8n-face.pt") as locator:
            with decode_image(raw) as image:
                faces = locator.locate_faces(image)
    """

    def __init__(
        self,
        model_path: str,
        confidence_threshold: float = 0.5,
        iou_threshold: float = 0.45,
        max_faces: int = 10,
        device: str = "cpu",
    ) -> None:
        self.model_path = model_path
        self.confidence_threshold = float(confidence_threshold)
        self.iou_threshold = float(iou_threshold)
        self.max_faces = int(max_faces)
        self.device = device.lower()

        self._model = None
        self._is_loaded: bool = False

    # ------------------------------------------------------------------
    # Abstract interface
    # ------------------------------------------------------------------

    @abstractmethod
    def load_model(self) -> None:
        """
        Load the model weights into memory.

        Must set ``self._is_loaded = True`` on success and raise
        ``RuntimeError`` on failure. Calling it twice is a no-op.
        """

    @abstractmethod
    def locate_faces(self, image: PixelBuffer) -> List[DetectedFace]:
        """
        Find candidate faces in *image*.

        Args:
            image: Live 3-channel buffer.

        Returns:
            Faces sorted by confidence, highest first. An empty list
            means no face was found and is not an error.

        Raises:
            LocatorError: If inference itself fails.
        """

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def release(self) -> None:
        self._model = None
        self._is_loaded = False

    @property
    def is_loaded(self) -> bool:
        return self._is_loaded

    @property
    def model_name(self) -> str:
        return os.path.basename(self.model_path)

    def __enter__(self) -> "BaseFaceLocator":
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
                "Call load_model() or use the locator as a context manager."
            )

    @staticmethod
    def _timer() -> float:
        """Current monotonic time in milliseconds."""
        return time.perf_counter() * 1000.0

    def __repr__(self) -> str:
        status = "loaded" if self._is_loaded else "not loaded"
        return (
            f"{self.__class__.__name__}("
            f"model={self.model_name!r}, "
            f"device={self.device!r}, "
            f"conf={self.confidence_threshold}, "
            f"status={status})"
        )
