# YOLOv8-based face locator.
#
# Wraps an Ultralytics YOLOv8 model fine-tuned on faces
# (yolov8n-face.pt / yolov8s-face.pt / ...) behind the
# BaseFaceLocator seam used by the re-identification pipeline.
#
# Boxes are returned in raw float pixel coordinates, sorted by
# confidence. Clamping to the image is the crop stage's job.

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import List

import numpy as np
from loguru import logger

from core.detector.base_detector import BaseFaceLocator, DetectedFace
from core.errors import LocatorError
from utils.image_utils import PixelBuffer


class YOLOFaceLocator(BaseFaceLocator):
    """
    YOLOv8 face locator.

    Quick usage::

        locator = YOLOFaceLocator(model_path="models/yolov8n-face.pt")
        locator.load_model()

        with decode_image(raw) as image:
            faces = locator.locate_faces(image)
    """

    def __init__(
        self,
        model_path: str = "models/yolov8n-face.pt",
        confidence_threshold: float = 0.5,
        iou_threshold: float = 0.45,
        max_faces: int = 10,
        device: str = "cpu",
        input_size: int = 640,
    ) -> None:
        """
        Args:
            model_path:            Path to YOLOv8 face weights (.pt) or an
                                   Ultralytics Hub model name.
            confidence_threshold:  Minimum confidence to keep a detection.
            iou_threshold:         NMS IoU threshold.
            max_faces:             Maximum faces returned per image.
            device:                'cpu' | 'cuda' | 'cuda:0' | 'mps'.
            input_size:            Square inference resolution (multiple of 32).
        """
        super().__init__(
            model_path=model_path,
            confidence_threshold=confidence_threshold,
            iou_threshold=iou_threshold,
            max_faces=max_faces,
            device=device,
        )
        self.input_size = input_size

        # Prevent concurrent load_model() calls
        self._load_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Model loading
    # ------------------------------------------------------------------

    def load_model(self) -> None:
        """
        Load the YOLOv8 weights from ``self.model_path``.

        Raises:
            FileNotFoundError: If a local weights path does not exist.
            RuntimeError:      If Ultralytics fails to build the model.
        """
        with self._load_lock:
            if self._is_loaded:
                logger.debug(f"{self.__class__.__name__} already loaded — skipping.")
                return

            model_path = Path(self.model_path)
            is_hub_name = "/" not in self.model_path and os.sep not in self.model_path
            if not model_path.exists():
                if not is_hub_name:
                    raise FileNotFoundError(
                        f"YOLOv8 face model file not found: {model_path.resolve()}"
                    )
                logger.info(
                    f"Model path not found locally — will attempt "
                    f"Ultralytics auto-download: {self.model_path}"
                )

            logger.info(
                f"Loading YOLOv8 face locator | model={self.model_path} | device={self.device}"
            )
            t0 = self._timer()

            try:
                from ultralytics import YOLO

                self._model = YOLO(self.model_path)
                self._is_loaded = True
            except Exception as exc:
                raise RuntimeError(
                    f"Failed to load YOLOv8 model from {self.model_path}: {exc}"
                ) from exc

            logger.success(
                f"YOLOv8 face locator ready in {self._timer() - t0:.0f} ms | "
                f"device={self.device}"
            )

    # ------------------------------------------------------------------
    # Inference
    # ------------------------------------------------------------------

    def locate_faces(self, image: PixelBuffer) -> List[DetectedFace]:
        self._require_loaded()

        t0 = self._timer()
        try:
            results = self._model.predict(
                source=image.pixels,
                conf=self.confidence_threshold,
                iou=self.iou_threshold,
                max_det=self.max_faces,
                imgsz=self.input_size,
                device=self.device,
                verbose=False,
                save=False,
                stream=False,
            )
        except Exception as exc:
            raise LocatorError(f"YOLO inference error: {exc}") from exc

        faces = self._parse_results(results)
        faces.sort(key=lambda f: f.confidence, reverse=True)

        logger.debug(
            f"Located {len(faces)} face(s) | "
            f"{image.width}×{image.height} px | "
            f"{self._timer() - t0:.1f} ms"
        )
        return faces

    def release(self) -> None:
        if self._model is not None and "cuda" in self.device:
            try:
                import torch

                torch.cuda.empty_cache()
            except ImportError:
                pass
        super().release()
        logger.info("YOLOFaceLocator released.")

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_results(yolo_results: list) -> List[DetectedFace]:
        """
        Convert ``model.predict()`` output for one image into DetectedFaces.

        Ultralytics stores boxes in ``result.boxes``:
            - ``boxes.xyxy`` — (N, 4) tensor in pixel coords
            - ``boxes.conf`` — (N,)   confidence scores
        """
        if not yolo_results:
            return []
        boxes = yolo_results[0].boxes
        if boxes is None or len(boxes) == 0:
            return []

        try:
            xyxy = np.asarray(boxes.xyxy.cpu().numpy(), dtype=np.float64)
            confs = np.asarray(boxes.conf.cpu().numpy(), dtype=np.float64)
        except (AttributeError, IndexError, RuntimeError) as exc:
            raise LocatorError(f"Unreadable YOLO output: {exc}") from exc

        return [
            DetectedFace(
                x1=float(x1),
                y1=float(y1),
                x2=float(x2),
                y2=float(y2),
                confidence=float(conf),
            )
            for (x1, y1, x2, y2), conf in zip(xyxy, confs)
        ]

    def __repr__(self) -> str:
        status = "loaded" if self._is_loaded else "not loaded"
        return (
            f"YOLOFaceLocator("
            f"model={os.path.basename(self.model_path)!r}, "
            f"device={self.device!r}, "
            f"conf={self.confidence_threshold}, "
            f"iou={self.iou_threshold}, "
            f"max_faces={self.max_faces}, "
            f"input_size={self.input_size}, "
            f"status={status})"
        )
