# ============================================================
# Suspect Re-identification
# core/detector/__init__.py
# ============================================================

from core.detector.base_detector import BaseFaceLocator, DetectedFace
from core.detector.yolo_detector import YOLOFaceLocator

__all__ = [
    "BaseFaceLocator",
    "DetectedFace",
    "YOLOFaceLocator",
]
