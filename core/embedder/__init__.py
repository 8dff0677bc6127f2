# ============================================================
# Suspect Re-identification
# core/embedder/__init__.py
# ============================================================

from core.embedder.arcface_embedder import ArcFaceEmbedder
from core.embedder.base_embedder import BaseEmbedder

__all__ = [
    "ArcFaceEmbedder",
    "BaseEmbedder",
]
