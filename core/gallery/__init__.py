# ============================================================
# Suspect Re-identification
# core/gallery/__init__.py
# ============================================================

from core.gallery.models import SuspiciousRecord
from core.gallery.store import GalleryStore
from core.gallery.updater import GalleryOutcome, GalleryUpdater

__all__ = [
    "GalleryOutcome",
    "GalleryStore",
    "GalleryUpdater",
    "SuspiciousRecord",
]
