from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Optional

import numpy as np
from loguru import logger

from core.gallery.models import SuspiciousRecord, utcnow
from core.gallery.store import GalleryStore

if TYPE_CHECKING:
    from core.matcher import MatchResult


@dataclass(frozen=True)
class GalleryOutcome:
    """Result of applying one sighting to the gallery."""

    record: SuspiciousRecord
    created: bool
    similarity: Optional[float] = None


class GalleryUpdater:
    """
    Applies a match decision to the gallery.

    A match bumps the record's sighting counter and ``last_seen_at``;
    no match creates a fresh record with one sighting.
    """

    def __init__(
        self,
        store: GalleryStore,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self._clock = clock

    def apply(
        self,
        match: MatchResult,
        signature: np.ndarray,
        filename: str,
        storage_path: str,
    ) -> GalleryOutcome:
        if match.record is not None:
            return self.record_sighting(match.record, match.similarity)
        return self.create_record(signature, filename, storage_path)

    def record_sighting(self, record: SuspiciousRecord, similarity: float) -> GalleryOutcome:
        updated = record.copy()
        updated.sighting_count += 1
        updated.last_seen_at = self._clock()
        stored = self.store.update(updated)
        logger.info(
            f"Repeat sighting: record={stored.record_id[:8]} "
            f"count={stored.sighting_count} sim={similarity:.4f}"
        )
        return GalleryOutcome(record=stored, created=False, similarity=similarity)

    def create_record(
        self,
        signature: np.ndarray,
        filename: str,
        storage_path: str,
    ) -> GalleryOutcome:
        now = self._clock()
        record = SuspiciousRecord(
            filename=filename,
            storage_path=storage_path,
            signature=signature,
            sighting_count=1,
            is_legitimate=False,
            first_seen_at=now,
            last_seen_at=now,
        )
        stored = self.store.insert(record)
        logger.info(f"New suspicious record: {stored.record_id[:8]} ({filename})")
        return GalleryOutcome(record=stored, created=True)
