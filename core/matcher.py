# ============================================================
# Suspect Re-identification
# core/matcher.py
# ============================================================
# Cosine similarity and best-match search over the gallery.
#
# The search is a single linear pass over every record. That is
# fine for a gallery of a few thousand entries; beyond that an
# ANN index would be needed.
# ============================================================

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np

from config.settings import SIMILARITY_THRESHOLD
from core.gallery.models import SuspiciousRecord


@dataclass(frozen=True)
class MatchResult:
    """
    Outcome of one gallery search.

    Attributes:
        record:          Best record at or above the threshold, or None.
        similarity:      Similarity of ``record`` (0.0 when there is none).
        best_similarity: Highest similarity seen, regardless of threshold.
    """

    record: Optional[SuspiciousRecord]
    similarity: float
    best_similarity: float

    @property
    def is_match(self) -> bool:
        return self.record is not None

    def __repr__(self) -> str:
        who = self.record.record_id[:8] if self.record is not None else "none"
        return (
            f"MatchResult(record={who}, "
            f"sim={self.similarity:.4f}, "
            f"best={self.best_similarity:.4f})"
        )


def similarity(a: np.ndarray, b: np.ndarray) -> float:
    """
    Cosine similarity between two signatures.

    Signatures of different lengths are not comparable and score 0.0, as
    does any signature with zero magnitude. Never raises for those cases.

    Returns:
        Similarity in [-1.0, 1.0].
    """
    a = np.asarray(a, dtype=np.float64).reshape(-1)
    b = np.asarray(b, dtype=np.float64).reshape(-1)
    if a.shape[0] != b.shape[0]:
        return 0.0

    norm_a = float(np.linalg.norm(a))
    norm_b = float(np.linalg.norm(b))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.clip(np.dot(a, b) / (norm_a * norm_b), -1.0, 1.0))


def find_best_match(
    signature: np.ndarray,
    gallery: Iterable[SuspiciousRecord],
    threshold: float = SIMILARITY_THRESHOLD,
) -> MatchResult:
    """
    Find the most similar gallery record at or above *threshold*.

    Scans *gallery* once in order. A record only replaces the current best
    on a strictly higher similarity, so on ties the earliest record wins.
    The threshold comparison is inclusive.

    Args:
        signature: Query signature.
        gallery:   Records in store order.
        threshold: Minimum similarity for a match.

    Returns:
        :class:`MatchResult`; ``record`` is None when nothing qualifies.
    """
    highest = 0.0
    best: Optional[SuspiciousRecord] = None
    best_sim = 0.0

    for record in gallery:
        sim = similarity(signature, record.signature)
        if sim > highest:
            highest = sim
            if sim >= threshold:
                best = record
                best_sim = sim

    return MatchResult(record=best, similarity=best_sim, best_similarity=highest)
