# ============================================================
# Suspect Re-identification
# core/pipeline/reid_pipeline.py
# ============================================================
# One re-identification run, start to finish:
#
#   UploadedImage bytes
#       │
#       ▼
#   [1] decode_image          → PixelBuffer
#       │
#       ▼
#   [2] FaceLocator           → DetectedFace (highest confidence)
#       │
#       ▼
#   [3] crop_and_resize       → PixelBuffer (embedder input size)
#       │
#       ▼
#   [4] Embedder              → signature
#       │
#       ▼
#   [5] find_best_match       → MatchResult
#       │
#       ▼
#   [6] GalleryUpdater        → new record | repeat sighting
#
# Runs only on the task queue's worker thread. Every pixel buffer
# is scoped with ``with`` and the cancellation token is checked
# before each stage.
# ============================================================

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Optional

from config.settings import SIMILARITY_THRESHOLD
from core.errors import LocatorError, NoFaceDetected, ReidError
from core.gallery.models import SuspiciousRecord
from core.gallery.store import GalleryStore
from core.gallery.updater import GalleryUpdater
from core.matcher import find_best_match
from core.registry import ModelRegistry
from core.tasks.task_queue import CancellationToken
from utils.image_utils import crop_and_resize, decode_image
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class UploadedImage:
    """An accepted photo upload, already written to storage."""

    data: bytes = field(repr=False)
    filename: str
    storage_path: str
    content_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class PipelineTiming:
    """Wall-clock time (ms) per stage; 0.0 for stages not reached."""

    decode_ms: float = 0.0
    locate_ms: float = 0.0
    crop_ms: float = 0.0
    embed_ms: float = 0.0
    match_ms: float = 0.0
    persist_ms: float = 0.0
    total_ms: float = 0.0

    def __repr__(self) -> str:
        return (
            f"PipelineTiming("
            f"decode={self.decode_ms:.1f}ms, "
            f"locate={self.locate_ms:.1f}ms, "
            f"embed={self.embed_ms:.1f}ms, "
            f"match={self.match_ms:.1f}ms, "
            f"total={self.total_ms:.1f}ms)"
        )


@dataclass
class PipelineResult:
    """
    Outcome of a successful run.

    Attributes:
        record:          Stored record after the run (copy).
        created:         True if a new record was created.
        similarity:      Match similarity; None for a new record.
        best_similarity: Highest similarity seen during the search.
        timing:          Per-stage timing.
    """

    record: SuspiciousRecord
    created: bool
    similarity: Optional[float]
    best_similarity: float
    timing: PipelineTiming = field(default_factory=PipelineTiming)

    @property
    def outcome(self) -> str:
        return "created" if self.created else "matched"


class ReidPipeline:
    """
    Stateless orchestrator of a single re-identification run.

    Args:
        registry:  Loaded model handles.
        store:     Gallery to search and update.
        threshold: Similarity at or above which a record matches.
    """

    def __init__(
        self,
        registry: ModelRegistry,
        store: GalleryStore,
        threshold: float = SIMILARITY_THRESHOLD,
    ) -> None:
        self.registry = registry
        self.store = store
        self.threshold = float(threshold)
        self.updater = GalleryUpdater(store)

    def run(
        self,
        upload: UploadedImage,
        token: Optional[CancellationToken] = None,
    ) -> PipelineResult:
        """
        Re-identify the most confident face in *upload*.

        Raises:
            DecodeError:       Bytes are not an image.
            NoFaceDetected:    The locator found nothing; gallery untouched.
            LocatorError:      The locator itself failed.
            CropError:         Clamped face box is degenerate.
            EmbeddingError:    The embedder failed.
            PersistenceError:  The gallery write failed.
            PipelineCancelled: The token was cancelled between stages.
        """
        token = token or CancellationToken()
        timing = PipelineTiming()
        t_start = time.perf_counter()

        def lap(t0: float) -> float:
            return (time.perf_counter() - t0) * 1000.0

        token.raise_if_cancelled("decode")
        t0 = time.perf_counter()
        with decode_image(upload.data) as image:
            timing.decode_ms = lap(t0)

            token.raise_if_cancelled("face location")
            t0 = time.perf_counter()
            faces = self._locate(image)
            timing.locate_ms = lap(t0)
            if not faces:
                raise NoFaceDetected(f"No face found in {upload.filename}")
            face = faces[0]
            logger.debug(f"Using {face!r} of {len(faces)} candidate(s)")

            token.raise_if_cancelled("crop")
            t0 = time.perf_counter()
            crop = crop_and_resize(image, face, self.registry.embedder.input_shape)
            timing.crop_ms = lap(t0)

        with crop:
            token.raise_if_cancelled("embedding")
            t0 = time.perf_counter()
            signature = self.registry.embedder.embed(crop)
            timing.embed_ms = lap(t0)

        token.raise_if_cancelled("matching")
        t0 = time.perf_counter()
        match = find_best_match(signature, self.store.list_all(), self.threshold)
        timing.match_ms = lap(t0)
        logger.debug(f"Gallery search over {self.store.count} record(s): {match!r}")

        token.raise_if_cancelled("persist")
        t0 = time.perf_counter()
        outcome = self.updater.apply(match, signature, upload.filename, upload.storage_path)
        timing.persist_ms = lap(t0)
        timing.total_ms = lap(t_start)

        logger.info(
            f"Re-identification {'created' if outcome.created else 'matched'} "
            f"record {outcome.record.record_id[:8]} for {upload.filename} | {timing!r}"
        )
        return PipelineResult(
            record=outcome.record,
            created=outcome.created,
            similarity=outcome.similarity,
            best_similarity=match.best_similarity,
            timing=timing,
        )

    def _locate(self, image):
        try:
            return self.registry.locator.locate_faces(image)
        except ReidError:
            raise
        except Exception as exc:
            raise LocatorError(f"Face locator failed: {exc}") from exc
