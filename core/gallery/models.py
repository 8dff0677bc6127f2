from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Optional

import numpy as np


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SuspiciousRecord:
    """
    One known individual in the gallery.

    Attributes:
        record_id:      Opaque hex id, assigned on creation.
        filename:       Name of the stored upload that created the record.
        storage_path:   Public path of that upload (``/uploads/<filename>``).
        signature:      1-D float32 face signature.
        sighting_count: Number of uploads matched to this record (>= 1).
        is_legitimate:  Operator flag; never set by the pipeline.
        first_seen_at:  UTC time of the first sighting.
        last_seen_at:   UTC time of the most recent sighting.
    """

    filename: str
    storage_path: str
    signature: np.ndarray = field(repr=False)
    sighting_count: int = 1
    is_legitimate: bool = False
    first_seen_at: datetime = field(default_factory=utcnow)
    last_seen_at: Optional[datetime] = None
    record_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def __post_init__(self) -> None:
        self.signature = np.asarray(self.signature, dtype=np.float32).reshape(-1)
        if self.last_seen_at is None:
            self.last_seen_at = self.first_seen_at
        if self.sighting_count < 1:
            raise ValueError(f"sighting_count must be >= 1, got {self.sighting_count}")

    @property
    def signature_dim(self) -> int:
        return int(self.signature.shape[0])

    def copy(self) -> "SuspiciousRecord":
        """Detached copy; mutating it never touches the stored record."""
        return replace(self, signature=self.signature.copy())

    def to_dict(self) -> dict:
        return {
            "id": self.record_id,
            "filename": self.filename,
            "storage_path": self.storage_path,
            "signature": self.signature.tolist(),
            "sighting_count": self.sighting_count,
            "is_legitimate": self.is_legitimate,
            "first_seen_at": self.first_seen_at.isoformat(),
            "last_seen_at": self.last_seen_at.isoformat(),
        }

    def __repr__(self) -> str:
        return (
            f"SuspiciousRecord(id={self.record_id[:8]}, "
            f"file={self.filename!r}, "
            f"sightings={self.sighting_count}, "
            f"dim={self.signature_dim})"
        )
