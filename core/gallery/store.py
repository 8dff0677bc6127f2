# ============================================================
# Suspect Re-identification
# core/gallery/store.py
# ============================================================
# Durable, thread-safe set of SuspiciousRecords.
#
# Records live in an insertion-ordered dict guarded by an RLock.
# Every write is followed by an atomic pickle snapshot
# (tmp file + os.replace); if the snapshot fails the in-memory
# change is rolled back so memory and disk never disagree.
# ============================================================

from __future__ import annotations

import os
import pickle
import threading
import time
from pathlib import Path
from typing import Dict, List, Optional

from loguru import logger

from core.errors import NotFoundError, PersistenceError
from core.gallery.models import SuspiciousRecord

_FORMAT_VERSION = "1.0"


class GalleryStore:
    """
    Owner of the gallery of known individuals.

    All accessors hand out detached copies, so callers can never mutate
    stored state without going through :meth:`insert` / :meth:`update`.

    Args:
        path: Pickle file used for persistence. ``None`` keeps the
              gallery in memory only (tests, ephemeral runs).
    """

    def __init__(self, path: Optional[str | Path] = None) -> None:
        self._path: Optional[Path] = Path(path) if path is not None else None
        self._records: Dict[str, SuspiciousRecord] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_all(self) -> List[SuspiciousRecord]:
        """All records in insertion order."""
        with self._lock:
            return [r.copy() for r in self._records.values()]

    def list_by_sightings(self) -> List[SuspiciousRecord]:
        """All records, most-sighted first. Stable for equal counts."""
        return sorted(self.list_all(), key=lambda r: r.sighting_count, reverse=True)

    def list_recent(self) -> List[SuspiciousRecord]:
        """All records, most recently seen first."""
        return sorted(self.list_all(), key=lambda r: r.last_seen_at, reverse=True)

    def get(self, record_id: str) -> SuspiciousRecord:
        """
        Raises:
            NotFoundError: If *record_id* is unknown.
        """
        with self._lock:
            record = self._records.get(record_id)
            if record is None:
                raise NotFoundError(f"No gallery record with id {record_id!r}")
            return record.copy()

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def __len__(self) -> int:
        return self.count

    def __contains__(self, record_id: str) -> bool:
        with self._lock:
            return record_id in self._records

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, record: SuspiciousRecord) -> SuspiciousRecord:
        """
        Add a new record and persist.

        Raises:
            ValueError:       If the id already exists.
            PersistenceError: If the snapshot cannot be written.
        """
        with self._lock:
            if record.record_id in self._records:
                raise ValueError(f"Record {record.record_id!r} already exists.")
            self._records[record.record_id] = record.copy()
            try:
                self._persist()
            except PersistenceError:
                del self._records[record.record_id]
                raise
        logger.info(f"Gallery record created: {record!r}")
        return record.copy()

    def update(self, record: SuspiciousRecord) -> SuspiciousRecord:
        """
        Replace an existing record (matched by id) and persist.

        Raises:
            NotFoundError:    If the id is unknown.
            PersistenceError: If the snapshot cannot be written.
        """
        with self._lock:
            previous = self._records.get(record.record_id)
            if previous is None:
                raise NotFoundError(f"No gallery record with id {record.record_id!r}")
            self._records[record.record_id] = record.copy()
            try:
                self._persist()
            except PersistenceError:
                self._records[record.record_id] = previous
                raise
        logger.info(f"Gallery record updated: {record!r}")
        return record.copy()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> int:
        """
        Replace the in-memory gallery with the snapshot on disk.

        A missing file is not an error (fresh install).

        Returns:
            Number of records loaded.

        Raises:
            PersistenceError: If the file exists but cannot be read.
        """
        if self._path is None or not self._path.exists():
            logger.info("No gallery snapshot found — starting with an empty gallery")
            return 0

        try:
            with open(self._path, "rb") as f:
                payload = pickle.load(f)
        except (OSError, pickle.UnpicklingError, EOFError, AttributeError) as exc:
            raise PersistenceError(f"Cannot read gallery snapshot {self._path}: {exc}") from exc

        if not isinstance(payload, dict) or "records" not in payload:
            raise PersistenceError(f"Unrecognised gallery snapshot format in {self._path}")

        with self._lock:
            self._records = {r.record_id: r for r in payload["records"]}
            count = len(self._records)

        logger.info(f"Gallery loaded ← {self._path} ({count} records)")
        return count

    def _persist(self) -> None:
        """Write a snapshot atomically. Caller holds the lock."""
        if self._path is None:
            return

        payload = {
            "version": _FORMAT_VERSION,
            "saved_at": time.time(),
            "records": list(self._records.values()),
        }
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "wb") as f:
                pickle.dump(payload, f, protocol=pickle.HIGHEST_PROTOCOL)
            os.replace(tmp_path, self._path)
        except (OSError, pickle.PicklingError) as exc:
            raise PersistenceError(f"Cannot write gallery snapshot {self._path}: {exc}") from exc

        logger.debug(f"Gallery saved → {self._path} ({len(self._records)} records)")

    def __repr__(self) -> str:
        return f"GalleryStore(records={self.count}, path={self._path})"
