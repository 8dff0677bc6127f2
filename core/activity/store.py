# ============================================================
# Suspect Re-identification
# core/activity/store.py
# ============================================================
# Append-only store of client-reported suspicious activity logs.
#
# Same persistence scheme as the gallery: in-memory list under a
# lock, atomic pickle snapshot after each append.
# ============================================================

from __future__ import annotations

import os
import pickle
import threading
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from loguru import logger

from core.errors import PersistenceError


@dataclass(frozen=True)
class ActivityAction:
    name: str
    resource: str
    duration_seconds: float
    result: str  # 'allowed' | 'blocked' | 'failed'


@dataclass(frozen=True)
class ActivityLog:
    user_id: str
    device_id: str
    actions: List[ActivityAction]
    location: Optional[str] = None
    session_name: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    log_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["id"] = data.pop("log_id")
        data["timestamp"] = self.timestamp.isoformat()
        return data


class ActivityLogStore:
    """
    Thread-safe list of :class:`ActivityLog` entries.

    Args:
        path: Pickle snapshot file; ``None`` keeps logs in memory only.
    """

    def __init__(self, path: Optional[str | Path] = None) -> None:
        self._path: Optional[Path] = Path(path) if path is not None else None
        self._logs: List[ActivityLog] = []
        self._lock = threading.RLock()

    def append(self, entry: ActivityLog) -> ActivityLog:
        """
        Raises:
            PersistenceError: If the snapshot cannot be written.
        """
        with self._lock:
            self._logs.append(entry)
            try:
                self._persist()
            except PersistenceError:
                self._logs.pop()
                raise
        logger.info(f"Activity log captured for user {entry.user_id} ({len(entry.actions)} action(s))")
        return entry

    def list_recent(self) -> List[ActivityLog]:
        """All logs, newest first."""
        with self._lock:
            return sorted(self._logs, key=lambda e: e.timestamp, reverse=True)

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._logs)

    def load(self) -> int:
        if self._path is None or not self._path.exists():
            return 0
        try:
            with open(self._path, "rb") as f:
                logs = pickle.load(f)
        except (OSError, pickle.UnpicklingError, EOFError, AttributeError) as exc:
            raise PersistenceError(f"Cannot read activity logs {self._path}: {exc}") from exc
        with self._lock:
            self._logs = list(logs)
            count = len(self._logs)
        logger.info(f"Activity logs loaded ← {self._path} ({count} entries)")
        return count

    def _persist(self) -> None:
        if self._path is None:
            return
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "wb") as f:
                pickle.dump(self._logs, f, protocol=pickle.HIGHEST_PROTOCOL)
            os.replace(tmp_path, self._path)
        except (OSError, pickle.PicklingError) as exc:
            raise PersistenceError(f"Cannot write activity logs {self._path}: {exc}") from exc
