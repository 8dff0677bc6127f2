# Unit tests for:
#   - ActivityLog / ActivityAction dataclasses
#   - ActivityLogStore   (append, ordering, persistence, rollback)
#   - ActivityLogRequest (validation, conversion to ActivityLog)

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from api.schemas.requests import ActivityLogRequest
from core.activity.store import ActivityAction, ActivityLog, ActivityLogStore
from core.errors import PersistenceError

T0 = datetime(2025, 1, 31, 12, 0, tzinfo=timezone.utc)


def _entry(user: str = "u-1", offset_s: float = 0.0) -> ActivityLog:
    return ActivityLog(
        user_id=user,
        device_id="laptop-1",
        actions=[ActivityAction("open_file", "/etc/shadow", 0.4, "blocked")],
        timestamp=T0 + timedelta(seconds=offset_s),
    )


def _payload(**overrides) -> dict:
    body = {
        "user_id": "u-1042",
        "device_id": "laptop-17",
        "location": "Lab 3",
        "actions": [
            {"name": "open_file", "resource": "/etc/shadow", "duration_seconds": 0.4, "result": "blocked"},
        ],
    }
    body.update(overrides)
    return body


class TestActivityLog:

    def test_to_dict(self):
        d = _entry().to_dict()
        assert "log_id" not in d
        assert len(d["id"]) == 32
        assert d["timestamp"] == T0.isoformat()
        assert d["actions"][0]["result"] == "blocked"
        assert d["location"] is None


class TestActivityLogStore:

    def test_append_and_count(self):
        store = ActivityLogStore()
        store.append(_entry())
        store.append(_entry("u-2"))
        assert store.count == 2

    def test_list_recent_newest_first(self):
        store = ActivityLogStore()
        store.append(_entry("old", 0))
        store.append(_entry("new", 60))
        store.append(_entry("mid", 30))
        assert [e.user_id for e in store.list_recent()] == ["new", "mid", "old"]

    def test_persistence_roundtrip(self, tmp_path):
        path = tmp_path / "activity.pkl"
        ActivityLogStore(path).append(_entry("u-9"))
        reloaded = ActivityLogStore(path)
        assert reloaded.load() == 1
        assert reloaded.list_recent()[0].user_id == "u-9"

    def test_missing_file_loads_empty(self, tmp_path):
        assert ActivityLogStore(tmp_path / "nope.pkl").load() == 0

    def test_corrupt_file_raises(self, tmp_path):
        path = tmp_path / "activity.pkl"
        path.write_bytes(b"garbage")
        with pytest.raises(PersistenceError):
            ActivityLogStore(path).load()

    def test_failed_append_rolls_back(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        store = ActivityLogStore(blocker / "activity.pkl")
        with pytest.raises(PersistenceError):
            store.append(_entry())
        assert store.count == 0


class TestActivityLogRequest:

    def test_valid_payload(self):
        entry = ActivityLogRequest.model_validate(_payload()).to_entry()
        assert entry.user_id == "u-1042"
        assert entry.location == "Lab 3"
        assert entry.session_name is None
        assert entry.actions[0] == ActivityAction("open_file", "/etc/shadow", 0.4, "blocked")
        assert entry.timestamp.tzinfo is not None

    def test_strips_whitespace(self):
        entry = ActivityLogRequest.model_validate(_payload(user_id="  u-7  ")).to_entry()
        assert entry.user_id == "u-7"

    def test_unknown_fields_ignored(self):
        ActivityLogRequest.model_validate(_payload(extra_field="ignored"))

    @pytest.mark.parametrize(
        "overrides",
        [
            {"user_id": ""},
            {"device_id": None},
            {"actions": "not a list"},
            {"actions": [{"name": "x", "resource": "y", "duration_seconds": -1, "result": "allowed"}]},
            {"actions": [{"name": "x", "resource": "y", "duration_seconds": 1, "result": "maybe"}]},
        ],
    )
    def test_invalid_payloads(self, overrides):
        with pytest.raises(PydanticValidationError):
            ActivityLogRequest.model_validate(_payload(**overrides))

    def test_missing_actions(self):
        body = _payload()
        del body["actions"]
        with pytest.raises(PydanticValidationError):
            ActivityLogRequest.model_validate(body)
