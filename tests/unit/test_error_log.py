# Unit tests for:
#   - ErrorLog        (line format, append-only, never raises, close)
#   - describe_error()

from __future__ import annotations

import re

import pytest

from core.errors import LocatorError, NoFaceDetected
from utils.error_log import ErrorLog, describe_error

_LINE = re.compile(r"^(?P<ts>\S+) - (?P<context>.+?): (?P<message>.+)$")


@pytest.fixture
def error_log(tmp_path):
    log = ErrorLog(tmp_path / "error.log")
    yield log
    log.close()


def _lines(log: ErrorLog):
    log.close()
    return log.path.read_text(encoding="utf-8").splitlines()


class TestDescribeError:

    def test_type_and_message(self):
        assert describe_error(NoFaceDetected("nothing there")) == "NoFaceDetected: nothing there"

    def test_includes_cause(self):
        try:
            try:
                raise ValueError("cuda oom")
            except ValueError as exc:
                raise LocatorError("Face locator failed") from exc
        except LocatorError as err:
            text = describe_error(err)
        assert text == "LocatorError: Face locator failed (caused by ValueError: cuda oom)"

    def test_plain_string(self):
        assert describe_error("already formatted") == "already formatted"


class TestErrorLog:

    def test_file_created_lazily(self, error_log):
        assert not error_log.path.exists()

    def test_line_format(self, error_log):
        error_log.record(NoFaceDetected("No face found in 1.jpg"), "upload 1.jpg")
        lines = _lines(error_log)
        assert len(lines) == 1
        m = _LINE.match(lines[0])
        assert m is not None
        assert m.group("context") == "upload 1.jpg"
        assert m.group("message") == "NoFaceDetected: No face found in 1.jpg"
        assert "T" in m.group("ts")

    def test_appends_one_line_per_failure(self, error_log):
        for i in range(3):
            error_log.record(RuntimeError(f"failure {i}"), f"upload {i}.jpg")
        lines = _lines(error_log)
        assert len(lines) == 3
        assert lines[2].endswith("RuntimeError: failure 2")

    def test_multiline_text_collapsed(self, error_log):
        error_log.record(RuntimeError("line one\nline two"), "ctx\nwith newline")
        lines = _lines(error_log)
        assert len(lines) == 1
        assert "line one line two" in lines[0]

    def test_existing_content_preserved(self, tmp_path):
        path = tmp_path / "error.log"
        path.write_text("previous line\n", encoding="utf-8")
        log = ErrorLog(path)
        log.record("boom", "ctx")
        lines = _lines(log)
        assert lines[0] == "previous line"
        assert lines[1].endswith("ctx: boom")

    def test_separate_logs_do_not_mix(self, tmp_path):
        a = ErrorLog(tmp_path / "a.log")
        b = ErrorLog(tmp_path / "b.log")
        a.record("only in a", "ctx")
        assert len(_lines(a)) == 1
        b.close()
        assert not (tmp_path / "b.log").exists()

    def test_record_after_close_does_not_raise(self, error_log):
        error_log.close()
        error_log.record(RuntimeError("late"), "ctx")
        error_log.close()
        assert "closed" in repr(error_log)

    def test_unwritable_path_does_not_raise(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        log = ErrorLog(blocker / "error.log")
        log.record(RuntimeError("nowhere to go"), "ctx")
        log.close()
