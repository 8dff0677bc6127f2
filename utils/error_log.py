from __future__ import annotations

import itertools
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from loguru import logger

_LINE_FORMAT = "{extra[timestamp]} - {extra[context]}: {message}"
_sink_counter = itertools.count(1)


class ErrorLog:
    """
    Append-only failure log, one line per failed pipeline run::

        2025-01-31T12:00:00.123456+00:00 - upload 1738324800000.jpg: NoFaceDetected: ...

    Backed by a dedicated Loguru file sink so these lines never mix with
    the application log. ``record()`` never raises: a failure to write is
    reported on stderr by Loguru and otherwise ignored.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._key = f"error_log_{next(_sink_counter)}"
        self._logger = logger.bind(error_log_sink=self._key)
        self._sink_id: Optional[int] = logger.add(
            str(self.path),
            level="TRACE",
            format=_LINE_FORMAT,
            filter=lambda record: record["extra"].get("error_log_sink") == self._key,
            colorize=False,
            enqueue=False,
            delay=True,
            catch=True,
            encoding="utf-8",
        )

    def record(self, error: BaseException | str, context: str) -> None:
        try:
            self._logger.bind(
                timestamp=datetime.now(timezone.utc).isoformat(),
                context=_one_line(context),
            ).error(_one_line(describe_error(error)))
        except Exception:  # noqa: BLE001
            pass

    def close(self) -> None:
        if self._sink_id is None:
            return
        try:
            logger.remove(self._sink_id)
        except ValueError:
            pass
        self._sink_id = None

    def __repr__(self) -> str:
        state = "open" if self._sink_id is not None else "closed"
        return f"ErrorLog(path={self.path}, {state})"


def describe_error(error: BaseException | str) -> str:
    """``Type: message``, followed by the chained cause if there is one."""
    if isinstance(error, str):
        return error
    text = f"{type(error).__name__}: {error}"
    cause = error.__cause__
    if cause is not None:
        text += f" (caused by {type(cause).__name__}: {cause})"
    return text


def _one_line(text: str) -> str:
    return " ".join(str(text).split())
