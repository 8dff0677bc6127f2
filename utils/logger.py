from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

from loguru import logger as _logger

# The rest of the app imports the logger from here
logger = _logger

_TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)
_PLAIN_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
    "{level: <8} | "
    "{name}:{function}:{line} | "
    "{message}"
)

# Sink ids owned by setup_logger(); ErrorLog sinks are left alone on re-setup
_app_sink_ids: list[int] = []


def _is_app_record(record) -> bool:
    """Keep ErrorLog lines out of the regular application sinks."""
    return "error_log_sink" not in record["extra"]


def setup_logger(
    level: str = "INFO",
    file_path: Optional[Path | str] = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
    json_logs: bool = False,
    colorize: bool = True,
) -> None:
    """
    Configure the application-wide Loguru sinks.

    Safe to call more than once: sinks installed by a previous call are
    replaced, while ErrorLog sinks stay attached.

    Args:
        level:     Minimum log level.
        file_path: Optional rotating log file. None = stdout only.
        rotation:  Loguru rotation rule (e.g. "10 MB", "1 day").
        retention: How long rotated files are kept.
        json_logs: Emit structured JSON instead of text.
        colorize:  ANSI colours on the stdout sink.
    """
    # Drop loguru's default stderr sink (id 0) and our own previous sinks
    for sink_id in [0, *_app_sink_ids]:
        try:
            _logger.remove(sink_id)
        except ValueError:
            pass
    _app_sink_ids.clear()

    if json_logs:
        _app_sink_ids.append(
            _logger.add(
                sys.stdout,
                level=level,
                serialize=True,
                filter=_is_app_record,
                backtrace=True,
                diagnose=False,
                enqueue=True,
            )
        )
    else:
        _app_sink_ids.append(
            _logger.add(
                sys.stdout,
                level=level,
                format=_TEXT_FORMAT,
                filter=_is_app_record,
                colorize=colorize,
                backtrace=True,
                diagnose=level in ("DEBUG", "TRACE"),
                enqueue=True,
            )
        )

    if file_path:
        log_path = Path(file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        _app_sink_ids.append(
            _logger.add(
                str(log_path),
                level=level,
                format=_PLAIN_FORMAT if not json_logs else "{message}",
                filter=_is_app_record,
                serialize=json_logs,
                rotation=rotation,
                retention=retention,
                compression="zip",
                backtrace=True,
                diagnose=False,
                enqueue=True,
                encoding="utf-8",
            )
        )

    _logger.debug(
        "Logger initialised | level={} | file={} | json={}",
        level,
        file_path or "stdout only",
        json_logs,
    )


def get_logger(name: str):
    """
    Return a Loguru logger bound to *name* (usually ``__name__``).

    Usage::

        from utils.logger import get_logger
        log = get_logger(__name__)
        log.info("Gallery loaded")
    """
    return _logger.bind(name=name)


def setup_from_settings() -> None:
    """
    Initialise logging from ``config.settings``.

    The settings import is deferred to avoid a circular import.
    """
    from config.settings import settings  # noqa: PLC0415

    log_cfg = settings.logging
    setup_logger(
        level=log_cfg.level,
        file_path=log_cfg.file_path,
        rotation=log_cfg.rotation,
        retention=log_cfg.retention,
        json_logs=log_cfg.json_logs,
        colorize=not settings.is_production,
    )
