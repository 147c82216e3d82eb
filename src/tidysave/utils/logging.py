"""Logging setup shared by the CLI and embedding hosts.

Everything logs through ``logging.getLogger(__name__)``; this module only
decides where records end up: a size-capped file under ``~/.tidysave/logs``
(or ``$TIDYSAVE_LOG_DIR``) and, optionally, stderr.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from pathlib import Path

__all__ = ["setup_logging", "get_logger", "get_log_path"]

LOG_FILE_NAME = "tidysave.log"
_LOG_DIR_ENV = "TIDYSAVE_LOG_DIR"
_RECORD_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_active_log_path: Path | None = None


def setup_logging(
    level: int | str = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path:
    """Route root logging to a rotating file and, if ``console``, to stderr.

    Later calls are no-ops returning the existing log path unless ``force``
    is set, in which case the root handlers are replaced.
    """

    global _active_log_path
    if _active_log_path is not None and not force:
        return _active_log_path

    numeric_level = _coerce_level(level)
    directory = Path(log_dir or os.environ.get(_LOG_DIR_ENV) or Path.home() / ".tidysave" / "logs")
    directory = directory.expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    log_path = directory / LOG_FILE_NAME

    formatter = logging.Formatter(_RECORD_FORMAT, datefmt=_TIME_FORMAT)
    handlers: list[logging.Handler] = [
        logging.handlers.RotatingFileHandler(
            log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    ]
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))
    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)

    logging.basicConfig(level=numeric_level, handlers=handlers, force=True)
    logging.captureWarnings(True)
    _active_log_path = log_path
    return log_path


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def get_log_path() -> Path | None:
    """Log file chosen by the last :func:`setup_logging` call, if any."""

    return _active_log_path


def _coerce_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved
