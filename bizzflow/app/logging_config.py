"""Process-wide logging setup for the API and the maintenance scripts."""

from __future__ import annotations

import logging
import os
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_LEVEL_ENV = "LOG_LEVEL"
LOG_DIR_ENV = "LOG_DIR"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_RETENTION_DAYS = 30


def _resolve_level(level_name: Optional[str]) -> int:
    raw = level_name or os.getenv(LOG_LEVEL_ENV) or "INFO"
    level = logging.getLevelName(raw.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"{LOG_LEVEL_ENV} has an unknown level: {raw!r}")
    return level


def configure_logging(level_name: Optional[str] = None) -> None:
    """Configure the root logger once; later calls only adjust the level.

    When ``LOG_DIR`` is set, a file handler writes ``bizzflow.log`` rotated at
    midnight so each day keeps its own file.
    """

    level = _resolve_level(level_name)
    root = logging.getLogger()

    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    else:
        root.setLevel(level)

    log_dir = os.getenv(LOG_DIR_ENV)
    if not log_dir:
        return
    if any(isinstance(handler, TimedRotatingFileHandler) for handler in root.handlers):
        return

    path = Path(log_dir)
    path.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        path / "bizzflow.log",
        when="midnight",
        backupCount=LOG_RETENTION_DAYS,
        encoding="utf-8",
        utc=True,
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
