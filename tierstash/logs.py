"""Logging setup for backup runs."""

from __future__ import annotations

import logging
import os
from datetime import date
from pathlib import Path

from tierstash.errors import ConfigError

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def log_file_for(log_dir: Path, today: date) -> Path:
    return Path(log_dir) / f"backup-{today.isoformat()}.log"


def setup_logging(
    log_dir: Path | None = None,
    today: date | None = None,
    level: int = logging.INFO,
) -> Path | None:
    """Configure the root logger; add a dated file handler when *log_dir* is set.

    Returns the log file path, or None when only logging to stderr.
    """
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%H:%M:%S")
    if log_dir is None:
        return None

    log_dir = Path(log_dir)
    if log_dir.exists() and not log_dir.is_dir():
        raise ConfigError(f"Log directory is not a directory: {log_dir}")
    log_dir.mkdir(parents=True, exist_ok=True)

    path = log_file_for(log_dir, today or date.today())
    root = logging.getLogger()
    for handler in root.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename == os.path.abspath(path):
            return path
    handler = logging.FileHandler(path)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    return path
