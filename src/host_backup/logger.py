from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

LOG_FILE_NAME = "backup.log"
MAX_LOGS = 30

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def rotate_logs(log_dir: Path, max_logs: int = MAX_LOGS, now: Optional[datetime] = None) -> Optional[Path]:
    """Rename the current log aside with a timestamp and drop the oldest copies.

    Returns the path of the rotated file, if there was one.
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    current = log_dir / LOG_FILE_NAME
    rotated: Optional[Path] = None
    if current.exists():
        stamp = (now or datetime.now()).strftime("%Y-%m-%d_%H-%M-%S")
        rotated = log_dir / f"backup_{stamp}.log"
        current.replace(rotated)

    # Timestamped names sort chronologically.
    archives = sorted(log_dir.glob("backup_*.log"), reverse=True)
    for stale in archives[max_logs:]:
        stale.unlink(missing_ok=True)
    return rotated


_installed: List[logging.Handler] = []


def configure_logging(level: Union[str, int] = "INFO", log_dir: Optional[Path] = None) -> None:
    """Install console and file handlers, replacing the ones from a previous call."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_dir is not None:
        rotate_logs(log_dir)
        handlers.append(logging.FileHandler(log_dir / LOG_FILE_NAME, encoding="utf-8"))

    root = logging.getLogger()
    for handler in _installed:
        root.removeHandler(handler)
        handler.close()
    _installed[:] = handlers

    formatter = logging.Formatter(_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
