from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from scheduler.config import SETTINGS, PROJECT_ROOT, Settings

LOG_FILE_NAME = "habit_scheduler.log"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _level(name: str) -> int:
    level = logging.getLevelName(name.strip().upper())
    if not isinstance(level, int):
        raise RuntimeError(f"LOG_LEVEL {name!r} is not a logging level.")
    return level


def setup_logging(settings: Settings = SETTINGS, console: bool = False) -> Path:
    """Attach a rotating file handler (and optionally stderr) to the ``scheduler`` logger.

    Calling it again with the same log file is a no-op, so every CLI
    invocation in one process can call it.
    """
    log_file = PROJECT_ROOT / settings.log_dir / LOG_FILE_NAME
    logger = logging.getLogger("scheduler")
    logger.setLevel(_level(settings.log_level))
    if any(getattr(handler, "baseFilename", None) == str(log_file) for handler in logger.handlers):
        return log_file

    log_file.parent.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    file_handler = RotatingFileHandler(log_file, maxBytes=2_000_000, backupCount=3, encoding="utf-8")
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    # stdout carries command output
    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)
    return log_file
