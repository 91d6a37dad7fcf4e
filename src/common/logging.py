"""Logging setup shared by the maintenance and report CLIs."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_CONSOLE_HANDLER = "engine-console"
_FILE_HANDLER = "engine-file"


def _resolve_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(
    level: int | str = logging.INFO,
    log_file: str | Path | None = None,
    logger_name: str | None = None,
) -> logging.Logger:
    """Attach a stdout handler (and optionally a file handler) to a logger.

    The root logger is configured by default, so module loggers and the
    ``__main__`` logger of a CLI run share the same output. Calling again
    only updates the level and adds a file handler if one is missing;
    handlers installed by other code are left alone.

    Args:
        level: Level number or name ("debug", "INFO", ...). Unknown names
            fall back to INFO.
        log_file: Also append records to this file.
        logger_name: Configure this logger instead of the root logger.

    Returns:
        The configured logger.
    """
    logger = logging.getLogger(logger_name)
    level = _resolve_level(level)
    logger.setLevel(level)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    names = {h.get_name() for h in logger.handlers}

    if _CONSOLE_HANDLER not in names:
        console = logging.StreamHandler(sys.stdout)
        console.set_name(_CONSOLE_HANDLER)
        console.setFormatter(formatter)
        logger.addHandler(console)

    if log_file is not None and _FILE_HANDLER not in names:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.set_name(_FILE_HANDLER)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
