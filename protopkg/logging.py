"""Logging utilities for protopkg commands."""

from __future__ import annotations

import logging
from pathlib import Path

from .errors import ConfigError

_LOGGER_NAME = "protopkg"
_CONSOLE_FORMAT = "[protopkg] %(levelname)s %(message)s"
# The file sink keeps logger names so a build log shows which step spoke.
_FILE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the protopkg hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def _file_handler(log_file: Path) -> logging.Handler:
    log_path = Path(log_file).expanduser()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(log_path, mode="w", encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot open log file {log_path}: {exc}") from exc


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Send protopkg records to stderr and, when ``log_file`` is given, to that file.

    Each call replaces the handlers installed by the previous one. The log file
    is truncated so it holds only the latest build.
    """
    level = logging.DEBUG if verbose else logging.INFO
    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    handlers: list[logging.Handler] = [console]
    if log_file is not None:
        sink = _file_handler(log_file)
        sink.setFormatter(logging.Formatter(_FILE_FORMAT))
        handlers.append(sink)

    logger = get_logger()
    logger.setLevel(level)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    for handler in handlers:
        handler.setLevel(level)
        logger.addHandler(handler)

    return logger


__all__ = ["configure_logging", "get_logger"]
