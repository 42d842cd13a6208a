from __future__ import annotations

import logging
import os
import sys
import traceback
from datetime import datetime
from pathlib import Path

from .config import AppConfig

_LOGGER = logging.getLogger("strudelbop.logging")
_DEBUG_ENV = "STRUDELBOP_DEBUG"
_LOG_FILE = "strudelbop.log"
_logging_configured = False
_CONSOLE_FORMAT = "%(level_prefix)s %(name)s: %(message)s"
_FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_LEVEL_PREFIXES = {
    logging.DEBUG: "🐛",
    logging.INFO: "ℹ️",
    logging.WARNING: "⚠️",
    logging.ERROR: "❌",
    logging.CRITICAL: "💥",
}


class _ConsoleEmojiFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        record.level_prefix = _LEVEL_PREFIXES.get(record.levelno, "")
        return super().format(record)


def debug_enabled() -> bool:
    return bool(os.environ.get(_DEBUG_ENV))


def get_log_dir(config: AppConfig | None = None) -> Path:
    """Log directory from ``config``, or from the environment when none is given."""
    return (config or AppConfig.from_env()).log_dir


def get_log_path(config: AppConfig | None = None) -> Path:
    return get_log_dir(config) / _LOG_FILE


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler(stream=sys.__stderr__)
    handler.setLevel(logging.DEBUG if debug_enabled() else logging.INFO)
    handler.setFormatter(_ConsoleEmojiFormatter(_CONSOLE_FORMAT))
    return handler


def _file_handler(path: Path) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATE_FORMAT))
    return handler


def configure_logging(config: AppConfig | None = None, *, force: bool = False) -> None:
    """Attach console and file handlers to the ``strudelbop`` logger once per process.

    ``force`` drops any handlers attached earlier, e.g. after the log directory moved.
    """

    global _logging_configured
    if _logging_configured and not force:
        return

    logger = logging.getLogger("strudelbop")
    logger.setLevel(logging.DEBUG)

    if force:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    if force or not logging.getLogger().handlers:
        logger.addHandler(_console_handler())

    try:
        logger.addHandler(_file_handler(get_log_path(config)))
    except Exception as exc:
        _LOGGER.warning("Failed to configure file logging: %s", exc, exc_info=True)

    # Allow app/test harness handlers to capture logs.
    logger.propagate = True
    _logging_configured = True


def log_exception(
    context: str, exc: BaseException, config: AppConfig | None = None
) -> Path | None:
    try:
        path = get_log_path(config)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            handle.write(
                f"[{datetime.now().isoformat()}] {context} failed: {type(exc).__name__}: {exc}\n"
            )
            traceback.print_exception(type(exc), exc, exc.__traceback__, file=handle)
            handle.write("\n")
        return path
    except Exception as log_exc:
        _LOGGER.warning("Failed to write log file: %s", log_exc, exc_info=True)
        return None
