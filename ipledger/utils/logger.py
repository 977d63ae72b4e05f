"""Logging for ipledger.

All module loggers live under the ``ipledger.`` namespace and share one
stdout handler with a consistent format.
"""

from __future__ import annotations

import logging
import sys
from functools import lru_cache

ROOT_LOGGER = "ipledger"
_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class LedgerLogger:
    """Thin wrapper that accepts structured context as keyword arguments."""

    def __init__(self, name: str, level: int = logging.NOTSET):
        self.logger = logging.getLogger(f"{ROOT_LOGGER}.{name}")
        if level:
            self.logger.setLevel(level)
        _ensure_root_handler()

    def debug(self, msg: str, **kwargs):
        self.logger.debug(msg, extra=kwargs)

    def info(self, msg: str, **kwargs):
        self.logger.info(msg, extra=kwargs)

    def warning(self, msg: str, exc_info: bool = False, **kwargs):
        self.logger.warning(msg, exc_info=exc_info, extra=kwargs)

    def error(self, msg: str, exc_info: bool = False, **kwargs):
        """Log an error, optionally with the active exception's traceback."""
        self.logger.error(msg, exc_info=exc_info, extra=kwargs)


def _ensure_root_handler() -> None:
    root = logging.getLogger(ROOT_LOGGER)
    # Only add handler if none exists (avoid duplicate handlers)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)
        if root.level == logging.NOTSET:
            root.setLevel(logging.WARNING)


@lru_cache(maxsize=None)
def get_logger(name: str) -> LedgerLogger:
    """Get or create the logger for a module, e.g. ``get_logger("registry.service")``."""
    return LedgerLogger(name)


def set_log_level(level: int | str) -> None:
    """Set the level for every ipledger logger."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {level}")
    logging.getLogger(ROOT_LOGGER).setLevel(level)
