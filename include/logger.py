import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Names of every logger configured through setup_logger
_stage_loggers: set[str] = set()


def _resolve_level(level: Optional[str]) -> int:
    return getattr(logging, (level or "INFO").upper(), logging.INFO)


def setup_logger(name: str = "warehouse", level: Optional[str] = None) -> logging.Logger:
    """
    Configure and return a logger instance for a warehouse stage.

    The level can be overridden per call (e.g. from the ``logging.level``
    config key); otherwise INFO is used.
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level))

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    _stage_loggers.add(name)
    return logger


def set_log_level(level: Optional[str]) -> None:
    """Apply ``level`` to every logger created by ``setup_logger`` so far."""
    resolved = _resolve_level(level)
    for name in sorted(_stage_loggers):
        logging.getLogger(name).setLevel(resolved)
