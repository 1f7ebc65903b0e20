from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .config import CcmemConfig

LOGGER_NAME = "ccmem"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
MAX_LOG_BYTES = 1024 * 1024
LOG_BACKUP_COUNT = 3

_HANDLER_ATTR = "_ccmem_handler"


def configure_logging(config: CcmemConfig) -> logging.Logger:
    """Attach a single handler to the package logger.

    Logs go to a rotating file when ``log_path`` is set, otherwise to stderr.
    Stdout is reserved for command output and hook context.
    """

    logger = logging.getLogger(LOGGER_NAME)
    for existing in list(logger.handlers):
        if getattr(existing, _HANDLER_ATTR, False):
            logger.removeHandler(existing)
            existing.close()

    handler: logging.Handler
    if config.log_path:
        path = Path(config.log_path).expanduser()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(
                path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUP_COUNT, encoding="utf-8"
            )
        except OSError:
            handler = logging.StreamHandler(sys.stderr)
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    setattr(handler, _HANDLER_ATTR, True)
    logger.addHandler(handler)
    level = getattr(logging, (config.log_level or "INFO").upper(), logging.INFO)
    logger.setLevel(level if isinstance(level, int) else logging.INFO)
    return logger
