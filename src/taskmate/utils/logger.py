"""Application-wide logging to a rotating file in platformdirs user_log_dir.

Everything logs under the ``taskmate`` logger; pass a suffix to get a child
logger (``get_logger("sync")`` -> ``taskmate.sync``). Set
``TASKMATE_LOG_LEVEL`` to change the threshold, DEBUG by default.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

from platformdirs import user_log_dir

_APP_NAME = "taskmate"
_LOG_FILE = "taskmate.log"
_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
_BACKUP_COUNT = 3

_root: logging.Logger | None = None


def _configure_root() -> logging.Logger:
    global _root
    if _root is not None:
        return _root

    log_dir = Path(user_log_dir(_APP_NAME))
    log_dir.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        log_dir / _LOG_FILE,
        maxBytes=_MAX_BYTES,
        backupCount=_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    )

    logger = logging.getLogger(_APP_NAME)
    level = os.environ.get("TASKMATE_LOG_LEVEL", "DEBUG").upper()
    logger.setLevel(getattr(logging, level, logging.DEBUG))
    if not logger.handlers:
        logger.addHandler(handler)
    logger.propagate = False

    _root = logger
    return _root


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the application logger, or one of its children."""
    root = _configure_root()
    if not name:
        return root
    return root.getChild(name)
