"""Logger setup for alertbeat: stderr, plus an optional rotating file (~1 MB)."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


class ContextFormatter(logging.Formatter):
    """Append a record's ``context`` pairs as `` key=value``.

    Call sites pass structured context with
    ``logger.error(msg, extra={"context": [("status", 503), ...]})``.
    """

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = getattr(record, "context", None)
        if context:
            line += "".join(f" {key}={value}" for key, value in context)
        return line


def setup_logging(level: int = logging.INFO,
                  log_file: Optional[Path] = None) -> logging.Logger:
    """Configure and return the ``alertbeat`` logger.

    * Always logs to stderr.
    * With *log_file*: 512 KB max per file, 1 backup = **1 MB total** on disk.
    * Idempotent: safe to call multiple times (checks for existing handlers).
    """
    logger = logging.getLogger("alertbeat")

    # Avoid adding duplicate handlers on repeated calls
    if logger.handlers:
        return logger

    logger.setLevel(level)
    formatter = ContextFormatter("%(asctime)s %(levelname)s %(message)s",
                                 datefmt="%Y-%m-%d %H:%M:%S")

    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(formatter)
    logger.addHandler(stream)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            str(log_file),
            maxBytes=512 * 1024,  # 512 KB
            backupCount=1,
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger
