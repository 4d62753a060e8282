"""Logging helpers for the export run.

`configure_file_logging` ensures a logs directory exists, attaches a
RotatingFileHandler and returns the log file path. `configure_console_logging`
adds the console stream the operator watches during a run.
"""
from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from datetime import datetime
from typing import Iterable, Optional

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s: %(message)s"


def _resolve_level(level: Optional[str]) -> int:
    level = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    value = getattr(logging, level, None)
    return value if isinstance(value, int) else logging.INFO


def configure_file_logging(logs_dir: Optional[str] = None,
                           filename: Optional[str] = None,
                           *,
                           max_bytes: int = 5 * 1024 * 1024,
                           backup_count: int = 3,
                           logger_names: Optional[Iterable[str]] = None,
                           level: str = "DEBUG") -> str:
    """Attach a rotating file handler to the given loggers (or root logger).

    - If `logger_names` is None the handler is attached to the root logger so
      all loggers will propagate to the handler by default.
    - Returns the absolute path to the log file.
    """
    if logs_dir is None:
        logs_dir = os.path.abspath("logs")
    os.makedirs(logs_dir, exist_ok=True)

    # Default file name: running script name plus current datetime
    if not filename:
        script_name = os.path.splitext(os.path.basename(sys.argv[0] or "purview_export"))[0] or "purview_export"
        ts = datetime.now().strftime("%Y%m%d_%H%M%S")
        filename = f"{script_name}_{ts}.log"

    log_path = os.path.abspath(os.path.join(logs_dir, filename))
    handler = logging.handlers.RotatingFileHandler(log_path, maxBytes=max_bytes,
                                                   backupCount=backup_count, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.setLevel(_resolve_level(level))

    targets = [logging.getLogger()] if logger_names is None else [logging.getLogger(n) for n in logger_names]

    for lg in targets:
        # avoid adding duplicate handlers for same file
        already = any(
            os.path.abspath(getattr(h, "baseFilename", "")) == log_path
            for h in lg.handlers
            if hasattr(h, "baseFilename")
        )
        if not already:
            lg.addHandler(handler)
        if lg.level == logging.NOTSET or lg.level > handler.level:
            lg.setLevel(handler.level)

    logging.getLogger(__name__).info("File logging initialized: %s", log_path)
    return log_path


def configure_console_logging(level: Optional[str] = None,
                              logger: Optional[logging.Logger] = None) -> logging.Handler:
    """Ensure a console handler exists on `logger` (root by default) and return it."""
    target = logger if logger is not None else logging.getLogger()
    resolved = _resolve_level(level)
    for h in target.handlers:
        if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler):
            h.setLevel(resolved)
            return h

    ch = logging.StreamHandler()
    ch.setFormatter(logging.Formatter(LOG_FORMAT))
    ch.setLevel(resolved)
    target.addHandler(ch)
    if target.level == logging.NOTSET or target.level > resolved:
        target.setLevel(resolved)
    return ch
