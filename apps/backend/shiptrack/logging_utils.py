"""Logging setup for the Shiptrack backend.

One format for every module, with two context fields injected on each record:
the HTTP request id (set by the request middleware) and the realtime connection
id (set by the WebSocket handler while it serves a connection).
"""

from __future__ import annotations

import contextvars
import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


REQUEST_ID_CTX: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")
CONN_ID_CTX: contextvars.ContextVar[str] = contextvars.ContextVar("conn_id", default="-")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s:%(lineno)d [rid=%(request_id)s conn=%(conn_id)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_TRUTHY = {"1", "true", "yes", "y", "on"}


class ContextFilter(logging.Filter):
    """Copy request/connection ids from context vars onto the record."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 (Filter.filter)
        record.request_id = REQUEST_ID_CTX.get("-")
        record.conn_id = CONN_ID_CTX.get("-")
        return True


def _parse_log_level(level_name: Optional[str]) -> int:
    if not level_name:
        return logging.INFO
    return getattr(logging, level_name.strip().upper(), logging.INFO)


def _prepare(handler: logging.Handler, level: int, formatter: logging.Formatter, ctx_filter: ContextFilter) -> None:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    if not any(isinstance(f, ContextFilter) for f in handler.filters):
        handler.addFilter(ctx_filter)


def _file_handler_path() -> Optional[Path]:
    if os.getenv("SHIPTRACK_LOG_TO_FILE", "false").strip().lower() not in _TRUTHY:
        return None
    # shiptrack/logging_utils.py -> parents[1] == apps/backend
    default_path = Path(__file__).resolve().parents[1] / "var" / "logs" / "backend.log"
    return Path(os.getenv("SHIPTRACK_LOG_FILE", str(default_path))).expanduser()


def configure_logging() -> None:
    """Configure the root logger from the environment.

    - SHIPTRACK_LOG_LEVEL: DEBUG/INFO/WARNING/ERROR (default INFO)
    - SHIPTRACK_LOG_TO_FILE: 1/true/yes to also log to a rotating file (default off)
    - SHIPTRACK_LOG_FILE: log file path (default: apps/backend/var/logs/backend.log)
    - SHIPTRACK_LOG_MAX_BYTES: rotate when the file exceeds this size (default 10MB)
    - SHIPTRACK_LOG_BACKUP_COUNT: rotated files to keep (default 5)

    Safe to call more than once (app factory under uvicorn --reload, tests).
    """
    level = _parse_log_level(os.getenv("SHIPTRACK_LOG_LEVEL", "INFO"))
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    ctx_filter = ContextFilter()

    root = logging.getLogger()
    root.setLevel(level)
    if not root.handlers:
        root.addHandler(logging.StreamHandler())
    for h in root.handlers:
        _prepare(h, level, formatter, ctx_filter)

    file_path = _file_handler_path()
    if file_path is not None:
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            logging.getLogger(__name__).exception("Failed to create log directory: %s", file_path.parent)
        else:
            already = any(
                isinstance(h, RotatingFileHandler) and Path(h.baseFilename) == file_path.resolve()
                for h in root.handlers
            )
            if not already:
                fh = RotatingFileHandler(
                    filename=str(file_path),
                    maxBytes=int(os.getenv("SHIPTRACK_LOG_MAX_BYTES", str(10 * 1024 * 1024))),
                    backupCount=int(os.getenv("SHIPTRACK_LOG_BACKUP_COUNT", "5")),
                    encoding="utf-8",
                )
                _prepare(fh, level, formatter, ctx_filter)
                root.addHandler(fh)

    # Format is handled by the root handlers above.
    logging.getLogger("uvicorn.error").setLevel(level)
    logging.getLogger("uvicorn.access").setLevel(level)
