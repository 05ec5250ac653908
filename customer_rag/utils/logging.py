"""Structured logging with loguru for the Customer Retrieval Assistant."""

from __future__ import annotations

import sys
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger as _loguru_logger

if TYPE_CHECKING:
    from loguru import Logger

# Request-scoped metadata (set by middleware)
_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)
_caller_id: ContextVar[str | None] = ContextVar("caller_id", default=None)
_operation: ContextVar[str | None] = ContextVar("operation", default=None)

LOG_DIR = Path("logs")
LOG_FILE_NAME = "app.log"
ROTATION = "10 MB"
RETENTION = "7 days"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[module]}</cyan> | {message}"
)


def _enrich_record(record: dict) -> bool:
    """Copy context vars into the record before serialization."""
    rid = _request_id.get()
    cid = _caller_id.get()
    op = _operation.get()
    if rid is not None:
        record["extra"]["request_id"] = rid
    if cid is not None:
        record["extra"]["caller_id"] = cid
    if op is not None:
        record["extra"]["operation"] = op
    return True


def setup_logging(
    log_level: str = "INFO",
    log_dir: Path | str | None = None,
) -> None:
    """Configure loguru with a JSON file sink and a pretty console sink.

    - JSON lines in <log_dir>/app.log, rotated at 10 MB, kept 7 days
    - Human-readable output on stderr

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_dir: Optional directory for log files (used for tests).
    """
    _loguru_logger.remove()

    log_path = Path(log_dir) if log_dir else LOG_DIR
    log_path.mkdir(parents=True, exist_ok=True)

    _loguru_logger.add(
        log_path / LOG_FILE_NAME,
        format="{message}",
        rotation=ROTATION,
        retention=RETENTION,
        level=log_level,
        serialize=True,
        filter=_enrich_record,
    )
    _loguru_logger.add(
        sys.stderr,
        format=CONSOLE_FORMAT,
        level=log_level,
    )


def get_logger(module_name: str) -> Logger:
    """Return a logger bound to the given module name.

    Request context (request_id, caller_id, operation) is attached to file
    records automatically; callers may bind more fields with logger.bind().
    """
    return _loguru_logger.bind(module=module_name)


def set_request_context(
    request_id: str | None = None,
    caller_id: str | None = None,
    operation: str | None = None,
) -> None:
    """Set context for the current request (used by middleware)."""
    if request_id is not None:
        _request_id.set(request_id)
    if caller_id is not None:
        _caller_id.set(caller_id)
    if operation is not None:
        _operation.set(operation)


def clear_request_context() -> None:
    """Clear request context (call at end of request)."""
    _request_id.set(None)
    _caller_id.set(None)
    _operation.set(None)
