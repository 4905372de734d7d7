"""Loguru sinks and per-request log context for StudyHub.

Every API request runs inside a small context: the ``X-Request-ID`` the
middleware assigned, the id of the signed-in user once the session token has
been resolved, and the route being served (``"PUT /api/books"``). Log lines
written anywhere below the route handler pick that context up, so a single
request can be followed through services, repositories and exports.

Two output styles are available:

- readable, colored lines for development and the ``studyhub`` CLI
- one JSON object per line for production (``log_json``), carrying the
  request context plus anything bound with ``logger.bind(...)``

Example:
    >>> from studyhub.logging import logger, set_request_context
    >>> set_request_context(request_id="7f3c", operation="POST /api/goals")
    >>> logger.bind(goal_id="g1").info("🎯 Created goal")
"""

import json
import sys
import traceback
from contextvars import ContextVar
from pathlib import Path
from typing import Any

from loguru import logger as loguru_logger

from studyhub.config import settings

# =============================================================================
# Request Context
# =============================================================================

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
operation_var: ContextVar[str | None] = ContextVar("operation", default=None)

_CONTEXT: dict[str, ContextVar[str | None]] = {
    "request_id": request_id_var,
    "user_id": user_id_var,
    "operation": operation_var,
}

READABLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time} | {level} | {message}"


# =============================================================================
# JSON Lines
# =============================================================================


def serialize(record: dict[str, Any]) -> str:
    """Render a log record as one JSON line.

    The request context is added only for the keys that are set; a CLI
    command or a startup message therefore has no ``request_id``. Values
    bound with ``logger.bind`` (``goal_id``, ``backup`` ...) come last and
    win on a name clash.
    """
    entry: dict[str, Any] = {
        "time": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "module": record["module"],
        "function": record["function"],
        "line": record["line"],
    }
    entry.update({key: value for key, value in get_request_context().items() if value})
    entry.update(record["extra"])

    exc = record["exception"]
    if exc:
        entry["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value),
            "traceback": traceback.format_exception(exc.type, exc.value, exc.traceback),
        }
    return json.dumps(entry, default=str)


def patching(record: dict[str, Any]) -> None:
    record["serialized"] = serialize(record)


def custom_formatter(record: dict[str, Any]) -> str:
    return "{serialized}\n"


# =============================================================================
# Sinks
# =============================================================================


def setup_logging(
    level: str = "INFO",
    json_logs: bool = False,
    log_file: Path | None = None,
    colorize: bool = True,
) -> Any:
    """(Re)configure StudyHub's log sinks.

    Called once at import with the active settings, and again by each CLI
    command so ``--verbose`` can lower the level. Existing sinks are dropped
    first.

    Args:
        level: Minimum level written to every sink
        json_logs: Write JSON lines instead of readable lines
        log_file: Also append to this file, rotated at 50 MB and kept 30 days
        colorize: Color the readable stderr lines

    Returns:
        Logger whose records carry the ``serialized`` JSON line
    """
    loguru_logger.remove()
    patched = loguru_logger.patch(patching)

    if json_logs:
        patched.add(sys.stderr, level=level, format=custom_formatter)
    else:
        patched.add(sys.stderr, level=level, format=READABLE_FORMAT, colorize=colorize)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        patched.add(
            log_file,
            level=level,
            format=custom_formatter if json_logs else FILE_FORMAT,
            rotation="50 MB",
            retention="30 days",
            compression="zip",
            enqueue=True,
        )

    return patched


logger = setup_logging(
    level=settings.log_level,
    json_logs=settings.log_json,
    log_file=settings.log_file,
    colorize=not settings.log_json,
)


# =============================================================================
# Context Helpers
# =============================================================================


def set_request_context(
    request_id: str | None = None,
    user_id: str | None = None,
    operation: str | None = None,
) -> None:
    """Record who is being served and what for.

    The request middleware sets ``request_id`` and ``operation``; the
    ``current_user`` dependency adds ``user_id`` once the token resolves.
    Arguments left as None keep their current value.
    """
    for key, value in (("request_id", request_id), ("user_id", user_id), ("operation", operation)):
        if value is not None:
            _CONTEXT[key].set(value)


def clear_request_context() -> None:
    """Forget the request context once the response has been sent."""
    for var in _CONTEXT.values():
        var.set(None)


def get_request_context() -> dict[str, str | None]:
    return {key: var.get() for key, var in _CONTEXT.items()}


__all__ = [
    "logger",
    "request_id_var",
    "user_id_var",
    "operation_var",
    "set_request_context",
    "clear_request_context",
    "get_request_context",
    "setup_logging",
]
