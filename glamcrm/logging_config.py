"""
Logging configuration for Glam CRM.

Every module logs through logging.getLogger(__name__), so all records land in
the 'glamcrm' logger tree and share one rotating file:

  Log file : logs/glamcrm.log   (5 MB × 3 backups)
  Level    : config.LOG_LEVEL   (LOG_LEVEL in .env, INFO when unset or unknown)

Lead records carry names, emails, phones and free-text notes, so @log_call
never writes them out: records are logged by id and dict payloads by key.

    2026-10-19 09:12:44 | DEBUG    | glamcrm | CALL save_lead | args=(<DashboardController>, <Lead l2>)
    2026-10-19 09:12:44 | INFO     | glamcrm | OK   save_lead | 18ms
    2026-10-19 09:12:45 | ERROR    | glamcrm | FAIL update_lead | NotFoundError: Lead l9 not found | 4ms
"""

import dataclasses
import functools
import logging
import logging.handlers
import time
from pathlib import Path
from typing import Any, Optional

from glamcrm.config import config

_LOG_DIR = Path(__file__).parent.parent / "logs"
_LOG_FILE = _LOG_DIR / "glamcrm.log"
_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_MAX_BYTES = 5 * 1024 * 1024
_BACKUP_COUNT = 3
_MAX_TEXT = 40
# Keyword arguments that carry contact details or free text
_PRIVATE_KWARGS = {"name", "email", "phone", "message", "notes", "internal_notes", "to"}


def _level(name: Optional[str]) -> int:
    level = logging.getLevelName((name or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Attach the rotating file handler to the 'glamcrm' logger and set its level.
    Calling it again only re-applies the level.
    """
    logger = logging.getLogger("glamcrm")
    logger.setLevel(_level(level or config.LOG_LEVEL))

    if any(isinstance(h, logging.handlers.RotatingFileHandler) for h in logger.handlers):
        return logger

    _LOG_DIR.mkdir(exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        _LOG_FILE, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT, encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(handler)
    return logger


def summarize(value: Any) -> str:
    """Short, PII-free rendering of a call argument."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        record_id = getattr(value, "id", None)
        name = type(value).__name__
        return f"<{name} {record_id}>" if record_id else f"<{name}>"
    if isinstance(value, dict):
        return "{" + ", ".join(sorted(str(key) for key in value)) + "}"
    if isinstance(value, (list, tuple, set)):
        return f"<{len(value)} items>"
    if isinstance(value, str):
        text = value if len(value) <= _MAX_TEXT else value[:_MAX_TEXT] + "…"
        return repr(text)
    if type(value).__repr__ is object.__repr__:
        return f"<{type(value).__name__}>"
    return repr(value)


def _keyword(key: str, value: Any) -> str:
    if key in _PRIVATE_KWARGS and value:
        return f"{key}=***"
    return f"{key}={summarize(value)}"


def log_call(func):
    """
    Trace a function: CALL at DEBUG, OK with timing at INFO, FAIL at ERROR.
    Exceptions are logged and re-raised unchanged.
    """
    logger = logging.getLogger("glamcrm")
    name = func.__name__

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        if logger.isEnabledFor(logging.DEBUG):
            shown = [summarize(a) for a in args] + [_keyword(k, v) for k, v in kwargs.items()]
            logger.debug(f"CALL {name} | args=({', '.join(shown) or '—'})")

        started = time.perf_counter()
        try:
            result = func(*args, **kwargs)
        except Exception as exc:
            logger.error(f"FAIL {name} | {type(exc).__name__}: {exc} | {_elapsed_ms(started)}ms")
            raise
        logger.info(f"OK   {name} | {_elapsed_ms(started)}ms")
        return result

    return wrapper


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
