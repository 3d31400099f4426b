"""
services/log_service.py — Structured audit/log events.

Every entry is one JSON object on the "auth.audit" logger:

    {"timestamp": "...Z", "level": "event", "event": "login_success",
     "details": {"user_id": "..."}}

Levels:
  structural  request lifecycle noise   → logging.DEBUG
  event       business events           → logging.INFO
  error       failures                  → logging.ERROR

Callers pass only non-sensitive details (ids, field names, status codes).
Never pass plaintext PII, passwords, or raw tokens.
"""

from __future__ import annotations

import json
import logging

from backend.app.utils.clock import utcnow

logger = logging.getLogger("auth.audit")


class LogLevel:
    STRUCTURAL = "structural"
    EVENT      = "event"
    ERROR      = "error"


_PY_LEVELS = {
    LogLevel.STRUCTURAL: logging.DEBUG,
    LogLevel.EVENT:      logging.INFO,
    LogLevel.ERROR:      logging.ERROR,
}


def build_log_entry(level: str, event: str, details: dict | None = None) -> dict:
    return {
        "timestamp": utcnow().isoformat().replace("+00:00", "Z"),
        "level": level,
        "event": event,
        "details": details or {},
    }


def _emit(level: str, event: str, details: dict) -> dict:
    entry = build_log_entry(level, event, details)
    logger.log(_PY_LEVELS[level], json.dumps(entry, default=str))
    return entry


def log_structured(event: str, **details) -> dict:
    return _emit(LogLevel.STRUCTURAL, event, details)


def log_event(event: str, **details) -> dict:
    return _emit(LogLevel.EVENT, event, details)


def log_error(event: str, **details) -> dict:
    return _emit(LogLevel.ERROR, event, details)
