"""
JSON-lines logging for the SceneSync server.

Every record carries two context ids when they are bound: ``request_id`` for
HTTP requests (set by ``RequestContextMiddleware``) and ``participant`` for
websocket sessions. Anything passed through ``extra=`` lands under ``extra``.
"""

from __future__ import annotations

import json
import logging
import os
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

DEFAULT_LOG_FILE = "server.log"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 5

_request_id: ContextVar[Optional[str]] = ContextVar("scenesync_request_id", default=None)
_participant: ContextVar[Optional[str]] = ContextVar("scenesync_participant", default=None)

# Attributes every LogRecord has; anything else came in through ``extra=``.
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "request_id", "participant"}


def set_request_id(value: Optional[str]) -> Token:
    return _request_id.set(value)


def get_request_id() -> Optional[str]:
    return _request_id.get()


def reset_request_id(token: Token) -> None:
    _request_id.reset(token)


def bind_participant(participant_id: Optional[str]) -> Token:
    """Stamp ``participant_id`` on records logged from the current session."""
    return _participant.set(participant_id)


def unbind_participant(token: Token) -> None:
    _participant.reset(token)


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id.get()
        record.participant = _participant.get()
        return True


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return repr(value)
    return value


class JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in ("request_id", "participant"):
            value = getattr(record, key, None)
            if value:
                entry[key] = value
        extra = {
            key: _jsonable(value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS
        }
        if extra:
            entry["extra"] = extra
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=True)


def default_log_dir() -> Path:
    override = os.getenv("LOG_DIR") or os.getenv("SCENESYNC_LOG_DIR")
    return Path(override).expanduser() if override else Path("logs")


def _level(name: str) -> int:
    value = logging.getLevelName(str(name).upper())
    return value if isinstance(value, int) else logging.INFO


def _build_handlers(log_path: Path) -> List[logging.Handler]:
    formatter = JsonLineFormatter()
    context = ContextFilter()
    handlers: List[logging.Handler] = [
        RotatingFileHandler(
            log_path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
        ),
        logging.StreamHandler(),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(context)
    return handlers


def init_logging(
    log_dir: str | os.PathLike[str] | None = None,
    *,
    level: str = "INFO",
    filename: str = DEFAULT_LOG_FILE,
) -> Path:
    """Route root logging to ``<log_dir>/<filename>`` and stderr as JSON lines.

    Calling it again swaps the handlers rather than stacking them.
    """
    base = Path(log_dir).expanduser() if log_dir else default_log_dir()
    base.mkdir(parents=True, exist_ok=True)
    log_path = base / filename

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in _build_handlers(log_path):
        root.addHandler(handler)
    root.setLevel(_level(level))
    return log_path


__all__ = [
    "ContextFilter",
    "JsonLineFormatter",
    "bind_participant",
    "default_log_dir",
    "get_request_id",
    "init_logging",
    "reset_request_id",
    "set_request_id",
    "unbind_participant",
]
