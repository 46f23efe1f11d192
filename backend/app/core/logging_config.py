"""
Credentials Portal - Logging

Every module logs through the single ``credportal`` logger exported here.
Development gets short human readable lines on stdout; production gets one
JSON object per line so the log shipper can index auth and sync events.
Request and user identifiers are carried in context variables and stamped on
every record by the formatters.
"""

import logging
import sys
import json
import traceback
import uuid
from datetime import datetime
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional
from contextvars import ContextVar

from app.core.config import settings


LOGGER_NAME = "credportal"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024

_request_id: ContextVar[str] = ContextVar("portal_request_id", default="")
_username: ContextVar[str] = ContextVar("portal_username", default="")

# Attributes every LogRecord carries; anything else came in through ``extra``
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime", "taskName"}

# Third party loggers that only matter when they fail
_QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine", "ldap3", "aiosmtplib")


def generate_request_id() -> str:
    return uuid.uuid4().hex[:12]


def get_request_id() -> str:
    return _request_id.get()


def set_request_id(request_id: str) -> None:
    _request_id.set(request_id)


def get_user_id() -> str:
    """Username of the authenticated caller, empty for anonymous requests"""
    return _username.get()


def set_user_id(username: str) -> None:
    _username.set(username)


def _event_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_ATTRS and not key.startswith("_")
    }


class JSONFormatter(logging.Formatter):
    """One JSON document per record, with request context and event fields"""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "ts": datetime.utcnow().isoformat(timespec="milliseconds") + "Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
            "request_id": get_request_id() or None,
            "username": get_user_id() or None,
        }
        entry.update(_event_fields(record))

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, exc_tb = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": "".join(traceback.format_exception(exc_type, exc_value, exc_tb)),
            }

        return json.dumps(entry, default=str)


class ContextualFormatter(logging.Formatter):
    """Plain text formatter exposing %(request_id)s and %(username)s"""

    def format(self, record: logging.LogRecord) -> str:
        record.request_id = get_request_id() or "-"
        record.username = get_user_id() or "-"
        return super().format(record)


class PortalLogger(logging.Logger):
    """Logger with helpers for the portal's recurring event shapes"""

    def log_request(self, method: str, path: str, status_code: int,
                    duration_ms: float, **kwargs) -> None:
        level = logging.WARNING if status_code >= 500 else logging.INFO
        self.log(
            level,
            "%s %s -> %d in %.1fms", method, path, status_code, duration_ms,
            extra={
                "event_type": "http_request",
                "http_method": method,
                "http_path": path,
                "http_status": status_code,
                "duration_ms": round(duration_ms, 2),
                **kwargs,
            },
        )

    def log_auth_event(self, event: str, success: bool, username: Optional[str] = None,
                       reason: Optional[str] = None, **kwargs) -> None:
        """Login, activation, recovery and credential changes; failures log at WARNING"""
        parts = [f"[{event}]", "ok" if success else "denied"]
        if username:
            parts.append(f"user={username}")
        if reason:
            parts.append(f"reason={reason}")

        self.log(
            logging.INFO if success else logging.WARNING,
            " ".join(parts),
            extra={
                "event_type": "auth",
                "auth_event": event,
                "auth_success": success,
                "auth_username": username,
                "failure_reason": reason,
                **kwargs,
            },
        )

    def log_sync_event(self, username: str, synced: bool,
                       reason: Optional[str] = None, **kwargs) -> None:
        """Outcome of pushing a password to the directory"""
        message = f"directory sync {'done' if synced else 'deferred'} for {username}"
        if reason:
            message += f": {reason}"

        self.log(
            logging.INFO if synced else logging.WARNING,
            message,
            extra={
                "event_type": "directory_sync",
                "sync_username": username,
                "sync_ok": synced,
                "failure_reason": reason,
                **kwargs,
            },
        )

    def log_error_with_context(self, error: Exception, context: Optional[str] = None,
                               **kwargs) -> None:
        self.error(
            "%s failed: %s: %s", context or "operation", type(error).__name__, error,
            exc_info=error,
            extra={
                "event_type": "error",
                "error_type": type(error).__name__,
                "error_context": context,
                **kwargs,
            },
        )


def _file_handler(formatter: logging.Formatter, backups: int) -> Optional[logging.Handler]:
    if not settings.LOG_FILE:
        return None

    path = Path(settings.LOG_FILE)
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=LOG_FILE_MAX_BYTES, backupCount=backups)
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def setup_logging() -> PortalLogger:
    """(Re)configure the portal logger for the current environment"""
    logging.setLoggerClass(PortalLogger)
    portal_logger = logging.getLogger(LOGGER_NAME)
    if not isinstance(portal_logger, PortalLogger):
        portal_logger.__class__ = PortalLogger

    portal_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    portal_logger.propagate = False
    portal_logger.handlers.clear()

    if settings.is_production:
        console_formatter = file_formatter = JSONFormatter()
        backups = 10
    else:
        console_formatter = ContextualFormatter("%(levelname)-7s %(message)s")
        file_formatter = ContextualFormatter(
            "%(asctime)s %(levelname)-7s req=%(request_id)s user=%(username)s "
            "%(module)s:%(lineno)d %(message)s"
        )
        backups = 5

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.INFO)
    console.setFormatter(console_formatter)
    portal_logger.addHandler(console)

    file_handler = _file_handler(file_formatter, backups)
    if file_handler is not None:
        portal_logger.addHandler(file_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    portal_logger.debug(
        "Logging configured",
        extra={"environment": settings.ENVIRONMENT, "json_logging": settings.is_production},
    )
    return portal_logger


logger: PortalLogger = setup_logging()


__all__ = [
    "logger",
    "setup_logging",
    "get_request_id",
    "set_request_id",
    "get_user_id",
    "set_user_id",
    "generate_request_id",
    "PortalLogger",
]
