"""
Logging configuration for the seat reservation service.
"""

import json
import logging
import logging.config
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from ..config import get_settings

APP_LOGGER = "seat_reservation"

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRIBUTES = frozenset({
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "lineno", "funcName", "created",
    "msecs", "relativeCreated", "thread", "threadName", "taskName",
    "processName", "process", "exc_info", "exc_text", "stack_info",
    "request_id", "message",
})


def _quiet_logger(level: str = "WARNING") -> Dict[str, Any]:
    return {"level": level, "handlers": ["console"], "propagate": False}


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    enable_json_logging: bool = False,
) -> None:
    """
    Configure the application loggers through ``logging.config.dictConfig``.

    Args:
        log_level: Logging level for application loggers
        log_file: Optional rotating log file path
        enable_json_logging: Emit one JSON document per record instead of text
    """
    settings = get_settings()
    formatter = "json" if enable_json_logging else "detailed"

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "detailed": {
                "format": (
                    "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d "
                    "[%(request_id)s] %(message)s"
                ),
                "datefmt": "%Y-%m-%d %H:%M:%S"
            },
            "json": {
                "()": f"{APP_LOGGER}.utils.logging_config.JSONFormatter",
            }
        },
        "filters": {
            "request_id": {
                "()": f"{APP_LOGGER}.utils.logging_config.RequestIDFilter"
            },
            "sensitive_data": {
                "()": f"{APP_LOGGER}.utils.logging_config.SensitiveDataFilter"
            }
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": log_level,
                "formatter": formatter,
                "stream": sys.stdout,
                "filters": ["request_id", "sensitive_data"]
            }
        },
        "loggers": {
            APP_LOGGER: {
                "level": log_level,
                "handlers": ["console"],
                "propagate": False
            },
            "uvicorn": _quiet_logger("INFO"),
            "uvicorn.access": _quiet_logger("INFO"),
            "celery": _quiet_logger("INFO"),
            "sqlalchemy.engine": _quiet_logger(),
            "sqlalchemy.pool": _quiet_logger(),
            "httpx": _quiet_logger(),
        },
        "root": {
            "level": log_level,
            "handlers": ["console"]
        }
    }

    if log_file:
        config["handlers"]["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": log_level,
            "formatter": formatter,
            "filename": log_file,
            "maxBytes": 10 * 1024 * 1024,  # 10MB
            "backupCount": 5,
            "filters": ["request_id", "sensitive_data"]
        }
        for logger_config in config["loggers"].values():
            logger_config["handlers"].append("file")
        config["root"]["handlers"].append("file")

    # Separate error stream in production so invariant violations stand out
    if settings.environment == "production":
        error_file = log_file.replace(".log", "_errors.log") if log_file else "logs/errors.log"
        Path(error_file).parent.mkdir(parents=True, exist_ok=True)
        config["handlers"]["error_file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "ERROR",
            "formatter": formatter,
            "filename": error_file,
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 10,
            "filters": ["request_id", "sensitive_data"]
        }
        config["loggers"][APP_LOGGER]["handlers"].append("error_file")

    logging.config.dictConfig(config)


class RequestIDFilter(logging.Filter):
    """Attach the current request id to every record."""

    def filter(self, record):
        if not getattr(record, "request_id", None):
            from seat_reservation.middleware.logging import request_id_var
            record.request_id = request_id_var.get() or "no-request-id"
        return True


class SensitiveDataFilter(logging.Filter):
    """Mask credentials and contact details before a record is emitted."""

    SENSITIVE_KEYS = {
        "password", "token", "secret", "authorization",
        "cookie", "api_key", "access_token", "smtp_password",
    }

    _EMAIL_PATTERN = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
    _BEARER_PATTERN = re.compile(r"(Bearer\s+)[A-Za-z0-9._-]+")

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = self._sanitize_string(record.msg)

        for key, value in list(record.__dict__.items()):
            if key in _RECORD_ATTRIBUTES:
                continue
            if key.lower() in self.SENSITIVE_KEYS:
                setattr(record, key, "***MASKED***")
            elif isinstance(value, (str, dict)):
                setattr(record, key, self._sanitize_data(value))

        return True

    def _sanitize_string(self, text: str) -> str:
        text = self._BEARER_PATTERN.sub(r"\1***MASKED***", text)
        return self._EMAIL_PATTERN.sub("***EMAIL***", text)

    def _sanitize_data(self, data):
        if isinstance(data, dict):
            return {
                key: "***MASKED***" if str(key).lower() in self.SENSITIVE_KEYS
                else self._sanitize_data(value)
                for key, value in data.items()
            }
        if isinstance(data, str):
            return self._sanitize_string(data)
        if isinstance(data, (list, tuple)):
            return type(data)(self._sanitize_data(item) for item in data)
        return data


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record):
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "request_id": getattr(record, "request_id", None),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extra_fields = {
            key: value for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRIBUTES
        }
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=str, ensure_ascii=False)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the specified name."""
    return logging.getLogger(name)


def log_business_event(event_type: str, details: Dict[str, Any], user_id: Optional[str] = None):
    """Record a reservation or quota change for auditing."""
    logger = get_logger(f"{APP_LOGGER}.business")
    logger.info(
        f"Business event: {event_type}",
        extra={
            "event_type": event_type,
            "business_event": True,
            "user_id": str(user_id) if user_id else None,
            **details
        }
    )


def log_security_event(event_type: str, details: Dict[str, Any], severity: str = "WARNING"):
    """Record an authentication or authorization failure."""
    logger = get_logger(f"{APP_LOGGER}.security")

    log_method = getattr(logger, severity.lower(), logger.warning)
    log_method(
        f"Security event: {event_type}",
        extra={
            "event_type": event_type,
            "security_event": True,
            "severity": severity,
            **details
        }
    )
