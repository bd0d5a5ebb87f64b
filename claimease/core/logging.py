"""
Structured application logging.

Every record is rendered as one JSON object per line and written to stdout and
to daily files under ``LOG_FILE_PATH``:

    app-YYYY-MM-DD.log     every record at or above LOG_LEVEL
    error-YYYY-MM-DD.log   errors only
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from claimease.core.config import settings

ROOT_LOGGER_NAME = "claimease"

LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

SLOW_OPERATION_MS = 1000


class JSONFormatter(logging.Formatter):
    """Render a record as ``{timestamp, level, message, **meta}``."""

    def format(self, record: logging.LogRecord) -> str:
        level = "WARN" if record.levelno == logging.WARNING else record.levelname
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": level,
            "message": record.getMessage(),
        }
        meta = getattr(record, "meta", None)
        if meta:
            entry.update(meta)
        if record.exc_info:
            entry["stack"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class DailyFileHandler(logging.Handler):
    """Append records to ``<LOG_FILE_PATH>/<prefix>-<UTC date>.log``.

    The target file is resolved per record, so the date rolls over without a
    restart and a changed ``LOG_FILE_PATH`` takes effect immediately.
    """

    def __init__(self, prefix: str, level: int = logging.NOTSET):
        super().__init__(level)
        self.prefix = prefix

    def current_path(self) -> Path:
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        return Path(settings.LOG_FILE_PATH) / f"{self.prefix}-{today}.log"

    def emit(self, record: logging.LogRecord):
        if not settings.LOG_TO_FILE:
            return
        try:
            line = self.format(record)
            path = self.current_path()
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
        except Exception:
            self.handleError(record)


def resolve_level(name: Optional[str] = None) -> int:
    return LEVELS.get((name or settings.LOG_LEVEL).lower(), logging.INFO)


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """Attach the stdout and daily-file handlers to the package root logger."""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(resolve_level(level))
    root.propagate = False

    if not root.handlers:
        formatter = JSONFormatter()

        console = logging.StreamHandler(sys.stdout)
        console.setFormatter(formatter)
        root.addHandler(console)

        app_file = DailyFileHandler("app")
        app_file.setFormatter(formatter)
        root.addHandler(app_file)

        error_file = DailyFileHandler("error", level=logging.ERROR)
        error_file.setFormatter(formatter)
        root.addHandler(error_file)

    return root


class AppLogger:
    """Application logger with domain-specific helpers."""

    def __init__(self, name: str):
        if not name.startswith(ROOT_LOGGER_NAME):
            name = f"{ROOT_LOGGER_NAME}.{name}"
        self.logger = logging.getLogger(name)
        configure_logging()

    def _log(self, level: int, message: str, exc_info: bool = False, **meta):
        self.logger.log(level, message, exc_info=exc_info, extra={"meta": meta})

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, **kwargs)

    warn = warning

    def error(self, message: str, **kwargs):
        self._log(logging.ERROR, message, **kwargs)

    def exception(self, message: str, **kwargs):
        self._log(logging.ERROR, message, exc_info=True, **kwargs)

    # ===================
    # Domain helpers
    # ===================

    def log_request(self, method: str, url: str, status_code: int, duration_ms: float,
                    user_id: Optional[str] = None, ip: Optional[str] = None):
        self.info(
            "HTTP Request",
            method=method,
            url=url,
            status_code=status_code,
            response_time=f"{duration_ms:.0f}ms",
            user_id=user_id,
            ip=ip,
        )

    def log_database(self, operation: str, collection: str, duration_ms: Optional[float] = None, **meta):
        self.debug(
            "Database Operation",
            operation=operation,
            collection=collection,
            duration=f"{duration_ms:.0f}ms" if duration_ms is not None else None,
            **meta,
        )

    def log_auth(self, action: str, user_id: Optional[str] = None, success: bool = True, **meta):
        self.info("Authentication", action=action, user_id=user_id, success=success, **meta)

    def log_security(self, event: str, severity: str = "medium", **meta):
        level = logging.ERROR if severity == "high" else logging.WARNING
        self._log(level, "Security Event", event=event, severity=severity, **meta)

    def log_business(self, event: str, **meta):
        self.info("Business Event", event=event, **meta)

    def log_performance(self, operation: str, duration_ms: float, **meta):
        level = logging.WARNING if duration_ms > SLOW_OPERATION_MS else logging.DEBUG
        self._log(level, "Performance Metric", operation=operation,
                  duration=f"{duration_ms:.0f}ms", **meta)

    def log_email(self, action: str, recipient: str, subject: str, success: bool = True, **meta):
        self.info("Email Operation", action=action, recipient=recipient,
                  subject=subject, success=success, **meta)

    def log_file(self, action: str, filename: str, size: Optional[int] = None,
                 user_id: Optional[str] = None, **meta):
        self.info("File Operation", action=action, filename=filename,
                  size=size, user_id=user_id, **meta)

    def log_payment(self, action: str, payment_id: str, amount: float,
                    user_id: Optional[str] = None, status: Optional[str] = None, **meta):
        self.info("Payment Operation", action=action, payment_id=payment_id,
                  amount=amount, user_id=user_id, status=status, **meta)

    def log_claim(self, action: str, claim_id: str, user_id: Optional[str] = None,
                  status: Optional[str] = None, **meta):
        self.info("Claim Operation", action=action, claim_id=claim_id,
                  user_id=user_id, status=status, **meta)

    def log_policy(self, action: str, policy_id: str, user_id: Optional[str] = None,
                   policy_type: Optional[str] = None, **meta):
        self.info("Policy Operation", action=action, policy_id=policy_id,
                  user_id=user_id, policy_type=policy_type, **meta)


def get_logger(name: str) -> AppLogger:
    """Get a logger instance."""
    return AppLogger(name)
