"""
Logging configuration for the live-reload server.
Provides text or structured JSON logging and per-request correlation ids.
"""

import logging
import logging.handlers
import json
import time
import uuid
import sys
from datetime import datetime, timezone
from typing import Optional
from contextvars import ContextVar
from pathlib import Path

from liver.core.config import LoggingConfig

# Context variable for request correlation
request_id_context: ContextVar[Optional[str]] = ContextVar('request_id', default=None)

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured JSON logging."""

    def __init__(self, include_request_id: bool = True):
        super().__init__()
        self.include_request_id = include_request_id

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread": record.threadName,
        }

        if self.include_request_id:
            request_id = request_id_context.get()
            if request_id:
                log_entry["request_id"] = request_id

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS and key not in log_entry:
                log_entry[key] = value

        return json.dumps(log_entry, ensure_ascii=False, default=str)


def setup_logging(config: LoggingConfig) -> None:
    """Setup application logging configuration."""
    if config.format == "json":
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(config.level)

    handlers = [console_handler]
    if config.log_file:
        log_path = Path(config.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_path,
            maxBytes=config.max_file_size,
            backupCount=config.backup_count,
            encoding='utf-8'
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(config.level)
        handlers.append(file_handler)

    logging.basicConfig(
        level=config.level,
        handlers=handlers,
        force=True
    )

    # Request logging middleware already covers what the access log would say
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    logging.getLogger("watchdog").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.debug(f"Logging configured with level {config.level} and format {config.format}")


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set request ID in context for correlation."""
    if request_id is None:
        request_id = uuid.uuid4().hex[:12]
    request_id_context.set(request_id)
    return request_id


def get_request_id() -> Optional[str]:
    """Get current request ID from context."""
    return request_id_context.get()


def clear_request_id() -> None:
    """Clear request ID from context."""
    request_id_context.set(None)


class StructuredLogger:
    """Logger wrapper that takes structured fields as keyword arguments."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(name)

    def debug(self, message: str, **extra):
        self.logger.debug(message, extra=extra)

    def info(self, message: str, **extra):
        self.logger.info(message, extra=extra)

    def warning(self, message: str, exc_info=None, **extra):
        self.logger.warning(message, exc_info=exc_info, extra=extra)

    def error(self, message: str, exc_info=None, **extra):
        """Log error message with extra fields and optional exception info."""
        self.logger.error(message, exc_info=exc_info, extra=extra)

    def critical(self, message: str, exc_info=None, **extra):
        """Log critical message with extra fields and optional exception info."""
        self.logger.critical(message, exc_info=exc_info, extra=extra)

    def log_request_metrics(self, method: str, path: str, status_code: int, started: float, **extra):
        """Log HTTP request timing measured from ``started`` (a ``time.monotonic()`` value)."""
        duration = time.monotonic() - started
        self.logger.info(
            f"{method} {path} -> {status_code}",
            extra={
                "method": method,
                "request_path": path,
                "status_code": status_code,
                "duration_ms": round(duration * 1000, 2),
                **extra
            }
        )
