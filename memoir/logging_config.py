"""
Structured logging configuration.

JSON output for production and a human-readable format for development.
Core services attach user_id, merger_id and collision_id as extra fields.
"""

import json
import logging
import sys
from datetime import datetime
from typing import Any, Dict, Optional

from memoir.config import settings

# Context fields rendered explicitly by both formatters
CONTEXT_FIELDS = ("user_id", "merger_id", "collision_id")

_RESERVED = {
    "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
    "module", "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "message", "taskName",
    "exc_info", "exc_text", "stack_info",
} | set(CONTEXT_FIELDS)


class StructuredFormatter(logging.Formatter):
    """
    Structured JSON formatter for production logging.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for field in CONTEXT_FIELDS:
            if hasattr(record, field):
                log_data[field] = str(getattr(record, field))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Any other extra fields
        for key, value in record.__dict__.items():
            if key not in _RESERVED:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Human-readable formatter for development.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as human-readable string."""
        parts = [
            f"[{record.levelname:8s}]",
            f"{record.module}:{record.lineno}",
        ]

        if hasattr(record, "user_id"):
            parts.append(f"user:{str(record.user_id)[:8]}")

        if hasattr(record, "merger_id"):
            parts.append(f"merger:{str(record.merger_id)[:8]}")

        if hasattr(record, "collision_id"):
            parts.append(f"collision:{str(record.collision_id)[:8]}")

        parts.append(record.getMessage())

        if record.exc_info:
            parts.append(f"\n{self.formatException(record.exc_info)}")

        return " | ".join(parts)


def setup_logging(use_json: Optional[bool] = None) -> None:
    """
    Set up application logging.

    Args:
        use_json: If True, use JSON formatting. If None, follow settings.log_format.
    """
    if use_json is None:
        use_json = settings.log_format == "json"

    formatter = StructuredFormatter() if use_json else HumanReadableFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Set levels for third-party loggers
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("alembic").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


# Initialize logging on module import
setup_logging()
