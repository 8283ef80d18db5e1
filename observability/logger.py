"""
Structured logging with trace IDs for observability.
Lead intake, inbox polling, draft approval and scoring are logged here.
"""

import logging
import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pathlib import Path
from contextlib import contextmanager
from contextvars import ContextVar
from pythonjsonlogger import jsonlogger

from config import settings


_RESERVED_RECORD_KEYS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

_current_trace_id: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)


class TraceLogger:
    """Structured logger with trace ID support for CRM pipelines."""

    def __init__(self, name: str = "lead_crm"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, settings.log_level))

        if not self.logger.handlers:
            # Ensure log directory exists
            log_file_path = Path(settings.log_file)
            log_file_path.parent.mkdir(parents=True, exist_ok=True)

            # File handler with JSON formatting
            file_handler = logging.FileHandler(settings.log_file)
            json_formatter = jsonlogger.JsonFormatter(
                fmt='%(asctime)s %(name)s %(levelname)s %(message)s',
                rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
            )
            file_handler.setFormatter(json_formatter)
            self.logger.addHandler(file_handler)

            # Console handler with readable formatting
            console_handler = logging.StreamHandler()
            console_formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            console_handler.setFormatter(console_formatter)
            self.logger.addHandler(console_handler)

    def generate_trace_id(self) -> str:
        """Generate a new trace ID."""
        return str(uuid.uuid4())

    @contextmanager
    def trace(self, trace_id: Optional[str] = None):
        """Context manager for trace ID. Scoped to the current task."""
        token = _current_trace_id.set(trace_id or self.generate_trace_id())
        try:
            yield _current_trace_id.get()
        finally:
            _current_trace_id.reset(token)

    def _log(self, level: str, event: str, **kwargs):
        """Internal log method with trace ID."""
        log_data = {
            "trace_id": _current_trace_id.get() or "unknown",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "event": event,
            **kwargs
        }

        # LogRecord refuses extra keys that shadow its own attributes
        extra = {k: v for k, v in log_data.items() if k not in _RESERVED_RECORD_KEYS}

        log_method = getattr(self.logger, level.lower())
        log_method(json.dumps(log_data, default=str), extra=extra)

    def pipeline_event(
        self,
        level: str,
        event: str,
        metadata: Optional[Dict[str, Any]] = None
    ):
        """Log a domain event emitted by one of the lead/email pipelines."""
        # the "warn" level used by persisted log records maps onto logging.warning
        python_level = "warning" if level == "warn" else level
        self._log(python_level, event, **(metadata or {}))

    def retry_scheduled(
        self,
        operation: str,
        attempt: int,
        max_attempts: int,
        error: str,
        **kwargs
    ):
        """Log a retry of a transient failure."""
        self._log(
            "warning",
            "retry_scheduled",
            operation=operation,
            attempt=attempt,
            max_attempts=max_attempts,
            error=error,
            **kwargs
        )

    def poll_completed(
        self,
        summary: Dict[str, int],
        after: Optional[str],
        **kwargs
    ):
        """Log completion of an inbox poll batch."""
        self._log(
            "info",
            "poll_completed",
            after=after,
            summary=summary,
            **kwargs
        )

    def error_occurred(
        self,
        error_type: str,
        error_message: str,
        context: Optional[Dict] = None,
        **kwargs
    ):
        """Log error."""
        self._log(
            "error",
            "error_occurred",
            error_type=error_type,
            error_message=error_message,
            context=context or {},
            **kwargs
        )

    def debug(self, message: str, **kwargs):
        """Debug level log."""
        self._log("debug", "debug", message=message, **kwargs)

    def info(self, message: str, **kwargs):
        """Info level log."""
        self._log("info", "info", message=message, **kwargs)

    def warning(self, message: str, **kwargs):
        """Warning level log."""
        self._log("warning", "warning", message=message, **kwargs)

    def error(self, message: str, **kwargs):
        """Error level log."""
        self._log("error", "error", message=message, **kwargs)


# Global logger instance
trace_logger = TraceLogger()
