"""Observability module with structured logging."""

from observability.logger import TraceLogger, trace_logger
from observability.events import record_event

__all__ = ["TraceLogger", "trace_logger", "record_event"]
