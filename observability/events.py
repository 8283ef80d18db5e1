"""
Best-effort persistence of pipeline events as LogRecords.

A failing log write is reported to the trace logger and never reaches the caller.
"""

from typing import Any, Optional

from observability.logger import trace_logger


async def record_event(
    logs: Optional[Any],
    level: str,
    message: str,
    **metadata: Any
) -> None:
    """Write an event to the trace logger and to the logs repository."""
    trace_logger.pipeline_event(level, message, metadata)

    if logs is None:
        return

    try:
        await logs.create(level=level, message=message, metadata=metadata)
    except Exception as e:
        trace_logger.error_occurred(
            error_type="log_persistence_error",
            error_message=str(e),
            context={"event": message}
        )
