"""
Fixed-delay retry for transient persistence and send failures.
"""

from typing import Awaitable, Callable, Optional, TypeVar
from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_fixed

from observability import trace_logger

T = TypeVar("T")


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    attempts: int,
    delay: float,
    on_retry: Optional[Callable[[BaseException, int], Awaitable[None]]] = None,
    name: str = "operation"
) -> T:
    """
    Run ``operation`` up to ``attempts`` times with a fixed delay in between.

    Sequential, no jitter. The last error is re-raised once attempts are
    exhausted.

    Args:
        operation: Zero-argument coroutine factory
        attempts: Maximum number of attempts (>= 1)
        delay: Seconds to wait between attempts
        on_retry: Awaited with (error, attempt number) before each retry
        name: Operation name used in trace logs

    Returns:
        Result of the first successful attempt
    """
    async def before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception()
        trace_logger.retry_scheduled(
            operation=name,
            attempt=retry_state.attempt_number,
            max_attempts=attempts,
            error=str(error)
        )
        if on_retry is not None:
            await on_retry(error, retry_state.attempt_number)

    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(attempts),
        wait=wait_fixed(delay),
        before_sleep=before_sleep,
        reraise=True
    ):
        with attempt:
            return await operation()
