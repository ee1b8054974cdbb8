"""
Retry coordination with a fixed inter-attempt delay.

Uses the exception hierarchy to make retry decisions:
- Retryable ApiError: wait retry_delay, then try again
- Non-retryable ApiError: fail immediately (no retry)
- Cancel event set: fail immediately with RequestCancelledError
- Budget spent: RetryExhaustedError carrying the last failure

The budget is a number of attempts, not a duration. Overall deadlines belong
to the caller (``asyncio.timeout`` or a cancel event), which keeps the retry
policy independent of per-call cancellation.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from core.errors.exceptions import (
    ApiError,
    RequestCancelledError,
    RetryExhaustedError,
    is_retryable_error,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _log_retry_failure(
    operation: str,
    error: ApiError,
    attempt: int,
    config: "RetryConfig",
) -> None:
    """Log a permanent error that stops the retry loop."""
    logger.warning(
        "Permanent error for %s, not retrying: %s",
        operation,
        error.message[:200],
        extra={
            "operation": operation,
            "attempt": attempt + 1,
            "max_attempts": config.total_attempts,
            "http_status": error.status_code,
            "error_category": error.category.value,
            "error_message": error.message[:200],
        },
    )


def _log_retry_attempt(
    operation: str,
    error: ApiError,
    attempt: int,
    config: "RetryConfig",
    delay: float,
) -> None:
    logger.warning(
        "Retryable error for %s, will retry",
        operation,
        extra={
            "operation": operation,
            "attempt": attempt + 1,
            "max_attempts": config.total_attempts,
            "http_status": error.status_code,
            "error_category": error.category.value,
            "delay_seconds": round(delay, 2),
            "error_message": error.message[:200],
        },
    )


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    # Retries after the first attempt; total attempts is max_retries + 1
    max_retries: int = 3
    retry_delay: float = 2.0

    def __post_init__(self):
        """Ensure proper types from YAML/env vars."""
        self.max_retries = int(self.max_retries)
        self.retry_delay = float(self.retry_delay)
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.retry_delay < 0:
            raise ValueError(f"retry_delay must be >= 0, got {self.retry_delay}")

    @property
    def total_attempts(self) -> int:
        return self.max_retries + 1

    def get_delay(self, attempt: int) -> float:
        """
        Delay before the given 0-indexed attempt.

        The delay is fixed; the first attempt never waits.
        """
        if attempt <= 0:
            return 0.0
        return self.retry_delay


# Default configuration
DEFAULT_RETRY = RetryConfig(max_retries=3, retry_delay=2.0)


async def cancellable_sleep(delay: float, cancel_event: asyncio.Event | None = None) -> None:
    """
    Wait ``delay`` seconds unless the cancel event fires first.

    Raises:
        RequestCancelledError: if the event is already set or becomes set
            during the wait
    """
    if cancel_event is None:
        await asyncio.sleep(delay)
        return

    if cancel_event.is_set():
        raise RequestCancelledError("cancelled before wait")

    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
    except TimeoutError:
        return

    raise RequestCancelledError("cancelled during wait")


async def run_cancellable(
    aw: Awaitable[T],
    cancel_event: asyncio.Event | None = None,
) -> T:
    """
    Await ``aw`` but give up as soon as the cancel event fires.

    The losing side is cancelled and awaited so no task is left running.

    Raises:
        RequestCancelledError: if the event fires before ``aw`` completes
    """
    if cancel_event is None:
        return await aw

    if cancel_event.is_set():
        if asyncio.iscoroutine(aw):
            aw.close()
        raise RequestCancelledError("cancelled before request")

    work = asyncio.ensure_future(aw)
    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        # Outer cancellation lands here too; never leak either task
        for pending in (work, waiter):
            if not pending.done():
                pending.cancel()
        await asyncio.gather(work, waiter, return_exceptions=True)

    if work.cancelled():
        raise RequestCancelledError("cancelled during request")
    return work.result()


async def execute_with_retry(
    attempt_fn: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    cancel_event: asyncio.Event | None = None,
    operation: str = "request",
) -> T:
    """
    Run ``attempt_fn`` up to ``config.total_attempts`` times.

    Attempts are strictly sequential. Before every attempt after the first,
    waits ``config.retry_delay``; the wait is preempted by the cancel event.
    Native task cancellation (``asyncio.CancelledError``) is never caught.

    Args:
        attempt_fn: Zero-argument coroutine factory performing one attempt.
            Failures must be raised as ApiError.
        config: Retry configuration (defaults to DEFAULT_RETRY)
        cancel_event: Optional caller cancellation signal
        operation: Name used in log records

    Returns:
        The first successful attempt's result

    Raises:
        ApiError: first non-retryable failure, unchanged
        RequestCancelledError: cancel event fired during a wait or after a failure
        RetryExhaustedError: every attempt failed with a retryable error
    """
    if config is None:
        config = DEFAULT_RETRY

    last_error: ApiError | None = None

    for attempt in range(config.total_attempts):
        if attempt > 0:
            await cancellable_sleep(config.get_delay(attempt), cancel_event)

        try:
            result = await attempt_fn()
        except ApiError as e:
            if not is_retryable_error(e):
                _log_retry_failure(operation, e, attempt, config)
                raise

            if cancel_event is not None and cancel_event.is_set():
                raise RequestCancelledError(
                    f"cancelled after attempt {attempt + 1} of {operation}"
                ) from e

            last_error = e
            if attempt + 1 < config.total_attempts:
                _log_retry_attempt(
                    operation, e, attempt, config, config.get_delay(attempt + 1)
                )
            continue

        if attempt > 0:
            logger.info(
                "Retry succeeded for %s after %d attempts",
                operation,
                attempt + 1,
                extra={
                    "operation": operation,
                    "attempt": attempt + 1,
                    "total_attempts": config.total_attempts,
                },
            )
        return result

    # Loop only exits normally after at least one retryable failure
    assert last_error is not None
    logger.error(
        "Max retries exhausted for %s: %s",
        operation,
        last_error.message[:200],
        extra={
            "operation": operation,
            "max_attempts": config.total_attempts,
            "http_status": last_error.status_code,
            "error_category": last_error.category.value,
            "error_message": last_error.message[:200],
        },
    )
    raise RetryExhaustedError(config.total_attempts, last_error) from last_error


__all__ = [
    "RetryConfig",
    "DEFAULT_RETRY",
    "cancellable_sleep",
    "run_cancellable",
    "execute_with_retry",
]
