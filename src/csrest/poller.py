"""
Task completion polling.

Fetches a task on a fixed tick until it reaches a terminal status, the
deadline passes, or the caller cancels. The deadline is only checked at tick
boundaries, so a timeout can overrun by up to one poll interval.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from core.errors.exceptions import TaskTimeoutError
from core.logging.context_managers import LogContext
from core.resilience.retry import cancellable_sleep
from csrest.schemas.tasks import TaskDetailDto

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 2.0

TaskFetcher = Callable[[str], Awaitable[TaskDetailDto | None]]


async def wait_for_task_completion(
    fetch: TaskFetcher,
    task_id: str,
    timeout: float,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    cancel_event: asyncio.Event | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> TaskDetailDto:
    """
    Poll ``fetch(task_id)`` until the task is terminal.

    The first fetch happens one ``poll_interval`` after the call. Each tick
    performs exactly one fetch; fetch errors propagate unchanged since the
    fetch already went through the retry coordinator.

    Args:
        fetch: Coroutine function returning the current task snapshot
        task_id: Task to wait for
        timeout: Seconds until the deadline, measured from the call
        poll_interval: Seconds between fetches
        cancel_event: Optional caller cancellation signal
        clock: Monotonic clock, injectable for tests

    Returns:
        The first snapshot with a terminal status (COMPLETED, FAILED or
        OUTPUT_RECEIVED)

    Raises:
        TaskTimeoutError: a tick found the deadline already passed (a zero or
            negative timeout times out at the first tick)
        RequestCancelledError: the cancel event fired
        ValueError: poll_interval is not positive
    """
    if poll_interval <= 0:
        raise ValueError(f"poll_interval must be > 0, got {poll_interval}")

    start = clock()
    deadline = start + timeout
    poll_count = 0
    last_status: str | None = None

    with LogContext(task_id=task_id, operation="wait_for_task"):
        logger.debug(
            "Waiting for task completion",
            extra={
                "task_id": task_id,
                "timeout_seconds": timeout,
                "poll_interval_seconds": poll_interval,
            },
        )

        while True:
            await cancellable_sleep(poll_interval, cancel_event)

            if clock() > deadline:
                logger.warning(
                    "Timed out waiting for task",
                    extra={
                        "task_id": task_id,
                        "task_status": last_status,
                        "poll_count": poll_count,
                        "timeout_seconds": timeout,
                        "duration_seconds": round(clock() - start, 3),
                    },
                )
                raise TaskTimeoutError(task_id, timeout, last_status)

            poll_count += 1
            task = await fetch(task_id)

            if task is None:
                logger.debug(
                    "Task poll returned no body",
                    extra={"task_id": task_id, "poll_count": poll_count},
                )
                continue

            last_status = task.task_status.value
            logger.debug(
                "Task poll",
                extra={
                    "task_id": task_id,
                    "task_status": last_status,
                    "poll_count": poll_count,
                },
            )

            if task.is_terminal:
                logger.info(
                    "Task reached terminal status",
                    extra={
                        "task_id": task_id,
                        "task_status": last_status,
                        "poll_count": poll_count,
                        "duration_seconds": round(clock() - start, 3),
                    },
                )
                return task


__all__ = ["DEFAULT_POLL_INTERVAL", "TaskFetcher", "wait_for_task_completion"]
