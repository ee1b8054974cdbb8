"""Context managers for structured logging."""

from typing import Dict, Optional

from core.logging.context import get_log_context, set_log_context


class LogContext:
    """
    Context manager for temporary log context.

    Usage:
        with LogContext(task_id=task_id, operation="wait_for_task"):
            # All logs in this block will have task_id and operation
            await poll()

    Context variables are task-local under asyncio, so concurrent requests
    on one event loop do not see each other's context.
    """

    def __init__(
        self,
        operation: Optional[str] = None,
        beacon_id: Optional[str] = None,
        task_id: Optional[str] = None,
        trace_id: Optional[str] = None,
    ):
        self.new_context = {
            "operation": operation,
            "beacon_id": beacon_id,
            "task_id": task_id,
            "trace_id": trace_id,
        }
        self.old_context: Dict[str, str] = {}

    def __enter__(self) -> "LogContext":
        self.old_context = get_log_context()
        for key, value in self.new_context.items():
            if value is not None:
                set_log_context(**{key: value})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        # Restore old context
        set_log_context(
            operation=self.old_context.get("operation", ""),
            beacon_id=self.old_context.get("beacon_id", ""),
            task_id=self.old_context.get("task_id", ""),
            trace_id=self.old_context.get("trace_id", ""),
        )
        return False
