"""Context variables for structured logging."""

from contextvars import ContextVar
from typing import Dict, Optional

_operation: ContextVar[str] = ContextVar("operation", default="")
_beacon_id: ContextVar[str] = ContextVar("beacon_id", default="")
_task_id: ContextVar[str] = ContextVar("task_id", default="")
_trace_id: ContextVar[str] = ContextVar("trace_id", default="")


def set_log_context(
    operation: Optional[str] = None,
    beacon_id: Optional[str] = None,
    task_id: Optional[str] = None,
    trace_id: Optional[str] = None,
) -> None:
    if operation is not None:
        _operation.set(operation)
    if beacon_id is not None:
        _beacon_id.set(beacon_id)
    if task_id is not None:
        _task_id.set(task_id)
    if trace_id is not None:
        _trace_id.set(trace_id)


def get_log_context() -> Dict[str, str]:
    return {
        "operation": _operation.get(),
        "beacon_id": _beacon_id.get(),
        "task_id": _task_id.get(),
        "trace_id": _trace_id.get(),
    }


def clear_log_context() -> None:
    _operation.set("")
    _beacon_id.set("")
    _task_id.set("")
    _trace_id.set("")
