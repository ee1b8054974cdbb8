"""
Task schemas.

Tasks are created server-side when a command is issued to a beacon. The client
only observes snapshots of them; see csrest.poller for the wait loop.
"""

from datetime import datetime
from enum import Enum
from typing import Union

from pydantic import BaseModel, Field

# Result entries are an open map restricted to scalars and flat lists of
# scalars, so anything else is a decode error rather than an untyped value.
ResultScalar = Union[str, int, float, bool, None]
ResultValue = Union[ResultScalar, list[ResultScalar]]


class TaskStatus(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    OUTPUT_RECEIVED = "OUTPUT_RECEIVED"

    @property
    def is_terminal(self) -> bool:
        """No further transitions happen once a task reports this status."""
        return self in TERMINAL_TASK_STATUSES


TERMINAL_TASK_STATUSES = frozenset(
    {
        TaskStatus.COMPLETED,
        TaskStatus.FAILED,
        TaskStatus.OUTPUT_RECEIVED,
    }
)


class AsyncCommandResponse(BaseModel):
    """Acknowledgement returned when a command is queued on a beacon."""

    name: str = ""
    status: str = ""
    message: str = ""
    status_url: str | None = Field(default=None, alias="statusUrl")
    task_id: str | None = Field(default=None, alias="taskId")

    model_config = {"populate_by_name": True}


class ErrorMessageDto(BaseModel):
    message: str = ""
    time: datetime | None = None


class TaskSummaryDto(BaseModel):
    """Task snapshot without outputs."""

    task_id: str = Field(..., alias="taskId")
    bid: str = ""
    jid: int | None = None
    task_command: str = Field(default="", alias="taskCommand")
    user: str = ""
    created: datetime | None = None
    updated: datetime | None = None
    task_status: TaskStatus = Field(default=TaskStatus.NOT_FOUND, alias="taskStatus")

    model_config = {"populate_by_name": True}

    @property
    def is_terminal(self) -> bool:
        return self.task_status.is_terminal


class TaskDetailDto(TaskSummaryDto):
    """Task snapshot including result entries, errors and MITRE tactics."""

    result: list[dict[str, ResultValue]] | None = None
    error: list[ErrorMessageDto] | None = None
    tactics: list[str] | None = None

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "examples": [
                {
                    "taskId": "2c1f6a1e",
                    "bid": "1234567890",
                    "taskCommand": "shell whoami",
                    "user": "operator",
                    "created": "2026-10-19T10:30:00Z",
                    "taskStatus": "OUTPUT_RECEIVED",
                    "result": [{"output": "corp\\alice"}],
                }
            ]
        },
    }
