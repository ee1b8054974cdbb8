"""
Wire schemas for the team server REST API.

Pydantic models decoded from and encoded to JSON by the client. Field names
are snake_case in Python; camelCase wire names are declared as aliases and
both spellings are accepted on input.
"""

from csrest.schemas.auth import AuthDto, LoginRequest
from csrest.schemas.beacons import BeaconDto, SleepDto
from csrest.schemas.commands import (
    BinaryArg,
    BofArgument,
    EmptyDto,
    InlineExecutePackDto,
    InlineExecutePackedDto,
    InlineExecuteStringDto,
    IntArg,
    PowerShellDto,
    ShortArg,
    StringArg,
    UploadDto,
    WStringArg,
)
from csrest.schemas.tasks import (
    TERMINAL_TASK_STATUSES,
    AsyncCommandResponse,
    ErrorMessageDto,
    ResultValue,
    TaskDetailDto,
    TaskStatus,
    TaskSummaryDto,
)

__all__ = [
    # Auth
    "LoginRequest",
    "AuthDto",
    # Beacons
    "BeaconDto",
    "SleepDto",
    # Tasks
    "TaskStatus",
    "TERMINAL_TASK_STATUSES",
    "TaskSummaryDto",
    "TaskDetailDto",
    "ErrorMessageDto",
    "AsyncCommandResponse",
    "ResultValue",
    # Commands
    "InlineExecuteStringDto",
    "InlineExecutePackedDto",
    "InlineExecutePackDto",
    "BofArgument",
    "BinaryArg",
    "IntArg",
    "ShortArg",
    "StringArg",
    "WStringArg",
    "PowerShellDto",
    "UploadDto",
    "EmptyDto",
]
