"""
Unified exception hierarchy for the csrest client.

Provides typed exceptions with retry classification so that the retry
coordinator and callers can make decisions without parsing messages.

Every failure a caller can observe is one of:
- ApiError: a single request failed (status code, message, retryable flag)
- RetryExhaustedError: every attempt failed with a retryable ApiError
- RequestCancelledError: the caller's cancel event fired
- TaskTimeoutError: a task did not reach a terminal status in time
"""

# Import ErrorCategory from canonical source to avoid duplicate enum issues
# (comparing enums from different classes always returns False)
from core.types import ErrorCategory


class CSRestError(Exception):
    """
    Base exception for all client errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for logging and retry decisions
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    category: ErrorCategory = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        context: dict | None = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self.category == ErrorCategory.TRANSIENT

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


class ApiError(CSRestError):
    """
    Classified failure of one HTTP attempt.

    ``status_code`` is 0 when the failure happened before a response status
    was obtained. ``is_retryable`` is fixed at construction from the origin
    of the failure and never changes afterwards.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        category: ErrorCategory = ErrorCategory.TRANSIENT,
        is_retryable: bool = True,
        context: dict | None = None,
    ):
        super().__init__(message, context=context)
        self.status_code = status_code
        self.category = category
        self._retryable = is_retryable

    @property
    def is_retryable(self) -> bool:
        return self._retryable

    def __repr__(self) -> str:
        return (
            f"ApiError(status_code={self.status_code}, "
            f"is_retryable={self._retryable}, message={self.message!r})"
        )


class RequestCancelledError(CSRestError):
    """The caller's cancel event fired before or during a request or wait."""

    category = ErrorCategory.CANCELLED

    def __init__(self, message: str = "request cancelled", cause: Exception | None = None):
        super().__init__(message, cause)


class RetryExhaustedError(CSRestError):
    """All attempts failed; ``last_error`` holds the final underlying failure."""

    def __init__(self, attempts: int, last_error: ApiError):
        super().__init__(
            f"request failed after {attempts} attempts: {last_error.message}",
            context={"attempts": attempts},
        )
        self.attempts = attempts
        self.last_error = last_error
        self.category = last_error.category

    @property
    def is_retryable(self) -> bool:
        return False

    @property
    def status_code(self) -> int:
        return self.last_error.status_code


class TaskTimeoutError(CSRestError):
    """A polled task did not reach a terminal status before the deadline."""

    category = ErrorCategory.TRANSIENT

    def __init__(self, task_id: str, timeout: float, last_status: str | None = None):
        super().__init__(
            "timeout waiting for task completion",
            context={
                "task_id": task_id,
                "timeout_seconds": timeout,
                "last_status": last_status,
            },
        )
        self.task_id = task_id
        self.timeout = timeout
        self.last_status = last_status

    def __str__(self) -> str:
        return f"{self.message}: task {self.task_id} after {self.timeout}s"


# =============================================================================
# Error Classification Utilities
# =============================================================================


def classify_http_status(status_code: int) -> ErrorCategory:
    """Classify HTTP status code into error category."""
    if 200 <= status_code < 300:
        return ErrorCategory.UNKNOWN  # Not an error

    if status_code == 401:
        return ErrorCategory.AUTH

    if status_code == 429:
        return ErrorCategory.TRANSIENT  # Rate limited

    if 400 <= status_code < 500:
        return ErrorCategory.PERMANENT

    if status_code >= 500:
        return ErrorCategory.TRANSIENT

    return ErrorCategory.UNKNOWN


def is_retryable_status(status_code: int) -> bool:
    """Server errors and rate limiting are retried; every other failure status is not."""
    return status_code >= 500 or status_code == 429


def is_retryable_error(exc: Exception) -> bool:
    """
    Check if exception should be retried.

    Only classified client errors carry a retry decision. Anything else is a
    programming error and is never retried.
    """
    if isinstance(exc, CSRestError):
        return exc.is_retryable
    return False
