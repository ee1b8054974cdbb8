"""
Error classification and exception hierarchy.

Provides:
- ErrorCategory enum for classifying errors
- CSRestError hierarchy for typed exceptions
- Status classification utilities for retry decisions
"""

from core.errors.exceptions import (
    ApiError,
    # Base classes
    CSRestError,
    # Enums
    ErrorCategory,
    RequestCancelledError,
    RetryExhaustedError,
    TaskTimeoutError,
    # Classification utilities
    classify_http_status,
    is_retryable_error,
    is_retryable_status,
)

__all__ = [
    # Enums
    "ErrorCategory",
    # Base classes
    "CSRestError",
    "ApiError",
    "RequestCancelledError",
    "RetryExhaustedError",
    "TaskTimeoutError",
    # Classification utilities
    "classify_http_status",
    "is_retryable_status",
    "is_retryable_error",
]
