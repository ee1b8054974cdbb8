"""
Core types used across modules.

This module provides base enums shared across the core library to ensure
consistency between the client, the retry coordinator and the log formatters.
"""

from enum import Enum


class ErrorCategory(Enum):
    """
    Classification of error types for handling decisions.

    Used by the client and the retry coordinator to label failures in logs.
    The retry decision itself is carried on each error as ``is_retryable``.

    Categories:
        TRANSIENT: Temporary failures that may succeed on a later attempt
                   (e.g., connection refused, timeouts, 429/5xx responses)
        AUTH: Authentication failures (401). The bearer token is static, so
              these are not retried.
        PERMANENT: Non-retriable failures that won't succeed on retry
                   (e.g., 404, malformed request, undecodable payload)
        CANCELLED: The caller's cancellation signal fired
        UNKNOWN: Unclassified errors
    """

    TRANSIENT = "transient"
    AUTH = "auth"
    PERMANENT = "permanent"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


__all__ = [
    "ErrorCategory",
]
