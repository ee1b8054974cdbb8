"""
Resilience patterns module.

Provides fault tolerance primitives for the HTTP client.

Components:
    - RetryConfig: Attempt budget and fixed inter-attempt delay
    - execute_with_retry: Sequential retry loop honoring a cancel event
    - cancellable_sleep: Timer wait preempted by a cancel event
    - run_cancellable: Await an operation, abandoning it when a cancel event fires
"""

from .retry import (
    DEFAULT_RETRY,
    RetryConfig,
    cancellable_sleep,
    execute_with_retry,
    run_cancellable,
)

__all__ = [
    # Retry
    "RetryConfig",
    "DEFAULT_RETRY",
    "execute_with_retry",
    # Cancellation
    "cancellable_sleep",
    "run_cancellable",
]
