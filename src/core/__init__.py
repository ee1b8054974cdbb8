"""
Core library: Reusable, infrastructure-agnostic components.

Modules:
    resilience  - Retry coordination with fixed delay and cancellation
    logging     - Structured JSON logging with context propagation
    errors      - Error classification and exception hierarchy
    security    - TLS context construction
    utils       - JSON serialization helpers

Design Principles:
    - No dependency on the csrest endpoint layer
    - All modules are independently testable
    - Async-first where applicable
"""

from .types import ErrorCategory

__version__ = "0.1.0"

__all__ = [
    "ErrorCategory",
]
