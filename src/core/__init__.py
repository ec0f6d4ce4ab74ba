"""
Loader-independent building blocks.

    errors      - exception hierarchy and error classification
    logging     - JSON/console logging with contextvars propagation
    resilience  - async retry with exponential backoff
    utils       - JSON helpers for log records
"""

from .types import ErrorCategory, ErrorClassifier

__all__ = [
    "ErrorCategory",
    "ErrorClassifier",
]
