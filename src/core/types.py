"""Shared enums and protocols."""

from enum import Enum
from typing import Protocol


class ErrorCategory(Enum):
    """
    How a failure should be handled.

    TRANSIENT: retry with backoff (cache timeout, dropped connection)
    PERMANENT: do not retry (malformed line, rejected key, bad config)
    UNKNOWN: unclassified; retried conservatively
    """

    TRANSIENT = "transient"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"


class ErrorClassifier(Protocol):
    """Maps a backend's own exceptions onto ErrorCategory."""

    def classify_error(self, error: Exception) -> ErrorCategory: ...

    def is_transient(self, error: Exception) -> bool: ...


__all__ = [
    "ErrorCategory",
    "ErrorClassifier",
]
