"""
Error classification and exception hierarchy.

PipelineError subclasses carry an ErrorCategory; classify_exception and
wrap_exception bring foreign exceptions (cache client, OS) into the same
scheme.
"""

from core.errors.exceptions import (
    ConfigurationError,
    ErrorCategory,
    PermanentError,
    PipelineError,
    TransientError,
    classify_exception,
    classify_os_error,
    wrap_exception,
)

__all__ = [
    "ErrorCategory",
    "PipelineError",
    "TransientError",
    "PermanentError",
    "ConfigurationError",
    "classify_os_error",
    "classify_exception",
    "wrap_exception",
]
