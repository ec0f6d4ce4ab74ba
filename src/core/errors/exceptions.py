"""
Exception hierarchy for the loader.

Every error carries an ``ErrorCategory`` so callers can choose between
retrying (transient), skipping and counting (permanent), or retrying
conservatively (unknown).
"""

import errno

# Single ErrorCategory definition: enums from different classes never compare equal
from core.types import ErrorCategory


class PipelineError(Exception):
    """
    Base exception for loader errors.

    Attributes:
        message: Human-readable error description
        category: Error classification for retry decisions
        cause: Original exception if wrapping
        context: Structured details (file, key, partition) for logging
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
        return self.category != ErrorCategory.PERMANENT

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message} | Caused by: {self.cause}"


class TransientError(PipelineError):
    """May succeed if attempted again (timeouts, dropped connections)."""

    category = ErrorCategory.TRANSIENT


class PermanentError(PipelineError):
    """Will fail the same way every time (bad input, bad settings)."""

    category = ErrorCategory.PERMANENT


class ConfigurationError(PermanentError):
    """Invalid configuration detected at startup. Fatal for the run."""

    pass


# errno values that no amount of retrying fixes
_PERMANENT_ERRNOS = frozenset(
    {errno.ENOENT, errno.ENOTDIR, errno.EISDIR, errno.ENOSPC, errno.EROFS, errno.EACCES, errno.EPERM}
)

_TIMEOUT_MARKERS = ("timeout", "timed out")

_CONNECTION_MARKERS = (
    "connection refused",
    "connection reset",
    "connection aborted",
    "connection closed",
    "broken pipe",
    "no route to host",
    "network unreachable",
    "name resolution",
)

_PERMANENT_TYPE_MARKERS = ("valueerror", "typeerror", "unicodedecodeerror", "validation")


def classify_os_error(error: OSError) -> ErrorCategory:
    """Missing paths, permissions and full/read-only disks are permanent; the rest transient."""
    if error.errno in _PERMANENT_ERRNOS:
        return ErrorCategory.PERMANENT
    return ErrorCategory.TRANSIENT


def classify_exception(exc: Exception) -> ErrorCategory:
    """
    Best-effort category for exceptions raised outside the hierarchy.

    Order matters: TimeoutError is an OSError without an errno, and
    ConnectionError subclasses carry errno only when the OS raised them.
    """
    if isinstance(exc, PipelineError):
        return exc.category

    type_name = type(exc).__name__.lower()
    text = str(exc).lower()

    if isinstance(exc, TimeoutError) or any(m in type_name or m in text for m in _TIMEOUT_MARKERS):
        return ErrorCategory.TRANSIENT
    if isinstance(exc, OSError) and exc.errno is not None:
        return classify_os_error(exc)
    if isinstance(exc, ConnectionError) or any(m in text for m in _CONNECTION_MARKERS):
        return ErrorCategory.TRANSIENT
    if any(m in type_name for m in _PERMANENT_TYPE_MARKERS):
        return ErrorCategory.PERMANENT
    return ErrorCategory.UNKNOWN


def wrap_exception(
    exc: Exception,
    default_class: type = PipelineError,
    context: dict | None = None,
) -> PipelineError:
    """Convert ``exc`` into the matching PipelineError subclass.

    PipelineErrors are returned as-is, with ``context`` merged in.
    """
    if isinstance(exc, PipelineError):
        if context:
            exc.context.update(context)
        return exc

    context = dict(context or {})
    if isinstance(exc, TimeoutError) or "timeout" in type(exc).__name__.lower():
        context["error_type"] = "timeout"
    elif isinstance(exc, ConnectionError) or "connection" in str(exc).lower():
        context["error_type"] = "connection"

    wrapper = {
        ErrorCategory.TRANSIENT: TransientError,
        ErrorCategory.PERMANENT: PermanentError,
    }.get(classify_exception(exc), default_class)
    return wrapper(str(exc) or type(exc).__name__, cause=exc, context=context)
