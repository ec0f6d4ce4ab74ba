"""
Loader exceptions.

File-level and record-level errors are permanent (never retried) and are
handled by logging, skipping and counting. Cache write failures are
transient and go through the retry policy first.
"""

from core.errors.exceptions import PermanentError, TransientError


class FileDecodeError(PermanentError):
    """Input file could not be opened, is not gzip, or is truncated/corrupt."""

    def __init__(self, message: str, file_path: str, cause: Exception | None = None):
        super().__init__(message, cause, {"file_path": file_path})
        self.file_path = file_path


class RecordError(PermanentError):
    """Base class for errors confined to a single input record."""

    pass


class MalformedLineError(RecordError):
    """Line does not have the expected shape (field count, encoding, empty id)."""

    pass


class UnknownDeviceTypeError(MalformedLineError):
    """First field is not one of the known device types."""

    def __init__(self, device_type: str):
        super().__init__(
            f"Unknown device type '{device_type}'",
            context={"device_type": device_type},
        )
        self.device_type = device_type


class SerializationError(RecordError):
    """Event could not be encoded into the wire payload."""

    pass


class UnknownPartitionError(RecordError):
    """Record routed to a partition with no configured cache client."""

    def __init__(self, partition: str):
        super().__init__(
            f"No cache configured for partition '{partition}'",
            context={"partition": partition},
        )
        self.partition = partition


class CacheWriteError(TransientError):
    """Cache rejected or failed a ``set``."""

    pass
