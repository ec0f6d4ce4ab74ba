"""JSON (file) and console log formatters."""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from core.logging.context import get_log_context
from core.utils.json_serializers import json_serializer

_CONTEXT_FIELDS = ("domain", "stage", "run_id", "worker_id", "source_file")


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line.

    Only extras listed in ``FIELDS`` are emitted. Fields mapped to a type
    are coerced to it so aggregations never see numeric strings; values
    that fail coercion become null.
    """

    FIELDS: dict[str, type | None] = {
        # Counters and health
        "records_processed": int,
        "records_succeeded": int,
        "records_failed": int,
        "records_skipped": int,
        "records_queued": int,
        "bytes_decompressed": int,
        "files_found": int,
        "files_processed": int,
        "files_failed": int,
        "error_rate": float,
        "threshold": float,
        "load_status": None,
        "duration_ms": float,
        # Progress cycles
        "cycle": int,
        "delta_succeeded": int,
        "delta_failed": int,
        "delta_skipped": int,
        "rate_rec_per_sec": float,
        # Errors and retries
        "error_category": None,
        "error_message": None,
        "error_type": None,
        "error": None,
        "attempt": int,
        "max_attempts": int,
        "delay_seconds": float,
        "operation": None,
        # Records and partitions
        "cache_key": None,
        "partition": None,
        "address": None,
        "device_type": None,
        "token": None,
        "field_count": int,
        # Files and run
        "file_path": None,
        "renamed_to": None,
        "pattern": None,
        "state": None,
        "workers": int,
        "queue_size": int,
        "dry_run": None,
    }

    def _coerce(self, field: str, value: Any) -> Any:
        target = self.FIELDS[field]
        if target is None:
            return value
        try:
            return target(value)
        except (TypeError, ValueError):
            return None

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = get_log_context()
        entry.update((field, context[field]) for field in _CONTEXT_FIELDS if context.get(field))

        if record.levelno == logging.DEBUG or record.levelno >= logging.ERROR:
            entry["file"] = f"{record.filename}:{record.lineno}"

        for field in self.FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = self._coerce(field, value)

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "stacktrace": self.formatException(record.exc_info),
            }

        return json.dumps(entry, default=json_serializer, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    ``time - LEVEL - [domain] - [stage] - [worker] [file:..] [key:..] message``

    Level names are coloured only when stdout is a TTY.
    """

    COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._use_colors = sys.stdout.isatty()

    def _level(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno) if self._use_colors else None
        return f"{color}{record.levelname}{self.RESET}" if color else record.levelname

    def format(self, record: logging.LogRecord) -> str:
        context = get_log_context()

        head = [datetime.now().strftime("%Y-%m-%d %H:%M:%S"), self._level(record)]
        head += [f"[{context[field]}]" for field in ("domain", "stage") if context.get(field)]

        tags = []
        if context.get("worker_id"):
            tags.append(f"[{context['worker_id']}]")
        source = getattr(record, "file_path", None) or context.get("source_file")
        if source:
            tags.append(f"[file:{str(source).rsplit('/', 1)[-1]}]")
        cache_key = getattr(record, "cache_key", None)
        if cache_key:
            tags.append(f"[key:{cache_key}]")

        message = record.getMessage()
        if record.exc_info and record.levelno >= logging.ERROR:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        return " - ".join(head) + " - " + " ".join(tags + [message])
