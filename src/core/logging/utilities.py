"""Helpers for emitting structured log records."""

import logging
from typing import Any

# Attributes every LogRecord already has; passing them in extra raises KeyError
_RESERVED_LOG_KEYS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}

_MAX_ERROR_MESSAGE = 500


def _safe_extra(fields: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in fields.items() if k not in _RESERVED_LOG_KEYS}


def log_with_context(
    logger: logging.Logger,
    level: int,
    msg: str,
    **kwargs: Any,
) -> None:
    """
    Log ``msg`` with keyword arguments attached as record attributes.

    ``exc_info`` is forwarded to the logger; names that collide with
    LogRecord attributes are dropped.

    Example:
        log_with_context(logger, logging.INFO, "File decoded", file_path=str(path))
    """
    exc_info = kwargs.pop("exc_info", None)
    logger.log(level, msg, exc_info=exc_info, extra=_safe_extra(kwargs))


def log_exception(
    logger: logging.Logger,
    exc: Exception,
    msg: str,
    level: int = logging.ERROR,
    include_traceback: bool = True,
    **kwargs: Any,
) -> None:
    """
    Log ``exc`` with its type, message and (for PipelineErrors) category.

    Args:
        logger: Logger instance
        exc: Exception to report
        msg: What was being attempted
        level: Log level (default: ERROR)
        include_traceback: Attach exc_info (default: True)
        **kwargs: Additional fields, e.g. file_path or cache_key
    """
    category = getattr(exc, "category", None)
    if category is not None and "error_category" not in kwargs:
        kwargs["error_category"] = getattr(category, "value", str(category))

    text = str(exc)
    if len(text) > _MAX_ERROR_MESSAGE:
        text = text[:_MAX_ERROR_MESSAGE] + "..."
    kwargs["error_message"] = text
    kwargs.setdefault("error_type", type(exc).__name__)

    logger.log(
        level,
        msg,
        exc_info=exc if include_traceback else None,
        extra=_safe_extra(kwargs),
    )


def format_progress(
    cycle: int,
    totals: dict[str, int],
    deltas: dict[str, int],
    interval_seconds: float,
) -> str:
    """
    One-line progress summary for a stats cycle.

    ``totals`` and ``deltas`` use the keys succeeded, failed and skipped.
    Zero failed/skipped totals are left out.

    Example:
        >>> format_progress(5, {"succeeded": 1200, "failed": 34}, {"succeeded": 240}, 30)
        'Cycle 5: +240 this cycle | total: 1200 succeeded, 34 failed | 8.0 rec/s'
    """
    moved = sum(deltas.values())
    rate = moved / interval_seconds if interval_seconds > 0 else 0.0

    total_parts = [f"{totals.get('succeeded', 0)} succeeded"]
    total_parts += [
        f"{totals[key]} {key}" for key in ("failed", "skipped") if totals.get(key, 0) > 0
    ]
    return f"Cycle {cycle}: +{moved} this cycle | total: {', '.join(total_parts)} | {rate:.1f} rec/s"


_BANNER_LABELS = {
    "run_id": "Run",
    "pattern": "Pattern",
    "workers": "Workers",
    "dry_run": "Dry run",
    "partitions": "Partitions",
    "log_output_mode": "Log Output",
}


def log_startup_banner(
    logger: logging.Logger,
    title: str,
    version: str | None = None,
    **fields: Any,
) -> None:
    """Log a framed block describing the run; unset fields are omitted."""
    rule = "=" * 50
    lines = ["", rule, title]
    if version:
        lines.append(f"Version: {version}")
    lines.append(rule)
    for key, label in _BANNER_LABELS.items():
        value = fields.get(key)
        if value is not None and value != "":
            lines.append(f"{label + ':':<14}{value}")
    lines += [rule, ""]

    logger.info("\n".join(lines))


def detect_log_output_mode() -> str:
    """Describe root handlers: "file+stdout", "stdout", or "console" when unconfigured."""
    handlers = logging.getLogger().handlers
    if any(isinstance(h, logging.FileHandler) for h in handlers):
        return "file+stdout"
    return "stdout" if handlers else "console"
