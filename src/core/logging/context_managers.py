"""Scoped logging context and phase timing."""

import logging
import time
from contextlib import contextmanager
from typing import Any

from core.logging.context import get_log_context, set_log_context
from core.logging.utilities import log_with_context


class LogContext:
    """
    Override context fields for the duration of a ``with`` block.

    Fields left as None keep their current value. The previous context is
    restored on exit, including when the block raises.

    Usage:
        with LogContext(source_file=path.name):
            await load(path)
    """

    def __init__(
        self,
        run_id: str | None = None,
        stage: str | None = None,
        worker_id: str | None = None,
        domain: str | None = None,
        source_file: str | None = None,
    ):
        self.overrides = {
            key: value
            for key, value in (
                ("run_id", run_id),
                ("stage", stage),
                ("worker_id", worker_id),
                ("domain", domain),
                ("source_file", source_file),
            )
            if value is not None
        }
        self._saved: dict[str, str] = {}

    def __enter__(self) -> "LogContext":
        self._saved = get_log_context()
        set_log_context(**self.overrides)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        set_log_context(**self._saved)
        return False


@contextmanager
def log_phase(
    logger: logging.Logger,
    phase: str,
    level: int | str = logging.DEBUG,
    **context: Any,
):
    """
    Log ``Phase complete: <phase>`` with ``duration_ms`` when the block exits.

    Example:
        with log_phase(logger, "decompress", file_path=str(path)):
            content = gzip.decompress(data)
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    started = time.perf_counter()
    try:
        yield
    finally:
        log_with_context(
            logger,
            level,
            f"Phase complete: {phase}",
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
            **context,
        )
