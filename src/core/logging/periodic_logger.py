"""Background progress reporting while a load is running."""

import asyncio
import contextlib
import logging
from collections.abc import Callable
from typing import Any

from core.logging.utilities import format_progress

logger = logging.getLogger(__name__)

# Snapshot key -> short name used in progress lines and delta_* fields
_TRACKED = {
    "records_succeeded": "succeeded",
    "records_failed": "failed",
    "records_skipped": "skipped",
}


class PeriodicStatsLogger:
    """
    Logs cumulative counters and their per-cycle change every interval.

    ``get_stats(cycle)`` must return a snapshot containing the
    ``records_succeeded``, ``records_failed`` and ``records_skipped``
    totals; the whole snapshot is attached to each progress record.
    """

    def __init__(
        self,
        interval_seconds: float,
        get_stats: Callable[[int], dict[str, Any]],
        stage: str,
    ):
        self.interval_seconds = interval_seconds
        self.get_stats = get_stats
        self.stage = stage
        self._task: asyncio.Task | None = None
        self._cycle_count = 0

    def start(self) -> None:
        if self._task is not None:
            logger.warning("Periodic logger already running", extra={"stage": self.stage})
            return
        self._task = asyncio.create_task(self._run(), name=f"stats-{self.stage}")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    @staticmethod
    def _totals(snapshot: dict[str, Any]) -> dict[str, int]:
        return {short: int(snapshot.get(key, 0)) for key, short in _TRACKED.items()}

    async def _run(self) -> None:
        previous = self._totals(self.get_stats(0))
        while True:
            await asyncio.sleep(self.interval_seconds)
            self._cycle_count += 1

            snapshot = self.get_stats(self._cycle_count)
            totals = self._totals(snapshot)
            deltas = {key: totals[key] - previous[key] for key in totals}
            previous = totals

            rate = sum(deltas.values()) / self.interval_seconds if self.interval_seconds > 0 else 0.0
            logger.info(
                format_progress(self._cycle_count, totals, deltas, self.interval_seconds),
                extra={
                    "stage": self.stage,
                    "cycle": self._cycle_count,
                    "rate_rec_per_sec": round(rate, 1),
                    **{f"delta_{key}": value for key, value in deltas.items()},
                    **snapshot,
                },
            )
