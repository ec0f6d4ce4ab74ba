"""
Run counters and the end-of-run health decision.

A run is healthy when ``errors / processed`` stays below
``NORMAL_ERROR_RATE``. The decision only changes log severity; it never
aborts a run.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)

NORMAL_ERROR_RATE = 0.01


class LoadStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"
    EMPTY = "empty"


class RunCounters:
    """Monotonic per-run counters.

    Workers only ever add; the totals are read once when the run finishes
    (and periodically for progress logging).
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._processed = 0
        self._errors = 0
        self._skipped_empty = 0
        self._files_processed = 0
        self._files_failed = 0

    def record_processed(self) -> None:
        with self._lock:
            self._processed += 1

    def record_error(self) -> None:
        with self._lock:
            self._errors += 1

    def record_skipped(self) -> None:
        with self._lock:
            self._skipped_empty += 1

    def record_file(self, succeeded: bool) -> None:
        with self._lock:
            if succeeded:
                self._files_processed += 1
            else:
                self._files_failed += 1

    @property
    def processed(self) -> int:
        return self._processed

    @property
    def errors(self) -> int:
        return self._errors

    @property
    def skipped_empty(self) -> int:
        return self._skipped_empty

    @property
    def files_processed(self) -> int:
        return self._files_processed

    @property
    def files_failed(self) -> int:
        return self._files_failed

    def snapshot(self) -> dict[str, int]:
        """Cumulative counts in the shape PeriodicStatsLogger expects."""
        with self._lock:
            return {
                "records_processed": self._processed,
                "records_succeeded": self._processed - self._errors,
                "records_failed": self._errors,
                "records_skipped": self._skipped_empty,
                "files_processed": self._files_processed,
                "files_failed": self._files_failed,
            }


def classify_error_rate(
    processed: int,
    errors: int,
    threshold: float = NORMAL_ERROR_RATE,
) -> tuple[LoadStatus, float | None]:
    """
    Decide run health.

    Returns:
        (status, error_rate); error_rate is None when nothing was processed
    """
    if processed <= 0:
        return LoadStatus.EMPTY, None
    rate = errors / processed
    if rate < threshold:
        return LoadStatus.SUCCESS, rate
    return LoadStatus.FAILED, rate


@dataclass(frozen=True)
class LoadSummary:
    """Outcome of one loader run."""

    processed: int
    errors: int
    skipped_empty: int
    files_found: int
    files_processed: int
    files_failed: int
    status: LoadStatus
    error_rate: float | None
    interrupted: bool = False
    duration_ms: float = 0.0

    @classmethod
    def from_counters(
        cls,
        counters: RunCounters,
        files_found: int,
        threshold: float = NORMAL_ERROR_RATE,
        interrupted: bool = False,
        duration_ms: float = 0.0,
    ) -> "LoadSummary":
        status, rate = classify_error_rate(counters.processed, counters.errors, threshold)
        return cls(
            processed=counters.processed,
            errors=counters.errors,
            skipped_empty=counters.skipped_empty,
            files_found=files_found,
            files_processed=counters.files_processed,
            files_failed=counters.files_failed,
            status=status,
            error_rate=rate,
            interrupted=interrupted,
            duration_ms=duration_ms,
        )

    def log(self, threshold: float = NORMAL_ERROR_RATE) -> None:
        """Emit the final health line at the severity the status calls for."""
        extra = {
            "load_status": self.status.value,
            "records_processed": self.processed,
            "records_failed": self.errors,
            "records_skipped": self.skipped_empty,
            "files_found": self.files_found,
            "files_processed": self.files_processed,
            "files_failed": self.files_failed,
            "threshold": threshold,
            "duration_ms": round(self.duration_ms, 2),
        }
        if self.error_rate is not None:
            extra["error_rate"] = round(self.error_rate, 6)

        if self.status == LoadStatus.SUCCESS:
            logger.info(
                "Successful load. Error rate: %.4f (%d/%d)",
                self.error_rate,
                self.errors,
                self.processed,
                extra=extra,
            )
        elif self.status == LoadStatus.FAILED:
            logger.error(
                "Failed load. Error rate: %.4f (%d/%d) >= %.2f",
                self.error_rate,
                self.errors,
                self.processed,
                threshold,
                extra=extra,
            )
        else:
            logger.warning("No records processed, error rate undefined", extra=extra)
