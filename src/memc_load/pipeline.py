"""
Load orchestration.

Files are loaded one at a time. For each file a pool of worker coroutines
pulls raw records from a bounded queue, parses them and writes them to
their cache partition while the decoder fills the queue. Once every record
of a file has been written the file is renamed with the processed marker.

Stop requests are broadcast through a single ``asyncio.Event``; every queue
operation races against it so the whole pipeline unwinds without waiting on
a queue that will never move again. A file interrupted this way is not
renamed.
"""

import asyncio
import logging
import time
from enum import Enum
from pathlib import Path
from typing import Any

from config.config import LoaderConfig
from core.logging import LogContext, PeriodicStatsLogger, log_exception, set_log_context
from memc_load.cache import CachePartitionTable
from memc_load.channels import STOPPED, get_or_stop, join_or_stop
from memc_load.counters import NORMAL_ERROR_RATE, LoadSummary, RunCounters
from memc_load.decoder import FileDecoder
from memc_load.discovery import discover_files
from memc_load.exceptions import FileDecodeError, RecordError
from memc_load.lifecycle import mark_processed
from memc_load.parser import LineParser
from memc_load.writer import CacheWriter

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    DISCOVERING = "discovering"
    DECODING = "decoding"
    DRAINING = "draining"
    FINALIZING = "finalizing"
    DONE = "done"


class LoadPipeline:
    """
    One loader run over every file matching the configured pattern.

    Usage:
        pipeline = LoadPipeline(config, partitions)
        summary = await pipeline.run()
    """

    def __init__(
        self,
        config: LoaderConfig,
        partitions: CachePartitionTable,
        decoder: FileDecoder | None = None,
        parser: LineParser | None = None,
        counters: RunCounters | None = None,
        error_threshold: float = NORMAL_ERROR_RATE,
    ):
        self.config = config
        self.partitions = partitions
        self.decoder = decoder or FileDecoder()
        self.parser = parser or LineParser()
        self.counters = counters or RunCounters()
        self.error_threshold = error_threshold
        self.writer = CacheWriter(
            partitions,
            self.counters,
            timeout_seconds=config.timeout_seconds,
            retry_config=config.retry_config(),
            dry_run=config.dry_run,
        )
        self.state = RunState.IDLE
        self.files_found = 0
        # Set only when a stop actually cut work short
        self.interrupted = False
        self._stop = asyncio.Event()

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def request_stop(self) -> None:
        """Ask the run to unwind. Safe to call more than once."""
        if not self._stop.is_set():
            logger.info("Stop requested", extra={"state": self.state.value})
            self._stop.set()

    def _transition(self, state: RunState, **extra: Any) -> None:
        logger.info(
            "Pipeline state: %s -> %s",
            self.state.value,
            state.value,
            extra={"state": state.value, **extra},
        )
        self.state = state

    def _get_stats(self, cycle_count: int) -> dict[str, Any]:
        return {**self.counters.snapshot(), "state": self.state.value}

    async def run(self) -> LoadSummary:
        """
        Load every matching file.

        Returns:
            Summary with counters and the health decision

        Raises:
            ConfigurationError: If the input pattern is invalid
        """
        start = time.perf_counter()

        self._transition(RunState.DISCOVERING, pattern=self.config.pattern)
        files = discover_files(self.config.pattern)
        self.files_found = len(files)

        stats_logger = PeriodicStatsLogger(
            interval_seconds=self.config.stats_interval_seconds,
            get_stats=self._get_stats,
            stage="load",
        )
        stats_logger.start()
        try:
            for path in files:
                if self.stopping:
                    self.interrupted = True
                    logger.info(
                        "Stop requested, skipping remaining files",
                        extra={"files_found": self.files_found},
                    )
                    break
                await self.process_file(path)
        finally:
            await stats_logger.stop()

        self._transition(RunState.FINALIZING)
        summary = LoadSummary.from_counters(
            self.counters,
            files_found=self.files_found,
            threshold=self.error_threshold,
            interrupted=self.interrupted,
            duration_ms=(time.perf_counter() - start) * 1000,
        )
        summary.log(self.error_threshold)
        self._transition(RunState.DONE)
        return summary

    async def process_file(self, path: Path) -> bool:
        """
        Decode, parse and write one file, then rename it.

        Returns:
            True if the file was fully drained, False if it was skipped or
            interrupted
        """
        with LogContext(source_file=path.name):
            self._transition(RunState.DECODING, file_path=str(path))

            queue: asyncio.Queue[bytes] = asyncio.Queue(maxsize=self.config.queue_size)
            workers = [
                asyncio.create_task(self._worker(i, queue), name=f"memc-worker-{i}")
                for i in range(self.config.workers)
            ]

            try:
                try:
                    handed_off = await self.decoder.feed(path, queue, self._stop)
                except FileDecodeError as e:
                    log_exception(
                        logger,
                        e,
                        "Skipping undecodable file",
                        include_traceback=False,
                        file_path=str(path),
                    )
                    self.counters.record_file(succeeded=False)
                    return False

                if handed_off is None:
                    self.interrupted = True
                    return False

                self._transition(RunState.DRAINING, file_path=str(path), records_queued=handed_off)
                if not await join_or_stop(queue, self._stop):
                    self.interrupted = True
                    logger.info(
                        "File interrupted before drain, leaving it for the next run",
                        extra={"file_path": str(path)},
                    )
                    return False
            finally:
                await self._shutdown_workers(workers)

            self.counters.record_file(succeeded=True)
            mark_processed(path, self.config.processed_marker)
            return True

    async def _shutdown_workers(self, workers: list[asyncio.Task]) -> None:
        # Idle workers block in get(); when stopping they exit on their own
        # after finishing the record in hand
        if not self.stopping:
            for task in workers:
                task.cancel()

        results = await asyncio.gather(*workers, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                log_exception(logger, result, "Worker exited with error")

    async def _worker(self, index: int, queue: asyncio.Queue) -> None:
        set_log_context(worker_id=f"worker-{index}")
        while True:
            raw = await get_or_stop(queue, self._stop)
            if raw is STOPPED:
                return
            try:
                await self.handle_record(raw)
            finally:
                queue.task_done()

    async def handle_record(self, raw: bytes) -> bool:
        """
        Parse and write one raw record, counting the outcome once.

        Returns:
            True if stored or skipped as empty, False if counted as error
        """
        try:
            record = self.parser.process(raw)
        except RecordError as e:
            self.counters.record_processed()
            self.counters.record_error()
            log_exception(
                logger,
                e,
                "Dropping invalid record",
                level=logging.WARNING,
                include_traceback=False,
                **e.context,
            )
            return False
        except Exception as e:
            self.counters.record_processed()
            self.counters.record_error()
            log_exception(logger, e, "Unexpected error parsing record")
            return False

        if record is None:
            self.counters.record_skipped()
            return True

        return await self.writer.write(record)
