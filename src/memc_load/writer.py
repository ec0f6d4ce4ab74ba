"""
Partitioned cache writer.

Each call accounts for exactly one record: ``processed`` is incremented once,
and ``errors`` at most once, after the final failed attempt.
"""

import asyncio
import logging

from core.errors.exceptions import PermanentError
from core.logging import log_exception
from core.resilience import RetryConfig, with_retry_async
from core.types import ErrorCategory, ErrorClassifier
from memc_load.cache import CacheClient, CachePartitionTable, MemcacheErrorClassifier
from memc_load.counters import RunCounters
from memc_load.exceptions import CacheWriteError, UnknownPartitionError
from memc_load.schemas import EncodedRecord

logger = logging.getLogger(__name__)


class CacheWriter:
    """Writes encoded records to their cache partition with retry."""

    def __init__(
        self,
        partitions: CachePartitionTable,
        counters: RunCounters,
        timeout_seconds: float = 10.0,
        retry_config: RetryConfig | None = None,
        dry_run: bool = False,
        classifier: ErrorClassifier | None = None,
    ):
        self.partitions = partitions
        self.counters = counters
        self.timeout_seconds = timeout_seconds
        self.dry_run = dry_run
        self._classifier = classifier or MemcacheErrorClassifier()
        self._set_with_retry = with_retry_async(config=retry_config)(self._set_once)

    async def _set_once(self, client: CacheClient, record: EncodedRecord) -> None:
        """One ``set`` attempt. Failures are mapped onto the error hierarchy."""
        context = {"cache_key": record.key, "partition": record.partition.value}
        try:
            stored = await asyncio.wait_for(
                client.set(record.key.encode("utf-8"), record.payload),
                timeout=self.timeout_seconds,
            )
        except asyncio.CancelledError:
            raise
        except TimeoutError as e:
            raise CacheWriteError(
                f"Cache set timed out after {self.timeout_seconds}s", cause=e, context=context
            ) from e
        except Exception as e:
            if self._classifier.classify_error(e) == ErrorCategory.PERMANENT:
                raise PermanentError(str(e) or type(e).__name__, cause=e, context=context) from e
            raise CacheWriteError(str(e) or type(e).__name__, cause=e, context=context) from e

        if not stored:
            raise CacheWriteError("Cache rejected set", context=context)

    async def write(self, record: EncodedRecord) -> bool:
        """
        Store one record in its partition.

        Returns:
            True if stored (or skipped in dry run), False if counted as error
        """
        self.counters.record_processed()

        client = self.partitions.get(record.partition)
        if client is None:
            error = UnknownPartitionError(record.partition.value)
            logger.error(
                str(error),
                extra={"cache_key": record.key, "partition": record.partition.value},
            )
            self.counters.record_error()
            return False

        if self.dry_run:
            logger.debug(
                "Dry run, skipping set",
                extra={"cache_key": record.key, "partition": record.partition.value},
            )
            return True

        try:
            await self._set_with_retry(client, record)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_exception(
                logger,
                e,
                "Cannot write to cache",
                include_traceback=False,
                cache_key=record.key,
                partition=record.partition.value,
                address=self.partitions.address(record.partition),
            )
            self.counters.record_error()
            return False

        logger.debug(
            "Stored record",
            extra={"cache_key": record.key, "partition": record.partition.value},
        )
        return True
