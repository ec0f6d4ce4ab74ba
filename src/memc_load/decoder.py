"""
Gzip input decoding.

A file is decompressed fully into memory in a worker thread, then split into
records lazily and handed to the record queue one at a time. The bounded
queue keeps the decoder from running ahead of the writers.
"""

import asyncio
import gzip
import logging
import zlib
from collections.abc import Iterator
from pathlib import Path

from core.logging import log_phase
from memc_load.channels import put_or_stop
from memc_load.exceptions import FileDecodeError

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"


def iter_records(content: bytes) -> Iterator[bytes]:
    """Yield ``content`` split on ``\\n`` without copying it into a list.

    A trailing newline yields a final empty record, which the parser skips.
    """
    start = 0
    while True:
        end = content.find(b"\n", start)
        if end == -1:
            yield content[start:]
            return
        yield content[start:end]
        start = end + 1


class FileDecoder:
    """Reads gzip files and streams their records into a queue."""

    def read_sync(self, path: Path) -> bytes:
        """Blocking read + decompress. Use ``read`` from async code."""
        try:
            with open(path, "rb") as f:
                magic = f.read(len(GZIP_MAGIC))
                if magic != GZIP_MAGIC:
                    raise FileDecodeError("Not a gzip file", str(path))
                f.seek(0)
                with gzip.GzipFile(fileobj=f, mode="rb") as gz:
                    return gz.read()
        except FileDecodeError:
            raise
        except (EOFError, zlib.error, gzip.BadGzipFile) as e:
            raise FileDecodeError("Corrupt or truncated gzip stream", str(path), e) from e
        except OSError as e:
            raise FileDecodeError("Cannot read file", str(path), e) from e

    async def read(self, path: Path) -> bytes:
        """
        Decompress ``path`` fully into memory off the event loop.

        Raises:
            FileDecodeError: Open failure, bad magic bytes, corrupt or
                truncated stream
        """
        with log_phase(logger, "decompress", file_path=str(path)):
            content = await asyncio.to_thread(self.read_sync, path)

        logger.debug(
            "Decompressed file",
            extra={"file_path": str(path), "bytes_decompressed": len(content)},
        )
        return content

    async def feed(
        self,
        path: Path,
        queue: asyncio.Queue,
        stop: asyncio.Event,
    ) -> int | None:
        """
        Decode ``path`` and put every record on ``queue``.

        Returns:
            Number of records handed off, or None if ``stop`` fired first

        Raises:
            FileDecodeError: If the file cannot be decoded
        """
        content = await self.read(path)

        count = 0
        for record in iter_records(content):
            if not await put_or_stop(queue, record, stop):
                logger.info(
                    "Decoding interrupted by stop request",
                    extra={"file_path": str(path), "records_processed": count},
                )
                return None
            count += 1

        return count
