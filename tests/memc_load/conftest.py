"""Shared fixtures for loader tests."""

import asyncio
import gzip
from pathlib import Path

import pytest

from config.config import LoaderConfig
from memc_load.cache import CachePartitionTable
from memc_load.schemas import DeviceType

SAMPLE_LINE = b"idfa\t1rfw452y52g2gq4g\t55.55\t42.42\t1423,43,567,3,7"


class FakeCacheClient:
    """In-memory stand-in for an aiomcache client."""

    def __init__(self, fail_times: int = 0, reply: bool = True, delay: float = 0.0):
        self.store: dict[bytes, bytes] = {}
        self.set_calls = 0
        self.fail_times = fail_times
        self.reply = reply
        self.delay = delay
        self.closed = False

    async def set(self, key: bytes, value: bytes, exptime: int = 0) -> bool:
        self.set_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise ConnectionResetError("Connection reset by peer")
        if self.reply:
            self.store[key] = value
        return self.reply

    async def version(self) -> bytes:
        return b"1.6.21"

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_clients():
    return {device_type: FakeCacheClient() for device_type in DeviceType}


@pytest.fixture
def partitions(fake_clients):
    return CachePartitionTable(fake_clients)


@pytest.fixture
def write_gzip(tmp_path):
    """Write ``lines`` into ``tmp_path/name`` as a gzip'd TSV file."""

    def _write(name: str, lines: list[bytes], trailing_newline: bool = True) -> Path:
        content = b"\n".join(lines)
        if trailing_newline:
            content += b"\n"
        path = tmp_path / name
        path.write_bytes(gzip.compress(content))
        return path

    return _write


@pytest.fixture
def loader_config(tmp_path):
    return LoaderConfig(
        pattern=str(tmp_path / "*.tsv.gz"),
        workers=4,
        queue_size=8,
        stats_interval_seconds=60,
        timeout_seconds=1.0,
        retry_attempts=2,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
    )


@pytest.fixture
def sample_line():
    return SAMPLE_LINE


@pytest.fixture
def make_client():
    """Factory for FakeCacheClient with custom failure behaviour."""
    return FakeCacheClient
