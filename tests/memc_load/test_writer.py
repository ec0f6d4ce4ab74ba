"""Tests for the partitioned cache writer."""

import logging

import pytest
from aiomcache.exceptions import ClientException, ValidationException

from core.resilience import NO_RETRY, RetryConfig
from memc_load.cache import CachePartitionTable
from memc_load.counters import RunCounters
from memc_load.schemas import DeviceType, EncodedRecord
from memc_load.writer import CacheWriter

FAST_RETRY = RetryConfig(max_attempts=3, base_delay=0.0, max_delay=0.0)


def _record(partition=DeviceType.IDFA, device_id="abc"):
    return EncodedRecord(key=f"{partition.value}{device_id}", partition=partition, payload=b"\x81")


@pytest.fixture
def counters():
    return RunCounters()


class TestCacheWriter:

    @pytest.mark.asyncio
    async def test_stores_in_matching_partition(self, partitions, fake_clients, counters):
        writer = CacheWriter(partitions, counters, retry_config=NO_RETRY)

        assert await writer.write(_record(DeviceType.GAID, "dev1")) is True

        assert fake_clients[DeviceType.GAID].store == {b"gaiddev1": b"\x81"}
        assert fake_clients[DeviceType.IDFA].set_calls == 0
        assert counters.processed == 1
        assert counters.errors == 0

    @pytest.mark.asyncio
    async def test_dry_run_makes_no_set_call(self, partitions, fake_clients, counters):
        writer = CacheWriter(partitions, counters, dry_run=True)

        for device_type in DeviceType:
            assert await writer.write(_record(device_type)) is True

        assert all(client.set_calls == 0 for client in fake_clients.values())
        assert counters.processed == 4
        assert counters.errors == 0

    @pytest.mark.asyncio
    async def test_unknown_partition(self, make_client, counters, caplog):
        table = CachePartitionTable({DeviceType.IDFA: make_client()})
        writer = CacheWriter(table, counters, retry_config=NO_RETRY)

        with caplog.at_level(logging.ERROR, logger="memc_load.writer"):
            assert await writer.write(_record(DeviceType.DVID)) is False

        assert counters.processed == 1
        assert counters.errors == 1
        assert "dvid" in caplog.records[-1].getMessage()

    @pytest.mark.asyncio
    async def test_unknown_partition_even_in_dry_run(self, make_client, counters):
        table = CachePartitionTable({DeviceType.IDFA: make_client()})
        writer = CacheWriter(table, counters, dry_run=True)

        assert await writer.write(_record(DeviceType.ADID)) is False
        assert counters.errors == 1

    @pytest.mark.asyncio
    async def test_retries_transient_failures(self, make_client, counters):
        client = make_client(fail_times=2)
        writer = CacheWriter(CachePartitionTable({DeviceType.IDFA: client}), counters, retry_config=FAST_RETRY)

        assert await writer.write(_record()) is True

        assert client.set_calls == 3
        assert counters.processed == 1
        assert counters.errors == 0

    @pytest.mark.asyncio
    async def test_counts_error_once_after_final_attempt(self, make_client, counters, caplog):
        client = make_client(fail_times=10)
        writer = CacheWriter(CachePartitionTable({DeviceType.IDFA: client}), counters, retry_config=FAST_RETRY)

        with caplog.at_level(logging.ERROR, logger="memc_load.writer"):
            assert await writer.write(_record()) is False

        assert client.set_calls == 3
        assert counters.processed == 1
        assert counters.errors == 1
        assert caplog.records[-1].cache_key == "idfaabc"

    @pytest.mark.asyncio
    async def test_rejected_set_is_an_error(self, make_client, counters):
        client = make_client(reply=False)
        writer = CacheWriter(CachePartitionTable({DeviceType.IDFA: client}), counters, retry_config=FAST_RETRY)

        assert await writer.write(_record()) is False

        assert client.set_calls == 3
        assert counters.errors == 1

    @pytest.mark.asyncio
    async def test_timeout_is_an_error(self, make_client, counters):
        client = make_client(delay=1.0)
        writer = CacheWriter(
            CachePartitionTable({DeviceType.IDFA: client}),
            counters,
            timeout_seconds=0.01,
            retry_config=NO_RETRY,
        )

        assert await writer.write(_record()) is False
        assert counters.errors == 1

    @pytest.mark.asyncio
    async def test_invalid_key_not_retried(self, make_client, counters):
        client = make_client()
        client.set = _raise(ValidationException("invalid key"), client)
        writer = CacheWriter(CachePartitionTable({DeviceType.IDFA: client}), counters, retry_config=FAST_RETRY)

        assert await writer.write(_record()) is False
        assert client.set_calls == 1
        assert counters.errors == 1

    @pytest.mark.asyncio
    async def test_client_exception_retried(self, make_client, counters):
        client = make_client()
        client.set = _raise(ClientException("bad reply"), client)
        writer = CacheWriter(CachePartitionTable({DeviceType.IDFA: client}), counters, retry_config=FAST_RETRY)

        assert await writer.write(_record()) is False
        assert client.set_calls == 3


def _raise(error, client):
    async def failing_set(key, value, exptime=0):
        client.set_calls += 1
        raise error

    return failing_set
