"""
Cache partitions.

One memcached client per device type. Each ``aiomcache.Client`` keeps its
own bounded connection pool and is safe to share between worker coroutines.
The table is built once before workers start and is read-only afterwards.
"""

import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Protocol

import aiomcache
from aiomcache.exceptions import ClientException, ValidationException

from config.config import CacheEndpoint
from core.errors.exceptions import ConfigurationError, PipelineError, classify_exception
from core.types import ErrorCategory
from memc_load.schemas import DeviceType

logger = logging.getLogger(__name__)


class CacheClient(Protocol):
    """The subset of the memcached client API the loader uses."""

    async def set(self, key: bytes, value: bytes, exptime: int = 0) -> bool: ...

    async def version(self) -> bytes: ...

    async def close(self) -> None: ...


class MemcacheErrorClassifier:
    """Maps aiomcache exceptions onto error categories.

    Key validation failures can never succeed on retry; other client
    exceptions are protocol hiccups on a pooled connection.
    """

    def classify_error(self, error: Exception) -> ErrorCategory:
        if isinstance(error, PipelineError):
            return error.category
        if isinstance(error, ValidationException):
            return ErrorCategory.PERMANENT
        if isinstance(error, ClientException):
            return ErrorCategory.TRANSIENT
        return classify_exception(error)

    def is_transient(self, error: Exception) -> bool:
        return self.classify_error(error) == ErrorCategory.TRANSIENT


class CachePartitionTable:
    """Read-only mapping of device type to cache client."""

    def __init__(
        self,
        clients: Mapping[DeviceType, CacheClient],
        addresses: Mapping[DeviceType, str] | None = None,
    ):
        self._clients = dict(clients)
        self._addresses = dict(addresses or {})

    @classmethod
    def from_endpoints(
        cls,
        endpoints: Mapping[DeviceType, CacheEndpoint],
        pool_size: int = 4,
    ) -> "CachePartitionTable":
        """Create one pooled client per endpoint. No connection is opened yet."""
        clients: dict[DeviceType, CacheClient] = {}
        for device_type, endpoint in endpoints.items():
            clients[device_type] = aiomcache.Client(endpoint.host, endpoint.port, pool_size=pool_size)
            logger.debug(
                "Configured cache partition",
                extra={"partition": device_type.value, "address": str(endpoint)},
            )
        return cls(clients, {dt: str(ep) for dt, ep in endpoints.items()})

    def get(self, partition: DeviceType) -> CacheClient | None:
        return self._clients.get(partition)

    def address(self, partition: DeviceType) -> str:
        return self._addresses.get(partition, "")

    @property
    def partitions(self) -> list[DeviceType]:
        return list(self._clients)

    def __contains__(self, partition: Any) -> bool:
        return partition in self._clients

    def __len__(self) -> int:
        return len(self._clients)

    async def verify(self, timeout: float) -> None:
        """
        Probe every partition with ``version``.

        Raises:
            ConfigurationError: If any partition is unreachable
        """
        for partition, client in self._clients.items():
            address = self.address(partition)
            try:
                version = await asyncio.wait_for(client.version(), timeout=timeout)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                raise ConfigurationError(
                    f"Cache for partition '{partition.value}' at {address} is unreachable",
                    cause=e,
                    context={"partition": partition.value, "address": address},
                ) from e

            if isinstance(version, bytes):
                version = version.decode(errors="replace")
            logger.info(
                "Cache partition %s reachable (memcached %s)",
                partition.value,
                version,
                extra={"partition": partition.value, "address": address},
            )

    async def close(self) -> None:
        """Close every client; errors are logged, not raised."""
        for partition, client in self._clients.items():
            try:
                await client.close()
            except Exception as e:
                logger.warning(
                    "Error closing cache client",
                    extra={"partition": partition.value, "error": str(e)[:200]},
                )
