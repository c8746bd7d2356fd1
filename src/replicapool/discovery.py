"""Replica discovery through sentinels, preferring replicas on this host."""

import asyncio
import functools
import logging
import socket
from collections.abc import Iterable
from typing import Any

from redis.exceptions import RedisError

from replicapool.endpoint import (
    DiscoveryResult,
    Endpoint,
    SentinelAddress,
    SentinelLike,
    parse_sentinels,
)
from replicapool.exceptions import DiscoveryError
from replicapool.sentinel import SentinelConnector, connect_sentinel

logger = logging.getLogger(__name__)


async def resolve_local_address() -> str:
    """Resolve the IPv4 address this machine's hostname points at."""
    hostname = socket.gethostname()
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(
        hostname, None, family=socket.AF_INET, type=socket.SOCK_STREAM
    )
    if not infos:
        raise OSError(f"No address found for host {hostname!r}")
    return str(infos[0][4][0])


class ReplicaDiscovery:
    """Finds a replica of a sentinel-monitored cluster."""

    def __init__(
        self,
        connector: SentinelConnector | None = None,
        *,
        local_address: str | None = None,
        timeout: float = 10.0,
        password: str | None = None,
    ) -> None:
        """Initialize replica discovery.

        Args:
            connector: Opens a client for one sentinel; defaults to redis-py
            local_address: This host's address; resolved from the hostname if omitted
            timeout: Per sentinel timeout in seconds, used by the default connector
            password: Sentinel password, used by the default connector
        """
        if connector is None:
            connector = functools.partial(connect_sentinel, timeout=timeout, password=password)
        self._connector = connector
        self._local_address = local_address

    async def discover(
        self,
        cluster_name: str,
        sentinels: Iterable[SentinelLike],
        database: int = 0,
    ) -> DiscoveryResult:
        """Ask the sentinels for replicas of a cluster.

        Sentinels are tried one after another in sorted order. The first
        replica living on this host wins and stops the search; every other
        replica seen is kept as a candidate. Failing sentinels are skipped.
        """
        try:
            local_address = await self._resolve_local_address()
        except OSError as e:
            logger.error("Could not resolve local address, skipping replica discovery: %s", e)
            return DiscoveryResult()

        candidates: set[Endpoint] = set()

        for sentinel in parse_sentinels(sentinels):
            try:
                replicas = await self._query_replicas(sentinel, cluster_name)
            except Exception as e:
                logger.warning("Sentinel %s failed to list replicas of %r: %s", sentinel, cluster_name, e)
                continue

            if not replicas:
                logger.warning("Sentinel %s knows no replicas of %r", sentinel, cluster_name)
                continue

            logger.debug("Sentinel %s reported %d replicas of %r", sentinel, len(replicas), cluster_name)

            for record in replicas:
                try:
                    endpoint = Endpoint.from_record(record, database)
                except DiscoveryError as e:
                    logger.warning("Sentinel %s: %s", sentinel, e)
                    continue

                if endpoint.host == local_address:
                    logger.debug("Replica %s is local to %s", endpoint, local_address)
                    return DiscoveryResult(endpoint, frozenset(candidates), local_address)

                candidates.add(endpoint)

        return DiscoveryResult(None, frozenset(candidates), local_address)

    async def _resolve_local_address(self) -> str:
        if self._local_address is not None:
            return self._local_address
        return await resolve_local_address()

    async def _query_replicas(self, sentinel: SentinelAddress, cluster_name: str) -> list[Any]:
        """Query one sentinel, always closing the connection afterwards."""
        client = self._connector(sentinel)
        try:
            return await client.list_replicas(cluster_name)
        finally:
            try:
                await client.close()
            except (RedisError, OSError) as e:
                logger.debug("Closing sentinel %s failed: %s", sentinel, e)
