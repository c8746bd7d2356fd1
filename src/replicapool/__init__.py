"""Sentinel-aware redis pools that read from the closest replica."""

import logging
from collections.abc import Iterable

from replicapool.discovery import ReplicaDiscovery, resolve_local_address
from replicapool.endpoint import DiscoveryResult, Endpoint, SentinelAddress, SentinelLike
from replicapool.exceptions import (
    DiscoveryError,
    PoolClosedError,
    PoolConstructionError,
    ReplicaPoolError,
)
from replicapool.pool import AliasMaster, DedicatedRead, MasterSlavePool, ReadTarget
from replicapool.pools import (
    DEFAULT_MAX_CONNECTIONS,
    DEFAULT_TIMEOUT,
    ConnectionPoolFactory,
    Pool,
    PoolConfig,
    RedisPool,
    RedisPoolFactory,
    SentinelMasterPool,
)
from replicapool.sentinel import RedisSentinelClient, SentinelClient

__all__ = [
    "create_pool",
    "MasterSlavePool",
    "ReadTarget",
    "DedicatedRead",
    "AliasMaster",
    "ReplicaDiscovery",
    "resolve_local_address",
    "DiscoveryResult",
    "Endpoint",
    "SentinelAddress",
    "SentinelClient",
    "RedisSentinelClient",
    "Pool",
    "PoolConfig",
    "DEFAULT_MAX_CONNECTIONS",
    "DEFAULT_TIMEOUT",
    "RedisPool",
    "ConnectionPoolFactory",
    "RedisPoolFactory",
    "SentinelMasterPool",
    "ReplicaPoolError",
    "DiscoveryError",
    "PoolConstructionError",
    "PoolClosedError",
]

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())


async def create_pool(
    cluster_name: str,
    sentinels: Iterable[SentinelLike],
    *,
    database: int = 0,
    max_connections: int = DEFAULT_MAX_CONNECTIONS,
    timeout: float = DEFAULT_TIMEOUT,
    password: str | None = None,
    sentinel_password: str | None = None,
) -> MasterSlavePool:
    """Create a master pool and a read pool on the closest replica.

    Args:
        cluster_name: Name the sentinels monitor the cluster under
        sentinels: Sentinel addresses in "host:port" format
        database: Database index to select
        max_connections: Maximum connections per pool
        timeout: Request timeout in seconds
        password: Password for the store nodes
        sentinel_password: Password for the sentinels

    Returns:
        A MasterSlavePool reading from a replica, or from the master if none was found
    """
    config = PoolConfig(
        max_connections=max_connections,
        timeout=timeout,
        password=password,
        sentinel_password=sentinel_password,
    )
    return await MasterSlavePool.create(cluster_name, sentinels, config=config, database=database)
