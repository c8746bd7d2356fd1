"""Master/replica pool pair for a sentinel-monitored cluster."""

import contextlib
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from redis.asyncio import Connection, Redis

from replicapool.discovery import ReplicaDiscovery
from replicapool.endpoint import (
    DiscoveryResult,
    Endpoint,
    SentinelAddress,
    SentinelLike,
    parse_sentinels,
)
from replicapool.pools import (
    ConnectionPoolFactory,
    Pool,
    PoolConfig,
    RedisPoolFactory,
    SentinelMasterPool,
)
from replicapool.sentinel import SentinelConnector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DedicatedRead:
    """Reads go to a pool of their own, bound to one replica."""

    pool: Pool
    endpoint: Endpoint


@dataclass(frozen=True)
class AliasMaster:
    """Reads go to the master pool."""


ReadTarget = DedicatedRead | AliasMaster


class MasterSlavePool:
    """Master pool plus a read pool on the closest replica.

    The replica is chosen once, when the pool is created: a replica on the
    same host if the sentinels know one, any other replica otherwise, and
    the master itself if no replica can be found at all.
    """

    def __init__(
        self,
        master_pool: Pool,
        read_target: ReadTarget,
        discovery: DiscoveryResult | None = None,
    ) -> None:
        """Initialize from already built pools.

        Use MasterSlavePool.create() to discover the replica and build the pools.
        """
        self._master_pool = master_pool
        self._read_target = read_target
        self._discovery = discovery if discovery is not None else DiscoveryResult()

    @classmethod
    async def create(
        cls,
        cluster_name: str,
        sentinels: Iterable[SentinelLike],
        *,
        config: PoolConfig | None = None,
        database: int = 0,
        local_address: str | None = None,
        factory: ConnectionPoolFactory | None = None,
        connector: SentinelConnector | None = None,
        master_pool: Pool | None = None,
    ) -> "MasterSlavePool":
        """Discover a replica and build the master and read pools.

        Args:
            cluster_name: Name the sentinels monitor the cluster under
            sentinels: Sentinel addresses ("host:port", tuples or SentinelAddress)
            config: Pool settings; the read pool gets its own copy
            database: Database index to select
            local_address: This host's address; resolved from the hostname if omitted
            factory: Builds the read pool; defaults to RedisPoolFactory
            connector: Opens sentinel clients for discovery
            master_pool: Use this master pool instead of a SentinelMasterPool

        Raises:
            PoolConstructionError: A replica was selected but could not be reached
        """
        if config is None:
            config = PoolConfig()
        if factory is None:
            factory = RedisPoolFactory()

        addresses = parse_sentinels(sentinels)

        owns_master = master_pool is None
        if master_pool is None:
            master_pool = SentinelMasterPool(cluster_name, addresses, config, database=database)

        try:
            read_target, result = await cls._build_read_target(
                cluster_name, addresses, config, database, local_address, factory, connector
            )
        except BaseException:
            if owns_master:
                with contextlib.suppress(Exception):
                    await master_pool.destroy()
            raise

        return cls(master_pool, read_target, result)

    @staticmethod
    async def _build_read_target(
        cluster_name: str,
        addresses: list[SentinelAddress],
        config: PoolConfig,
        database: int,
        local_address: str | None,
        factory: ConnectionPoolFactory,
        connector: SentinelConnector | None,
    ) -> tuple[ReadTarget, DiscoveryResult]:
        """Run discovery and build the read pool for the chosen replica."""
        discovery = ReplicaDiscovery(
            connector,
            local_address=local_address,
            timeout=config.timeout,
            password=config.sentinel_password,
        )
        result = await discovery.discover(cluster_name, addresses, database)

        endpoint = result.choose()
        if endpoint is None:
            logger.info("No replica of %r available, reading from master", cluster_name)
            return AliasMaster(), result

        read_pool = await factory.create(config.clone(), endpoint)

        logger.info(
            "Reading %r from %s replica %s",
            cluster_name,
            "local" if result.is_local else "remote",
            endpoint,
        )
        return DedicatedRead(read_pool, endpoint), result

    @property
    def current_replica(self) -> Endpoint | None:
        """Get the replica reads go to, or None when reading from master."""
        if isinstance(self._read_target, DedicatedRead):
            return self._read_target.endpoint
        return None

    def get_current_replica_endpoint(self) -> Endpoint | None:
        """Get the replica reads go to; same as current_replica."""
        return self.current_replica

    @property
    def discovery(self) -> DiscoveryResult:
        """Get the discovery result this pool was built from."""
        return self._discovery

    @property
    def is_read_aliased(self) -> bool:
        """Check if reads fall back to the master pool."""
        return isinstance(self._read_target, AliasMaster)

    @property
    def master_pool(self) -> Pool:
        """Get the pool writes are served from."""
        return self._master_pool

    @property
    def read_pool(self) -> Pool:
        """Get the pool reads are served from."""
        if isinstance(self._read_target, DedicatedRead):
            return self._read_target.pool
        return self._master_pool

    @property
    def closed(self) -> bool:
        """Check if the pool was destroyed."""
        return self._master_pool.closed

    async def get_resource(self) -> Connection:
        """Check a connection to the master out."""
        return await self._master_pool.get_resource()

    async def release(self, conn: Connection) -> None:
        """Return a master connection."""
        await self._master_pool.release(conn)

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[Connection]:
        """Acquire a master connection."""
        async with self._master_pool.acquire() as conn:
            yield conn

    async def get_read_resource(self) -> Connection:
        """Check a read connection out.

        Comes from the replica pool, or from the master pool when no replica
        was found. Checkout errors propagate unchanged.
        """
        return await self.read_pool.get_resource()

    async def release_read(self, conn: Connection) -> None:
        """Return a read connection."""
        await self.read_pool.release(conn)

    @asynccontextmanager
    async def acquire_read(self) -> AsyncIterator[Connection]:
        """Acquire a read connection."""
        async with self.read_pool.acquire() as conn:
            yield conn

    def writer(self) -> Redis:
        """Get a redis client for the master."""
        return self._master_pool.client()

    def reader(self) -> Redis:
        """Get a redis client for reads."""
        return self.read_pool.client()

    async def destroy(self) -> None:
        """Close the master pool, then the replica pool if there is one.

        Failures are logged; both pools are always attempted.
        """
        try:
            await self._master_pool.destroy()
        except Exception:
            logger.exception("Releasing master pool failed")

        if isinstance(self._read_target, DedicatedRead):
            try:
                await self._read_target.pool.destroy()
            except Exception:
                logger.exception("Releasing replica pool %s failed", self._read_target.endpoint)

    async def close(self) -> None:
        """Close both pools, see destroy()."""
        await self.destroy()

    async def __aenter__(self) -> "MasterSlavePool":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.destroy()

    def __repr__(self) -> str:
        target = self.current_replica or "master"
        return f"<MasterSlavePool reads={target}>"
