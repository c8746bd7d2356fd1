"""Connection pools the replica pool is built from."""

import contextlib
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from typing import Any

from redis.asyncio import Connection, ConnectionPool, Redis
from redis.asyncio.sentinel import Sentinel, SentinelConnectionPool
from redis.exceptions import RedisError

from replicapool.endpoint import Endpoint, SentinelLike, parse_sentinels
from replicapool.exceptions import PoolClosedError, PoolConstructionError

logger = logging.getLogger(__name__)

# Request timeout in seconds
DEFAULT_TIMEOUT = 2.0

DEFAULT_MAX_CONNECTIONS = 50

# Master connections go through a sentinel lookup first
SENTINEL_TIMEOUT_MULTIPLIER = 5


@dataclass
class PoolConfig:
    """Settings shared by the master and replica pools."""

    max_connections: int = DEFAULT_MAX_CONNECTIONS
    timeout: float = DEFAULT_TIMEOUT
    connect_timeout: float | None = None
    username: str | None = None
    password: str | None = None
    sentinel_password: str | None = None
    client_name: str | None = None
    min_idle: int = 1
    name: str | None = None  # diagnostic label, set per pool

    def clone(self, **changes: Any) -> "PoolConfig":
        """Get an independent copy, optionally with some fields changed."""
        return replace(self, **changes)

    def connection_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for a redis-py connection pool."""
        return {
            "max_connections": self.max_connections,
            "socket_timeout": self.timeout,
            "socket_connect_timeout": self.connect_timeout or self.timeout,
            "username": self.username,
            "password": self.password,
            "client_name": self.client_name,
        }


class Pool(ABC):
    """Abstract interface for a pool of store connections."""

    @property
    @abstractmethod
    def closed(self) -> bool:
        """Check if the pool was destroyed."""
        ...

    @abstractmethod
    async def get_resource(self) -> Connection:
        """Check a connection out of the pool."""
        ...

    @abstractmethod
    async def release(self, conn: Connection) -> None:
        """Return a connection to the pool."""
        ...

    @abstractmethod
    async def destroy(self) -> None:
        """Close all connections of the pool."""
        ...

    @abstractmethod
    def client(self) -> Redis:
        """Get a redis client running its commands through this pool."""
        ...

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[Connection]:
        """Acquire a connection from the pool."""
        conn = await self.get_resource()
        try:
            yield conn
        except Exception:
            # Connection state is unknown, drop the socket
            with contextlib.suppress(Exception):
                await conn.disconnect()
            raise
        finally:
            await self.release(conn)


class _RedisBackedPool(Pool):
    """Pool delegating to a redis-py connection pool."""

    def __init__(self, pool: ConnectionPool, config: PoolConfig) -> None:
        self._pool = pool
        self._config = config
        self._closed = False

    @property
    def config(self) -> PoolConfig:
        """Get the pool configuration."""
        return self._config

    @property
    def closed(self) -> bool:
        return self._closed

    async def get_resource(self) -> Connection:
        if self._closed:
            raise PoolClosedError("Pool is closed")
        return await self._pool.get_connection()

    async def release(self, conn: Connection) -> None:
        await self._pool.release(conn)

    async def destroy(self) -> None:
        self._closed = True
        await self._pool.disconnect()

    def client(self) -> Redis:
        return Redis(connection_pool=self._pool)


class RedisPool(_RedisBackedPool):
    """Pool of connections to a single store node."""

    def __init__(self, config: PoolConfig, endpoint: Endpoint) -> None:
        pool = ConnectionPool(
            host=endpoint.host,
            port=endpoint.port,
            db=endpoint.database,
            **config.connection_kwargs(),
        )
        super().__init__(pool, config)
        self._endpoint = endpoint

    @property
    def endpoint(self) -> Endpoint:
        """Get the node this pool connects to."""
        return self._endpoint

    async def initialize(self) -> None:
        """Open the minimum number of idle connections."""
        connections: list[Connection] = []
        try:
            for _ in range(self._config.min_idle):
                connections.append(await self.get_resource())
        finally:
            for conn in connections:
                await self.release(conn)

    def __repr__(self) -> str:
        return f"<RedisPool {self._config.name or self._endpoint.url}>"


class ConnectionPoolFactory(ABC):
    """Abstract interface for building a ready pool for an endpoint."""

    @abstractmethod
    async def create(self, config: PoolConfig, endpoint: Endpoint) -> Pool:
        """Build a pool bound to the endpoint.

        Raises PoolConstructionError if the endpoint cannot be reached.
        """
        ...


class RedisPoolFactory(ConnectionPoolFactory):
    """Builds RedisPool instances and checks they can connect."""

    async def create(self, config: PoolConfig, endpoint: Endpoint) -> Pool:
        config.name = endpoint.url
        logger.info("Connecting to replica %s ...", endpoint.url)

        pool = RedisPool(config, endpoint)
        try:
            await pool.initialize()
        except (RedisError, OSError) as e:
            with contextlib.suppress(Exception):
                await pool.destroy()
            raise PoolConstructionError(endpoint.url, str(e)) from e

        return pool


class SentinelMasterPool(_RedisBackedPool):
    """Pool of connections to the current master, following failovers.

    The master address is looked up through the sentinels whenever a
    connection is opened, so a promoted replica is picked up by new
    connections.
    """

    def __init__(
        self,
        cluster_name: str,
        sentinels: Iterable[SentinelLike],
        config: PoolConfig,
        *,
        database: int = 0,
    ) -> None:
        """Initialize master pool (does not connect yet).

        Args:
            cluster_name: Name the sentinels monitor the master under
            sentinels: Sentinel addresses
            config: Pool settings; a labelled copy is kept
            database: Database index to select
        """
        timeout = config.timeout * SENTINEL_TIMEOUT_MULTIPLIER
        config = config.clone(
            name=f"sentinel://{cluster_name}/{database}",
            connect_timeout=config.connect_timeout if config.connect_timeout is not None else timeout,
        )

        self._cluster_name = cluster_name
        self._sentinel = Sentinel(
            [sentinel.as_tuple() for sentinel in parse_sentinels(sentinels)],
            sentinel_kwargs={
                "socket_timeout": timeout,
                "socket_connect_timeout": timeout,
                "password": config.sentinel_password,
            },
        )
        pool = SentinelConnectionPool(
            cluster_name,
            self._sentinel,
            db=database,
            **config.connection_kwargs(),
        )
        super().__init__(pool, config)

    @property
    def cluster_name(self) -> str:
        """Get the monitored cluster name."""
        return self._cluster_name

    async def master_address(self) -> Endpoint:
        """Ask the sentinels for the current master."""
        host, port = await self._sentinel.discover_master(self._cluster_name)
        return Endpoint(host, int(port))

    async def destroy(self) -> None:
        """Close the master connections and every sentinel connection.

        Each step is attempted even if an earlier one fails.
        """
        try:
            await super().destroy()
        except Exception:
            logger.exception("Releasing master connections of %r failed", self._cluster_name)

        for sentinel in self._sentinel.sentinels:
            try:
                await sentinel.aclose()
            except Exception:
                logger.exception("Closing sentinel connection of %r failed", self._cluster_name)

    def __repr__(self) -> str:
        return f"<SentinelMasterPool {self._config.name}>"
