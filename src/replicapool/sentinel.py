"""Short-lived sentinel connections used for replica discovery."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from redis.asyncio import Redis

from replicapool.endpoint import SentinelAddress
from replicapool.exceptions import DiscoveryError

# Flags a sentinel sets on replicas it considers unusable
_DOWN_FLAGS = ("is_sdown", "is_odown", "is_disconnected")


class SentinelClient(ABC):
    """Abstract interface for one sentinel connection."""

    @abstractmethod
    async def list_replicas(self, cluster_name: str) -> list[dict[str, Any]]:
        """Get the replicas the sentinel knows for a cluster."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the sentinel connection."""
        ...

    async def __aenter__(self) -> "SentinelClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


SentinelConnector = Callable[[SentinelAddress], SentinelClient]


class RedisSentinelClient(SentinelClient):
    """Sentinel connection over redis-py."""

    def __init__(
        self,
        address: SentinelAddress,
        *,
        timeout: float = 10.0,
        password: str | None = None,
    ) -> None:
        """Initialize sentinel client (connects lazily on first command).

        Args:
            address: Sentinel to talk to
            timeout: Connect and read timeout in seconds
            password: Sentinel password, if the sentinel requires one
        """
        self._address = address
        self._redis = Redis(
            host=address.host,
            port=address.port,
            password=password,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
            decode_responses=True,
        )

    @property
    def address(self) -> SentinelAddress:
        """Get the sentinel address."""
        return self._address

    async def list_replicas(self, cluster_name: str) -> list[dict[str, Any]]:
        """Get the healthy replicas the sentinel reports for a cluster."""
        try:
            replicas = await self._redis.sentinel_slaves(cluster_name)
        except (KeyError, ValueError, TypeError, AttributeError, IndexError) as e:
            # Raised by redis-py while parsing a malformed reply
            raise DiscoveryError(
                f"Sentinel {self._address} sent a malformed replica list: {e!r}"
            ) from e

        if not isinstance(replicas, list):
            raise DiscoveryError(
                f"Sentinel {self._address} sent {type(replicas).__name__} for replica list"
            )

        return [
            replica
            for replica in replicas
            if not isinstance(replica, dict) or not any(replica.get(flag) for flag in _DOWN_FLAGS)
        ]

    async def close(self) -> None:
        """Close the sentinel connection."""
        await self._redis.aclose()


def connect_sentinel(
    address: SentinelAddress,
    *,
    timeout: float = 10.0,
    password: str | None = None,
) -> SentinelClient:
    """Create a client for one sentinel."""
    return RedisSentinelClient(address, timeout=timeout, password=password)
