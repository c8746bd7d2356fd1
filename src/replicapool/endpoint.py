"""Addresses and discovery results."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from replicapool.exceptions import DiscoveryError

DEFAULT_SENTINEL_PORT = 26379


def _parse_port(value: Any) -> int:
    port = int(value)
    if not 0 < port < 65536:
        raise ValueError(f"Port out of range: {port}")
    return port


@dataclass(frozen=True, order=True)
class Endpoint:
    """A reachable store node.

    Two endpoints are equal when host and port match; the database index
    travels along but is not part of the identity.
    """

    host: str
    port: int
    database: int = field(default=0, compare=False)

    @property
    def address(self) -> str:
        """Get the endpoint as "host:port"."""
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    @property
    def url(self) -> str:
        """Get the endpoint as a redis URL including the database index."""
        return f"redis://{self.address}/{self.database}"

    @classmethod
    def from_record(cls, record: Mapping[str, Any], database: int = 0) -> "Endpoint":
        """Build an endpoint from a sentinel replica record."""
        try:
            host = record["ip"]
            port = _parse_port(record["port"])
        except (KeyError, TypeError, ValueError) as e:
            raise DiscoveryError(f"Malformed replica record {record!r}: {e}") from e

        if not isinstance(host, str) or not host:
            raise DiscoveryError(f"Malformed replica record {record!r}: missing ip")

        return cls(host, port, database)

    def __str__(self) -> str:
        return self.address


@dataclass(frozen=True, order=True)
class SentinelAddress:
    """Address of a sentinel to query."""

    host: str
    port: int = DEFAULT_SENTINEL_PORT

    @classmethod
    def parse(cls, address: str) -> "SentinelAddress":
        """Parse "host:port", "[v6]:port", "redis://host:port" or a bare host."""
        text = address.strip()
        if text.startswith("redis://"):
            text = text[len("redis://") :].rstrip("/")

        if not text:
            raise ValueError(f"Invalid sentinel address: {address!r}")

        if text.startswith("["):
            host, sep, rest = text[1:].partition("]")
            if not sep or not host:
                raise ValueError(f"Invalid sentinel address: {address!r}")
            if not rest:
                return cls(host)
            if not rest.startswith(":"):
                raise ValueError(f"Invalid sentinel address: {address!r}")
            return cls(host, _parse_port(rest[1:]))

        # Unbracketed IPv6 literal, no port
        if text.count(":") > 1:
            return cls(text)

        host, sep, port_str = text.partition(":")
        if not host:
            raise ValueError(f"Invalid sentinel address: {address!r}")
        if not sep:
            return cls(host)
        return cls(host, _parse_port(port_str))

    def as_tuple(self) -> tuple[str, int]:
        return (self.host, self.port)

    def __str__(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


SentinelLike = str | tuple[str, int] | SentinelAddress


def parse_sentinels(sentinels: Iterable[SentinelLike]) -> list[SentinelAddress]:
    """Normalize sentinel addresses into a deduplicated, sorted list.

    Callers hand sentinels over as an unordered collection; sorting here
    gives every run the same visiting order.
    """
    result: set[SentinelAddress] = set()
    for sentinel in sentinels:
        if isinstance(sentinel, SentinelAddress):
            result.add(sentinel)
        elif isinstance(sentinel, str):
            result.add(SentinelAddress.parse(sentinel))
        else:
            host, port = sentinel
            result.add(SentinelAddress(host, _parse_port(port)))
    return sorted(result)


@dataclass(frozen=True)
class DiscoveryResult:
    """Outcome of one replica discovery run."""

    selected: Endpoint | None = None
    candidates: frozenset[Endpoint] = frozenset()
    local_address: str | None = None

    @property
    def is_local(self) -> bool:
        """Check if a replica on this host was found."""
        return self.selected is not None

    def choose(self) -> Endpoint | None:
        """Pick the replica to read from.

        The local match if there is one, otherwise the lowest candidate by
        (host, port), otherwise None.
        """
        if self.selected is not None:
            return self.selected
        if self.candidates:
            return min(self.candidates)
        return None
