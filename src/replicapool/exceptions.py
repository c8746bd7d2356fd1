"""Exceptions for the replica pool."""


class ReplicaPoolError(Exception):
    """Base exception for replica pool errors."""

    pass


class DiscoveryError(ReplicaPoolError):
    """Replica discovery degraded (sentinel unreachable, bad record, etc).

    Never escapes discovery; it is logged and the next source is tried.
    """

    pass


class PoolConstructionError(ReplicaPoolError):
    """A selected replica could not be turned into a working pool."""

    endpoint: str

    def __init__(self, endpoint: str, message: str) -> None:
        self.endpoint = endpoint
        super().__init__(f"Could not build pool for {endpoint}: {message}")


class PoolClosedError(ReplicaPoolError):
    """Checkout attempted on a destroyed pool."""

    pass
