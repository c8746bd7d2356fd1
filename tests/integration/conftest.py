"""Integration test fixtures for replica pool.

These tests require a running redis master/replica setup watched by sentinels.
Point them at a sentinel with:
    REDIS_SENTINEL_TEST_CLUSTER=localhost:26379 pytest -m integration
"""

import os

import pytest

SENTINEL_TEST_CLUSTER = os.environ.get("REDIS_SENTINEL_TEST_CLUSTER")
SENTINEL_TEST_MASTER = os.environ.get("REDIS_SENTINEL_TEST_MASTER", "mymaster")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if SENTINEL_TEST_CLUSTER:
        return
    skip = pytest.mark.skip(reason="REDIS_SENTINEL_TEST_CLUSTER not set")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def sentinel_addresses() -> list[str]:
    """Get the test sentinel addresses."""
    assert SENTINEL_TEST_CLUSTER is not None
    return SENTINEL_TEST_CLUSTER.split(",")


@pytest.fixture
def cluster_name() -> str:
    return SENTINEL_TEST_MASTER
