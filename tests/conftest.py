"""Pytest configuration for replica pool tests."""

import pytest

from fakes import FakePool, FakePoolFactory


@pytest.fixture
def master_pool() -> FakePool:
    return FakePool("master")


@pytest.fixture
def factory() -> FakePoolFactory:
    return FakePoolFactory()
