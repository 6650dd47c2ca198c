"""
Kernel test configuration.

Kernel tests run against the in-memory repo; nothing here needs a network
or a database.
"""

import pytest
import pytest_asyncio

from dashboard.notifications import MemorySink
from dashboard.repos.memory_repo import MemoryRepo
from datasync.kernel.cache import EntityCache
from datasync.kernel.coordinator import MutationCoordinator
from datasync.kernel.tests.helpers import ITEMS, make_items


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def repo():
    return MemoryRepo(ITEMS, make_items(("1", "Beta", False), ("2", "Alpha", True)))


@pytest_asyncio.fixture
async def cache(repo, sink):
    cache = EntityCache(ITEMS, repo, sink)
    await cache.load()
    sink.clear()
    return cache


@pytest.fixture
def coordinator(cache, repo, sink):
    return MutationCoordinator(ITEMS, cache, repo, sink)
