"""
Repository layer for Siteboard.

Every RemoteStore implementation lives here, and all wire naming with it.
No database or HTTP access outside this module.
"""

from dashboard.repos.memory_repo import MemoryRepo
from dashboard.repos.postgres_repo import PostgresRepo, create_pool
from dashboard.repos.rest_repo import RestRepo, create_client
from dashboard.repos.wire import from_wire, to_wire

__all__ = [
    "MemoryRepo",
    "RestRepo",
    "PostgresRepo",
    "create_client",
    "create_pool",
    "from_wire",
    "to_wire",
]
