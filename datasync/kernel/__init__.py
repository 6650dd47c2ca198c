"""
Datasync Kernel — optimistic client-side data synchronization.

Components:
  reducer      — (snapshot, mutation) → snapshot  (pure, deterministic)
  cache        — one collection's snapshot and load lifecycle
  coordinator  — optimistic mutations with per-id ordering and rollback
  filters      — query/categorical filtering and pinned-first ordering
  facade       — EntityView, the surface a screen talks to
"""

from datasync.kernel.cache import EntityCache
from datasync.kernel.coordinator import MutationCoordinator
from datasync.kernel.errors import (
    NetworkError,
    NotFoundError,
    RemoteStoreError,
    ServerError,
    UnknownError,
    ValidationError,
    ViewClosed,
)
from datasync.kernel.facade import EntityView
from datasync.kernel.filters import FilterParameters, apply_filter, apply_sort, derive_view
from datasync.kernel.reducer import build_snapshot, empty_snapshot, reduce
from datasync.kernel.types import CacheState, Entity, EntityKind, Mutation, Notification

__all__ = [
    "Entity",
    "EntityKind",
    "Mutation",
    "CacheState",
    "Notification",
    "reduce",
    "empty_snapshot",
    "build_snapshot",
    "apply_filter",
    "apply_sort",
    "derive_view",
    "FilterParameters",
    "EntityCache",
    "MutationCoordinator",
    "EntityView",
    "RemoteStoreError",
    "NetworkError",
    "ServerError",
    "NotFoundError",
    "ValidationError",
    "UnknownError",
    "ViewClosed",
]
