"""
Datasync Kernel — Shared Types

Data classes and protocols used across reducer, cache, coordinator, filters
and facade. These are the contracts that bind the kernel together.

Key shapes:
- `Entity` — immutable pydantic record identified by a string `id`
- `Collection` — mapping id → Entity (insertion ordered, treated as read-only)
- `Mutation` — one pure state transition the reducer knows how to apply
- `CacheState` — idle / loading / ready / error lifecycle of one collection
- `EntityKind` — per-collection description (model, search fields, filters, sort, pin)
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Categorical filter value meaning "do not filter on this field"
MATCH_ALL = "all"

# Ids handed out to optimistic records whose create is not yet confirmed
PLACEHOLDER_PREFIX = "tmp_"


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------


class Entity(BaseModel):
    """Base class for every cached record. Immutable; `id` never changes."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str


Collection = Mapping[str, Entity]


def is_placeholder(entity_id: str) -> bool:
    return entity_id.startswith(PLACEHOLDER_PREFIX)


@dataclass(frozen=True)
class EntityKind:
    """
    Describes one entity collection to the kernel.

    search_fields — fields tested by the free-text query; dotted paths descend
                    into nested models and lists ("contact_persons.email")
    filter_fields — categorical filter name → record field
    sort_field    — display-name field used for locale-aware ordering
    pin_field     — boolean field that floats records to the top (None = no pinning)
    """

    name: str
    label: str
    model: type[Entity]
    search_fields: tuple[str, ...] = ()
    filter_fields: Mapping[str, str] = field(default_factory=dict)
    sort_field: str = "name"
    pin_field: str | None = None

    @property
    def plural_label(self) -> str:
        return self.name.replace("_", " ")


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Mutation:
    """
    One state transition. The reducer reads `type` and the fields that type needs:

      entity.insert   record                add a new record under record.id
      entity.patch    id, patch             merge fields into an existing record
      entity.remove   id                    drop an existing record
      entity.replace  id, record            swap the record at `id` for `record` (id may change)
      entity.restore  id, record | None     force `id` to `record`, or absent when None
    """

    type: str
    id: str
    record: Entity | None = None
    patch: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class ApplyResult:
    """Result of applying one mutation through the cache."""

    snapshot: Collection
    previous: Collection
    applied: bool
    reason: str | None = None


# ---------------------------------------------------------------------------
# Cache state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CacheState:
    """
    Lifecycle of one cached collection.

    idle     — never fetched, no snapshot
    loading  — fetch in flight; snapshot is the previous one, if any
    ready    — snapshot is the last successful fetch plus local mutations
    error    — message is set; snapshot is the last good one, if any
    """

    status: Literal["idle", "loading", "ready", "error"] = "idle"
    snapshot: Collection | None = None
    message: str | None = None

    @classmethod
    def idle(cls) -> CacheState:
        return cls()

    @classmethod
    def loading(cls, previous: Collection | None = None) -> CacheState:
        return cls(status="loading", snapshot=previous)

    @classmethod
    def ready(cls, snapshot: Collection) -> CacheState:
        return cls(status="ready", snapshot=snapshot)

    @classmethod
    def error(cls, message: str, last_good: Collection | None = None) -> CacheState:
        return cls(status="error", snapshot=last_good, message=message)

    @property
    def is_loading(self) -> bool:
        return self.status == "loading"

    @property
    def is_ready(self) -> bool:
        return self.status == "ready"

    @property
    def is_error(self) -> bool:
        return self.status == "error"


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Notification:
    """A user-visible outcome. Sinks decide how (and whether) to show it."""

    kind: Literal["success", "error", "info", "warning"]
    title: str
    detail: str | None = None


# ---------------------------------------------------------------------------
# Collaborator protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class RemoteStore(Protocol):
    """
    Authoritative CRUD backend for one entity kind.

    Every method may raise a `datasync.kernel.errors.RemoteStoreError` subclass.
    Records cross this boundary as kernel entities; wire naming is the
    adapter's business.
    """

    async def list(self) -> list[Entity]: ...

    async def create(self, fields: Mapping[str, Any]) -> Entity: ...

    async def update(self, entity_id: str, patch: Mapping[str, Any]) -> Entity: ...

    async def delete(self, entity_id: str) -> None: ...


@runtime_checkable
class NotificationSink(Protocol):
    """Send-and-forget outlet for notifications. Return values are ignored."""

    def notify(self, notification: Notification) -> None: ...
