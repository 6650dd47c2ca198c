"""
Datasync Kernel — Entity Cache

In-memory canonical snapshot of one entity collection plus its lifecycle
state. The only IO it performs is the `load()` orchestration; every other
change arrives as a Mutation and goes through the pure reducer.

Snapshots are swapped by reference, so readers always see a complete
collection, never a half-applied one.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from types import MappingProxyType

from datasync.kernel.errors import UnknownError, categorize, describe
from datasync.kernel.reducer import build_snapshot, reduce
from datasync.kernel.types import (
    ApplyResult,
    CacheState,
    Collection,
    Entity,
    EntityKind,
    Mutation,
    Notification,
    NotificationSink,
    RemoteStore,
)

logger = logging.getLogger(__name__)

# release() result when no reload landed while the id was held
NOT_RELOADED = object()

Listener = Callable[[], None]


class EntityCache:
    """
    Holds the latest known-good and in-flight-optimistic state of one collection.

    Held ids: while a mutation on an id is in flight the coordinator holds
    it. A reload that completes in the meantime keeps the local value for
    held ids and stashes the server's value; release() hands that value back
    so a rollback can restore the freshest authoritative state.
    """

    def __init__(self, kind: EntityKind, store: RemoteStore, sink: NotificationSink | None = None) -> None:
        self.kind = kind
        self._store = store
        self._sink = sink
        self._snapshot: dict[str, Entity] = {}
        self._view: Collection = MappingProxyType(self._snapshot)
        self._state = CacheState.idle()
        self._loaded_once = False
        self._inflight: asyncio.Task[CacheState] | None = None
        self._held: dict[str, int] = {}
        self._reloaded: dict[str, Entity | None] = {}
        self._listeners: list[Listener] = []

    # -- reads --

    @property
    def state(self) -> CacheState:
        return self._state

    def snapshot(self) -> Collection:
        """Current collection, read-only. Same object until the next change."""
        return self._view

    def get(self, entity_id: str) -> Entity | None:
        return self._snapshot.get(entity_id)

    # -- listeners --

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call listener after every snapshot or state change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("%s: cache listener failed", self.kind.name)

    # -- state transitions --

    def _set_state(self, state: CacheState) -> None:
        self._state = state
        self._emit()

    def _swap(self, snapshot: dict[str, Entity]) -> None:
        self._snapshot = snapshot
        self._view = MappingProxyType(snapshot)
        if self._state.status != "idle":
            self._state = CacheState(status=self._state.status, snapshot=self._view, message=self._state.message)
        self._emit()

    def apply(self, mutation: Mutation) -> ApplyResult:
        """Apply one pure transition. Returns the new and the prior snapshot."""
        previous = self._view
        result = reduce(self._snapshot, mutation)
        if not result.accepted:
            logger.debug("%s: rejected %s on %s: %s", self.kind.name, mutation.type, mutation.id, result.reason)
            return ApplyResult(snapshot=previous, previous=previous, applied=False, reason=result.reason)

        self._swap(dict(result.snapshot))
        return ApplyResult(snapshot=self._view, previous=previous, applied=True)

    # -- held ids --

    def hold(self, entity_id: str) -> None:
        self._held[entity_id] = self._held.get(entity_id, 0) + 1

    def release(self, entity_id: str) -> object:
        """
        Drop one hold on entity_id.

        When the last hold goes, returns the value a reload saw for the id
        (an Entity, or None when the server no longer had it), or
        NOT_RELOADED when no reload completed while it was held.
        """
        count = self._held.get(entity_id, 0) - 1
        if count > 0:
            self._held[entity_id] = count
            return NOT_RELOADED
        self._held.pop(entity_id, None)
        return self._reloaded.pop(entity_id, NOT_RELOADED)

    def is_held(self, entity_id: str) -> bool:
        return entity_id in self._held

    # -- load --

    async def load(self) -> CacheState:
        """
        Fetch the whole collection.

        A call while a fetch is already in flight joins it instead of
        starting another, so two snapshots are never interleaved.
        """
        task = self._inflight
        if task is None or task.done():
            task = asyncio.ensure_future(self._fetch())
            self._inflight = task
        else:
            logger.debug("%s: load already in flight, joining", self.kind.name)
        return await asyncio.shield(task)

    async def _fetch(self) -> CacheState:
        self._set_state(CacheState.loading(self._last_good()))
        logger.info("%s: loading", self.kind.name)

        try:
            records = await self._store.list()
        except Exception as exc:
            error = categorize(exc)
            if isinstance(error, UnknownError):
                logger.exception("%s: load failed", self.kind.name)
            else:
                logger.warning("%s: load failed (%s): %s", self.kind.name, error.category, error.message)
            self._set_state(CacheState.error(error.message or error.category, self._last_good()))
            self._notify(Notification("error", f"Could not load {self.kind.plural_label}", describe(error)))
            return self._state

        fresh = build_snapshot(records)
        if len(fresh) != len(records):
            logger.warning("%s: %d duplicate ids in load response", self.kind.name, len(records) - len(fresh))

        self._loaded_once = True
        self._snapshot = self._merge_held(fresh)
        self._view = MappingProxyType(self._snapshot)
        self._set_state(CacheState.ready(self._view))
        logger.info("%s: loaded %d records", self.kind.name, len(self._snapshot))
        return self._state

    def _last_good(self) -> Collection | None:
        return self._view if (self._loaded_once or self._snapshot) else None

    def _merge_held(self, fresh: dict[str, Entity]) -> dict[str, Entity]:
        """In-flight optimistic values win over the reload until their mutation settles."""
        if not self._held:
            return fresh
        merged = dict(fresh)
        for entity_id in self._held:
            self._reloaded[entity_id] = fresh.get(entity_id)
            local = self._snapshot.get(entity_id)
            if local is None:
                merged.pop(entity_id, None)
            else:
                merged[entity_id] = local
        return merged

    def _notify(self, notification: Notification) -> None:
        if self._sink is not None:
            self._sink.notify(notification)
