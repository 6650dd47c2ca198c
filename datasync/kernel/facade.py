"""
Datasync Kernel — Entity View

The surface one screen talks to: the derived (filtered, sorted) list, the
cache lifecycle, the current filter parameters, and write operations that
report plain success values. Categorized errors stop here; the user has
already been told through the notification sink.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from datasync.kernel.cache import EntityCache
from datasync.kernel.coordinator import MutationCoordinator
from datasync.kernel.errors import RemoteStoreError, ViewClosed
from datasync.kernel.filters import FilterParameters, ViewMemo, distinct_values
from datasync.kernel.types import CacheState, Entity, EntityKind, NotificationSink, RemoteStore

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class EntityView:
    """Read and write access to one entity kind, with view filters."""

    def __init__(self, kind: EntityKind, store: RemoteStore, sink: NotificationSink | None = None) -> None:
        self.kind = kind
        self.store = store
        self.sink = sink
        self.cache = EntityCache(kind, store, sink)
        self.coordinator = MutationCoordinator(kind, self.cache, store, sink)
        self._memo = ViewMemo(kind)
        self._params = FilterParameters.for_kind(kind)
        self._listeners: list[Listener] = []
        self._closed = False
        self._unsubscribe_cache = self.cache.subscribe(self._emit)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def state(self) -> CacheState:
        return self.cache.state

    @property
    def is_loading(self) -> bool:
        return self.cache.state.is_loading

    @property
    def error(self) -> str | None:
        return self.cache.state.message if self.cache.state.is_error else None

    @property
    def items(self) -> tuple[Entity, ...]:
        """Filtered and sorted records. Recomputed only when the collection or filters change."""
        return self._memo.get(self.cache.snapshot(), self._params)

    @property
    def filter_parameters(self) -> FilterParameters:
        return self._params

    @property
    def closed(self) -> bool:
        return self._closed

    def get(self, entity_id: str) -> Entity | None:
        return self.cache.get(entity_id)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
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
                logger.exception("%s: view listener failed", self.kind.name)

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def set_filter_parameter(self, name: str, value: str | None) -> None:
        """Change one filter. Raises KeyError for names this kind does not define."""
        params = self._params.replace(name, value)
        if params == self._params:
            return
        self._params = params
        self._emit()

    def reset_filters(self) -> None:
        self._params = FilterParameters.for_kind(self.kind)
        self._emit()

    def filter_options(self, name: str) -> list[str]:
        """Distinct values a categorical filter can take, across the whole collection."""
        path = self.kind.filter_fields[name]
        return distinct_values(self.cache.snapshot().values(), path)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def refresh(self) -> CacheState:
        self._check_open()
        return await self.cache.load()

    def prepare_create(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Hook for kinds that derive fields (reference ids, defaults) before a create."""
        return dict(fields)

    async def _write(self, call: Awaitable[Entity | None]) -> Entity | None:
        # The sink has already reported the failure; callers only need the outcome.
        try:
            return await call
        except RemoteStoreError:
            return None

    async def create_entity(self, fields: Mapping[str, Any]) -> Entity | None:
        self._check_open()
        return await self._write(self.coordinator.create(self.prepare_create(fields)))

    async def update_entity(self, entity_id: str, patch: Mapping[str, Any]) -> bool:
        self._check_open()
        return await self._write(self.coordinator.update(entity_id, patch)) is not None

    async def delete_entity(self, entity_id: str) -> bool:
        self._check_open()
        return await self._write(self.coordinator.delete(entity_id)) is not None

    async def toggle_pinned(self, entity_id: str) -> bool:
        self._check_open()
        if self.kind.pin_field is None:
            raise ValueError(f"{self.kind.plural_label} cannot be pinned")
        return await self._write(self.coordinator.toggle(entity_id, self.kind.pin_field)) is not None

    async def close(self) -> None:
        """Let in-flight mutations settle, then detach listeners. Writes afterwards raise ViewClosed."""
        if self._closed:
            return
        self._closed = True
        await self.coordinator.drain()
        self._unsubscribe_cache()
        self._listeners.clear()
        logger.debug("%s: view closed", self.kind.name)

    def _check_open(self) -> None:
        if self._closed:
            raise ViewClosed(f"{self.kind.plural_label} view is closed")
