"""
Datasync Kernel — Mutation Coordinator

Turns a user intent (create, update, delete, toggle, custom transform) into
a RemoteStore call while keeping the EntityCache consistent under failure.

Protocol for every operation:
  1. apply the optimistic change to the cache, remembering the record it replaced
  2. await the RemoteStore call
  3. success → reconcile with the server's record, one success notification
  4. failure → restore the remembered record, one error notification, re-raise

Per-id ordering uses a pending-version index instead of a lock:
  _versions  id → last version handed out (monotonic)
  _owners    id → version currently allowed to touch the id
  _queues    id → futures of mutations waiting for the id
A completion whose version no longer owns the id is stale and is
discarded without reconcile, rollback or notification.

A delete takes an id over from an in-flight update (never from a create or
another delete). If the delete fails, the id goes back to the update, which
then settles as if nothing had happened.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import pydantic

from datasync.kernel.cache import NOT_RELOADED, EntityCache
from datasync.kernel.errors import (
    NotFoundError,
    RemoteStoreError,
    UnknownError,
    ValidationError,
    categorize,
    describe,
)
from datasync.kernel.mutations import (
    make_insert,
    make_patch,
    make_placeholder_id,
    make_remove,
    make_replace,
    make_restore,
)
from datasync.kernel.types import Entity, EntityKind, Mutation, Notification, NotificationSink, RemoteStore

logger = logging.getLogger(__name__)

# Owner marker for a slot handed to a queued mutation that has not resumed yet
_RESERVED = 0

RemoteCall = Callable[[Entity, Entity], Awaitable[Entity]]

_VERBS: dict[str, tuple[str, str]] = {
    # action: (past tense for success, infinitive for failure)
    "create": ("created", "create"),
    "update": ("updated", "update"),
    "delete": ("deleted", "delete"),
}


@dataclass
class _Takeover:
    """An in-flight mutation a delete took the id from."""

    version: int
    # True: the delete failed and the id is handed back. False: the mutation is stale.
    handed_back: asyncio.Future[bool] = field(default_factory=lambda: asyncio.get_running_loop().create_future())


class MutationCoordinator:
    """Executes mutations for one entity kind with optimistic application and rollback."""

    def __init__(
        self,
        kind: EntityKind,
        cache: EntityCache,
        store: RemoteStore,
        sink: NotificationSink | None = None,
    ) -> None:
        self.kind = kind
        self._cache = cache
        self._store = store
        self._sink = sink
        self._versions: dict[str, int] = {}
        self._owners: dict[str, int] = {}
        self._queues: dict[str, deque[asyncio.Future[str]]] = {}
        self._aliases: dict[str, str] = {}
        self._creating: set[str] = set()
        self._deleting: set[str] = set()
        self._takeovers: dict[str, _Takeover] = {}
        self._active = 0
        self._idle = asyncio.Event()
        self._idle.set()

    # -- introspection --

    def version(self, entity_id: str) -> int:
        return self._versions.get(self._resolve(entity_id), 0)

    def is_pending(self, entity_id: str) -> bool:
        return self._resolve(entity_id) in self._owners

    async def drain(self) -> None:
        """Wait until no mutation is in flight or queued."""
        await self._idle.wait()

    # -- public operations --

    async def create(
        self,
        fields: Mapping[str, Any],
        *,
        success_title: str | None = None,
        success_detail: str | None = None,
    ) -> Entity | None:
        """
        Insert a placeholder, create remotely, then swap in the server record.

        Returns the confirmed record, or None if the placeholder was
        superseded before the create resolved.
        """
        placeholder_id = make_placeholder_id()
        try:
            placeholder = self.kind.model.model_validate({**fields, "id": placeholder_id})
        except pydantic.ValidationError as exc:
            error = ValidationError(_first_error(exc))
            self._fail("create", error)
            raise error from exc

        payload = placeholder.model_dump(exclude={"id"}, exclude_unset=True)
        entity_id, version = await self._acquire(placeholder_id)
        self._creating.add(entity_id)
        renamed_to: str | None = None
        released = False
        try:
            self._cache.apply(make_insert(placeholder))
            try:
                confirmed = await self._store.create(payload)
            except Exception as exc:
                error = categorize(exc)
                reloaded = self._cache.release(entity_id)
                released = True
                if self._is_stale(entity_id, version):
                    self._discard("create", entity_id, error)
                    return None
                self._rollback(entity_id, None, reloaded, error)
                self._fail("create", error)
                if error is exc:
                    raise
                raise error from exc

            self._cache.release(entity_id)
            released = True
            if self._is_stale(entity_id, version):
                self._discard("create", entity_id)
                return None

            self._cache.apply(make_replace(entity_id, confirmed))
            renamed_to = confirmed.id
            self._succeed("create", confirmed, title=success_title, detail=success_detail)
            return confirmed
        finally:
            self._creating.discard(entity_id)
            if not released:
                self._cache.release(entity_id)
            self._handoff(entity_id, version, renamed_to=renamed_to)
            self._finish()

    async def update(
        self,
        entity_id: str,
        patch: Mapping[str, Any],
        *,
        success_title: str | None = None,
        success_detail: str | None = None,
        failure_title: str | None = None,
    ) -> Entity | None:
        """Merge patch optimistically, confirm remotely. Returns the confirmed record, None if stale."""
        patch = dict(patch)

        def remote(before: Entity, optimistic: Entity) -> Awaitable[Entity]:
            normalized = {key: getattr(optimistic, key) for key in patch}
            return self._store.update(optimistic.id, normalized)

        return await self._run(
            entity_id,
            "update",
            lambda current: make_patch(current.id, patch),
            remote,
            success_title=success_title,
            success_detail=success_detail,
            failure_title=failure_title,
        )

    async def toggle(self, entity_id: str, field: str) -> Entity | None:
        """
        Flip a boolean field. The flip is computed from the cached value at
        the moment this mutation gets the id, so queued toggles compose.
        """
        titles: dict[str, str] = {}

        def mutation_for(current: Entity) -> Mutation:
            value = not bool(getattr(current, field))
            if field == self.kind.pin_field:
                titles["success"] = f"{self.kind.label} {'pinned' if value else 'unpinned'}"
            return make_patch(current.id, {field: value})

        def remote(before: Entity, optimistic: Entity) -> Awaitable[Entity]:
            return self._store.update(optimistic.id, {field: getattr(optimistic, field)})

        return await self._run(
            entity_id,
            "update",
            mutation_for,
            remote,
            success_title=lambda: titles.get("success"),
            failure_title=f"Could not change {self.kind.label.lower()}",
        )

    async def mutate(
        self,
        entity_id: str,
        transform: Callable[[Entity], Entity],
        remote_call: RemoteCall,
        *,
        success_title: str | None = None,
        success_detail: str | None = None,
        failure_title: str | None = None,
    ) -> Entity | None:
        """
        General optimistic mutation for domain workflows.

        transform(current) builds the optimistic record; remote_call(before,
        optimistic) performs the remote side effect and returns the
        confirmed record.
        """

        def mutation_for(current: Entity) -> Mutation:
            return make_replace(current.id, transform(current))

        return await self._run(
            entity_id,
            "update",
            mutation_for,
            remote_call,
            success_title=success_title,
            success_detail=success_detail,
            failure_title=failure_title,
        )

    async def delete(self, entity_id: str) -> Entity | None:
        """
        Remove optimistically, then remotely.

        A delete does not queue behind an in-flight update on the same id: it
        takes the id over, so the update's eventual completion is discarded.
        If the delete fails the update gets the id back and settles normally.
        A delete behind another delete or a create waits its turn.
        Returns the removed record, None if stale.
        """
        entity_id, version = await self._acquire(entity_id, preempt=True)
        self._deleting.add(entity_id)
        takeover = self._takeovers.get(entity_id)
        released = False
        try:
            current = self._cache.get(entity_id)
            if current is None:
                error = NotFoundError(f"{self.kind.label} '{entity_id}' is not loaded")
                self._fail("delete", error)
                raise error

            self._cache.apply(make_remove(entity_id))
            try:
                await self._store.delete(entity_id)
            except Exception as exc:
                error = categorize(exc)
                reloaded = self._cache.release(entity_id)
                released = True
                if self._is_stale(entity_id, version):
                    self._discard("delete", entity_id, error)
                    return None
                if not isinstance(error, NotFoundError):
                    self._rollback(entity_id, current, reloaded, error)
                    if takeover is not None and self._takeovers.get(entity_id) is takeover:
                        self._owners[entity_id] = takeover.version
                        takeover.handed_back.set_result(True)
                self._fail("delete", error)
                if error is exc:
                    raise
                raise error from exc

            self._cache.release(entity_id)
            released = True
            if self._is_stale(entity_id, version):
                self._discard("delete", entity_id)
                return None

            self._succeed("delete", current)
            return current
        finally:
            self._deleting.discard(entity_id)
            if takeover is not None:
                if self._takeovers.get(entity_id) is takeover:
                    del self._takeovers[entity_id]
                if not takeover.handed_back.done():
                    takeover.handed_back.set_result(False)
            if not released:
                self._cache.release(entity_id)
            self._handoff(entity_id, version)
            self._finish()

    # -- shared protocol --

    async def _run(
        self,
        entity_id: str,
        action: str,
        mutation_for: Callable[[Entity], Mutation],
        remote: RemoteCall,
        *,
        success_title: str | Callable[[], str | None] | None = None,
        success_detail: str | None = None,
        failure_title: str | None = None,
    ) -> Entity | None:
        entity_id, version = await self._acquire(entity_id)
        released = False
        try:
            current = self._cache.get(entity_id)
            if current is None:
                error = NotFoundError(f"{self.kind.label} '{entity_id}' is not loaded")
                self._fail(action, error, title=failure_title)
                raise error

            try:
                mutation = mutation_for(current)
            except pydantic.ValidationError as exc:
                error = ValidationError(_first_error(exc))
                self._fail(action, error, title=failure_title)
                raise error from exc

            applied = self._cache.apply(mutation)
            if not applied.applied:
                error = _rejection(applied.reason)
                self._fail(action, error, title=failure_title)
                raise error

            optimistic = applied.snapshot[entity_id]
            try:
                confirmed = await remote(current, optimistic)
            except Exception as exc:
                error = categorize(exc)
                await self._wait_for_takeover(entity_id, version)
                reloaded = self._cache.release(entity_id)
                released = True
                if self._is_stale(entity_id, version):
                    self._discard(action, entity_id, error)
                    return None
                self._rollback(entity_id, current, reloaded, error)
                self._fail(action, error, title=failure_title)
                if error is exc:
                    raise
                raise error from exc

            await self._wait_for_takeover(entity_id, version)
            self._cache.release(entity_id)
            released = True
            if self._is_stale(entity_id, version):
                self._discard(action, entity_id)
                return None

            self._cache.apply(make_replace(entity_id, confirmed))
            title = success_title() if callable(success_title) else success_title
            self._succeed(action, confirmed, title=title, detail=success_detail)
            return confirmed
        finally:
            takeover = self._takeovers.get(entity_id)
            if takeover is not None and takeover.version == version:
                # Cancelled while the delete was in flight; nothing left to hand back to.
                del self._takeovers[entity_id]
            if not released:
                self._cache.release(entity_id)
            self._handoff(entity_id, version)
            self._finish()

    def _rollback(self, entity_id: str, before: Entity | None, reloaded: object, error: RemoteStoreError) -> None:
        if isinstance(error, NotFoundError):
            # Vanished remotely: reconcile by removal.
            self._cache.apply(make_restore(entity_id, None))
            return
        target = before if reloaded is NOT_RELOADED else reloaded
        self._cache.apply(make_restore(entity_id, target))  # type: ignore[arg-type]

    # -- per-id slots --

    def _resolve(self, entity_id: str) -> str:
        while entity_id in self._aliases:
            entity_id = self._aliases[entity_id]
        return entity_id

    async def _acquire(self, entity_id: str, *, preempt: bool = False) -> tuple[str, int]:
        """Wait for the id's slot. Returns the (possibly re-aliased) id and this mutation's version."""
        entity_id = self._resolve(entity_id)
        self._active += 1
        self._idle.clear()
        while entity_id in self._owners:
            if preempt and entity_id not in self._creating and entity_id not in self._deleting:
                owner = self._owners[entity_id]
                if owner != _RESERVED:
                    self._takeovers[entity_id] = _Takeover(owner)
                logger.debug("%s: delete preempts pending mutation on %s", self.kind.name, entity_id)
                break
            waiter: asyncio.Future[str] = asyncio.get_running_loop().create_future()
            self._queues.setdefault(entity_id, deque()).append(waiter)
            try:
                entity_id = await waiter
            except asyncio.CancelledError:
                if waiter.done() and not waiter.cancelled():
                    # The slot was handed to us after all; pass it on.
                    self._handoff(waiter.result(), _RESERVED)
                self._finish()
                raise
            if self._owners.get(entity_id) == _RESERVED:
                break

        version = self._versions.get(entity_id, 0) + 1
        self._versions[entity_id] = version
        self._owners[entity_id] = version
        self._cache.hold(entity_id)
        return entity_id, version

    def _handoff(self, entity_id: str, version: int, *, renamed_to: str | None = None) -> None:
        """Release the id's slot to the next queued mutation, if this mutation still owns it."""
        if self._owners.get(entity_id) != version:
            return

        del self._owners[entity_id]
        queue = self._queues.pop(entity_id, deque())
        target = entity_id
        if renamed_to is not None and renamed_to != entity_id:
            self._aliases[entity_id] = renamed_to
            target = renamed_to
            queue.extend(self._queues.pop(target, ()))

        queue = deque(waiter for waiter in queue if not waiter.done())
        if not queue:
            return
        if target in self._owners:
            # Someone already works on the confirmed id; line up behind it.
            self._queues[target] = queue
            return

        waiter = queue.popleft()
        if queue:
            self._queues[target] = queue
        self._owners[target] = _RESERVED
        waiter.set_result(target)

    def _finish(self) -> None:
        self._active -= 1
        if self._active == 0:
            self._idle.set()

    async def _wait_for_takeover(self, entity_id: str, version: int) -> None:
        """If a delete took the id from this mutation, wait until that delete settles."""
        takeover = self._takeovers.get(entity_id)
        if takeover is not None and takeover.version == version:
            await asyncio.shield(takeover.handed_back)

    def _is_stale(self, entity_id: str, version: int) -> bool:
        return self._owners.get(entity_id) != version

    # -- notifications --

    def _succeed(self, action: str, record: Entity, *, title: str | None = None, detail: str | None = None) -> None:
        past, _ = _VERBS[action]
        logger.info("%s: %s %s", self.kind.name, past, record.id)
        self._notify(Notification("success", title or f"{self.kind.label} {past}", detail))

    def _fail(self, action: str, error: RemoteStoreError, *, title: str | None = None) -> None:
        _, verb = _VERBS[action]
        if isinstance(error, UnknownError):
            logger.error("%s: %s failed: %s", self.kind.name, action, error.message)
        else:
            logger.warning("%s: %s failed (%s): %s", self.kind.name, action, error.category, error.message)
        self._notify(Notification("error", title or f"Could not {verb} {self.kind.label.lower()}", describe(error)))

    def _discard(self, action: str, entity_id: str, error: RemoteStoreError | None = None) -> None:
        outcome = f"failure ({error.category})" if error else "success"
        logger.info("%s: discarding stale %s %s for %s", self.kind.name, action, outcome, entity_id)

    def _notify(self, notification: Notification) -> None:
        if self._sink is not None:
            self._sink.notify(notification)


def _first_error(exc: pydantic.ValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(part) for part in err.get("loc", ())) or "record"
    return f"{loc}: {err.get('msg', 'invalid value')}"


def _rejection(reason: str | None) -> RemoteStoreError:
    """Map a reducer rejection to the error category it represents."""
    reason = reason or "REJECTED"
    if reason.startswith("ENTITY_NOT_FOUND"):
        return NotFoundError(reason)
    return ValidationError(reason)
