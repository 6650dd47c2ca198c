"""
In-memory RemoteStore.

Behaves like the database-backed repos (server-assigned uuid ids,
created_at/updated_at stamps, NotFoundError for missing rows) without any
IO. Used by tests, demos and the `memory` backend. Failures and latency can
be injected per operation.

Child rows (deviation comments) live in their own MemoryRepo and are
embedded into the parent on every read, like the database repos select them.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import pydantic

from datasync.kernel.errors import NotFoundError, ValidationError
from datasync.kernel.types import Entity, EntityKind

logger = logging.getLogger(__name__)

OPERATIONS = ("list", "create", "update", "delete")


class MemoryRepo:
    """All record operations for one kind, kept in a dict."""

    def __init__(
        self,
        kind: EntityKind,
        records: Iterable[Entity] = (),
        *,
        latency: float = 0.0,
        children: Mapping[str, tuple[MemoryRepo, str]] | None = None,
    ) -> None:
        self.kind = kind
        self.latency = latency
        # model field → (child repo, foreign key column)
        self.children = dict(children or {})
        self.calls: list[tuple[str, Any]] = []
        self._rows: dict[str, Entity] = {}
        self._failures: dict[str, deque[BaseException]] = {op: deque() for op in OPERATIONS}
        self._gates: dict[str, asyncio.Event] = {}
        self.seed(records)

    # -- test hooks --

    def seed(self, records: Iterable[Entity]) -> None:
        for record in records:
            for name, (child, _) in self.children.items():
                child.seed(getattr(record, name))
            self._rows[record.id] = self._strip(record)

    def drop_where(self, column: str, value: Any) -> None:
        """Remove every row whose column equals value (ON DELETE CASCADE)."""
        self._rows = {key: row for key, row in self._rows.items() if getattr(row, column) != value}

    def fail_next(self, op: str, exc: BaseException) -> None:
        """Make the next call to `op` raise exc. Calls queue up in order."""
        if op not in OPERATIONS:
            raise ValueError(f"Unknown operation '{op}'")
        self._failures[op].append(exc)

    def pause(self, op: str) -> asyncio.Event:
        """Hold calls to `op` until the returned event is set."""
        if op not in OPERATIONS:
            raise ValueError(f"Unknown operation '{op}'")
        gate = asyncio.Event()
        self._gates[op] = gate
        return gate

    def get(self, entity_id: str) -> Entity | None:
        record = self._rows.get(entity_id)
        return None if record is None else self._compose(record)

    @property
    def rows(self) -> dict[str, Entity]:
        return {entity_id: self._compose(record) for entity_id, record in self._rows.items()}

    # -- child rows --

    def _strip(self, record: Entity) -> Entity:
        if not self.children:
            return record
        return record.model_copy(update={name: () for name in self.children})

    def _compose(self, record: Entity) -> Entity:
        if not self.children:
            return record
        embedded = {
            name: tuple(row for row in child.rows.values() if getattr(row, fk) == record.id)
            for name, (child, fk) in self.children.items()
        }
        return record.model_copy(update=embedded)

    async def _enter(self, op: str, arg: Any = None) -> None:
        self.calls.append((op, arg))
        if self.latency:
            await asyncio.sleep(self.latency)
        gate = self._gates.get(op)
        if gate is not None:
            await gate.wait()
        if self._failures[op]:
            raise self._failures[op].popleft()

    # -- RemoteStore --

    async def list(self) -> list[Entity]:
        await self._enter("list")
        return [self._compose(record) for record in self._rows.values()]

    async def create(self, fields: Mapping[str, Any]) -> Entity:
        await self._enter("create", dict(fields))
        data = {key: value for key, value in fields.items() if key not in self.children}
        data["id"] = str(uuid4())
        if "created_at" in self.kind.model.model_fields:
            data["created_at"] = datetime.now(UTC)
        try:
            record = self.kind.model.model_validate(data)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"{exc.error_count()} invalid field(s)") from exc
        self._rows[record.id] = record
        logger.debug("%s: created %s", self.kind.name, record.id)
        return self._compose(record)

    async def update(self, entity_id: str, patch: Mapping[str, Any]) -> Entity:
        await self._enter("update", (entity_id, dict(patch)))
        current = self._rows.get(entity_id)
        if current is None:
            raise NotFoundError(f"{self.kind.name} '{entity_id}' not found")

        fields = self.kind.model.model_fields
        unknown = [key for key in patch if key not in fields or key == "id"]
        if unknown:
            raise ValidationError(f"Cannot update {', '.join(unknown)}")

        data = {**current.model_dump(), **{key: value for key, value in patch.items() if key not in self.children}}
        if "updated_at" in fields:
            data["updated_at"] = datetime.now(UTC)
        try:
            record = self.kind.model.model_validate(data)
        except pydantic.ValidationError as exc:
            raise ValidationError(f"{exc.error_count()} invalid field(s)") from exc
        self._rows[entity_id] = record
        return self._compose(record)

    async def delete(self, entity_id: str) -> None:
        await self._enter("delete", entity_id)
        if self._rows.pop(entity_id, None) is None:
            raise NotFoundError(f"{self.kind.name} '{entity_id}' not found")
        for child, fk in self.children.values():
            child.drop_where(fk, entity_id)
