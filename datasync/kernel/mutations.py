"""
Datasync Kernel — Mutation Construction

Factory functions for creating well-formed mutations.
Used by the coordinator to describe optimistic changes, reconciliations and
rollbacks before feeding them to the reducer, and by tests to build
mutations concisely.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from typing import Any

from datasync.kernel.types import PLACEHOLDER_PREFIX, Entity, Mutation


def make_placeholder_id() -> str:
    """Id for an optimistic record whose create is not yet confirmed."""
    return f"{PLACEHOLDER_PREFIX}{uuid.uuid4().hex[:12]}"


def make_insert(record: Entity) -> Mutation:
    return Mutation(type="entity.insert", id=record.id, record=record)


def make_patch(entity_id: str, patch: Mapping[str, Any]) -> Mutation:
    return Mutation(type="entity.patch", id=entity_id, patch=dict(patch))


def make_remove(entity_id: str) -> Mutation:
    return Mutation(type="entity.remove", id=entity_id)


def make_replace(entity_id: str, record: Entity) -> Mutation:
    """
    Swap the record stored at entity_id for `record`.

    record.id may differ from entity_id — that is how a placeholder
    becomes the server-confirmed record after a create.
    """
    return Mutation(type="entity.replace", id=entity_id, record=record)


def make_restore(entity_id: str, record: Entity | None) -> Mutation:
    """
    Force entity_id to a known value. None means "must be absent".

    Used for rollbacks and reconciliation, so it never rejects.
    """
    return Mutation(type="entity.restore", id=entity_id, record=record)
