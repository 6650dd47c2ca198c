"""
Datasync Kernel — Reducer

Pure function: (snapshot, mutation) → ReduceResult

Snapshots are plain dicts of id → Entity. Entities are immutable, so a
shallow copy of the dict is enough to keep the input snapshot untouched;
every accepted mutation yields a brand-new dict and callers swap it in
with a single assignment.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

import pydantic

from datasync.kernel.types import Entity, Mutation

# ---------------------------------------------------------------------------
# Snapshot structure
# ---------------------------------------------------------------------------


def empty_snapshot() -> dict[str, Entity]:
    return {}


def build_snapshot(records: Iterable[Entity]) -> dict[str, Entity]:
    """Index records by id. Ids are unique; a repeated id keeps the last record."""
    snap: dict[str, Entity] = {}
    for record in records:
        snap[record.id] = record
    return snap


# ---------------------------------------------------------------------------
# ReduceResult
# ---------------------------------------------------------------------------


class ReduceResult:
    """
    Result of applying one mutation to a snapshot.
    Never throws — always returns one of these.
    """

    __slots__ = ("snapshot", "accepted", "reason")

    def __init__(self, snapshot: Mapping[str, Entity], accepted: bool, reason: str | None = None) -> None:
        self.snapshot = snapshot
        self.accepted = accepted
        self.reason = reason

    def __repr__(self) -> str:  # pragma: no cover
        if self.accepted:
            return "ReduceResult(accepted=True)"
        return f"ReduceResult(accepted=False, reason={self.reason!r})"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _reject(snap: Mapping[str, Entity], reason: str) -> ReduceResult:
    return ReduceResult(snapshot=snap, accepted=False, reason=reason)


def _ok(snap: Mapping[str, Entity]) -> ReduceResult:
    return ReduceResult(snapshot=snap, accepted=True)


def _first_error(exc: pydantic.ValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(part) for part in err.get("loc", ())) or "record"
    return f"{loc}: {err.get('msg', 'invalid value')}"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def reduce(snapshot: Mapping[str, Entity], mutation: Mutation) -> ReduceResult:
    """
    Apply one mutation to the current snapshot.
    Returns ReduceResult with new snapshot + accepted flag.

    Pure function. A rejected mutation returns the input snapshot unchanged.
    """
    handler = _HANDLERS.get(mutation.type)
    if handler is None:
        return _reject(snapshot, f"UNKNOWN_MUTATION: {mutation.type}")

    snap = dict(snapshot)
    result = handler(snap, mutation)
    if not result.accepted:
        return _reject(snapshot, result.reason or "REJECTED")
    return result


def reduce_all(snapshot: Mapping[str, Entity], mutations: Iterable[Mutation]) -> Mapping[str, Entity]:
    """
    Apply a sequence of mutations. Rejections are skipped.
    Returns the final snapshot.
    """
    for mutation in mutations:
        result = reduce(snapshot, mutation)
        if result.accepted:
            snapshot = result.snapshot
    return snapshot


def apply_patch(record: Entity, patch: Mapping[str, Any]) -> Entity:
    """
    Merge patch into record and re-validate through the record's model.

    Raises KeyError for unknown or immutable fields and
    pydantic.ValidationError for values the model refuses.
    """
    fields = type(record).model_fields
    for key in patch:
        if key == "id":
            raise KeyError("IMMUTABLE_FIELD: 'id' cannot be patched")
        if key not in fields:
            raise KeyError(f"UNKNOWN_FIELD: '{key}' is not a field of {type(record).__name__}")
    return type(record).model_validate({**record.model_dump(), **patch})


# ---------------------------------------------------------------------------
# Entity mutations
# ---------------------------------------------------------------------------


def _handle_insert(snap: dict[str, Entity], mutation: Mutation) -> ReduceResult:
    record = mutation.record
    if record is None:
        return _reject(snap, "MISSING_RECORD: entity.insert requires 'record'")
    if record.id in snap:
        return _reject(snap, f"ENTITY_EXISTS: '{record.id}' already exists")

    snap[record.id] = record
    return _ok(snap)


def _handle_patch(snap: dict[str, Entity], mutation: Mutation) -> ReduceResult:
    entity = snap.get(mutation.id)
    if entity is None:
        return _reject(snap, f"ENTITY_NOT_FOUND: '{mutation.id}' does not exist")

    try:
        snap[mutation.id] = apply_patch(entity, mutation.patch or {})
    except KeyError as exc:
        return _reject(snap, str(exc.args[0]))
    except pydantic.ValidationError as exc:
        return _reject(snap, f"INVALID_PATCH: {_first_error(exc)}")

    return _ok(snap)


def _handle_remove(snap: dict[str, Entity], mutation: Mutation) -> ReduceResult:
    if mutation.id not in snap:
        return _reject(snap, f"ENTITY_NOT_FOUND: '{mutation.id}' does not exist")

    del snap[mutation.id]
    return _ok(snap)


def _handle_replace(snap: dict[str, Entity], mutation: Mutation) -> ReduceResult:
    record = mutation.record
    if record is None:
        return _reject(snap, "MISSING_RECORD: entity.replace requires 'record'")
    if mutation.id not in snap:
        return _reject(snap, f"ENTITY_NOT_FOUND: '{mutation.id}' does not exist")

    if record.id == mutation.id:
        snap[mutation.id] = record
        return _ok(snap)

    # The confirmed record is already present (a reload got there first):
    # keep exactly one copy under the real id.
    if record.id in snap:
        del snap[mutation.id]
        snap[record.id] = record
        return _ok(snap)

    # Keep the stand-in's position so the record does not jump around.
    rebuilt: dict[str, Entity] = {}
    for key, value in snap.items():
        if key == mutation.id:
            rebuilt[record.id] = record
        else:
            rebuilt[key] = value
    return _ok(rebuilt)


def _handle_restore(snap: dict[str, Entity], mutation: Mutation) -> ReduceResult:
    if mutation.record is None:
        snap.pop(mutation.id, None)
    else:
        snap[mutation.id] = mutation.record
    return _ok(snap)


# ---------------------------------------------------------------------------
# Handler dispatch table
# ---------------------------------------------------------------------------

_HANDLERS: dict[str, Any] = {
    "entity.insert": _handle_insert,
    "entity.patch": _handle_patch,
    "entity.remove": _handle_remove,
    "entity.replace": _handle_replace,
    "entity.restore": _handle_restore,
}
