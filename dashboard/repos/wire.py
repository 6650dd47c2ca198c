"""
Translation between model field names and the names rows use on the wire.

The models carry one canonical `pinned` flag. Tables call it `is_pinned`,
and some older rows still carry the camelCase `isPinned`; both are accepted
on input and collapsed here. Nothing outside this module knows the wire
names.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import pydantic
from pydantic_core import to_jsonable_python

from datasync.kernel.errors import ServerError
from datasync.kernel.types import Entity, EntityKind

logger = logging.getLogger(__name__)

LEGACY_PIN = "isPinned"

# kind → {model field: wire column}
_RENAMES: dict[str, dict[str, str]] = {
    "projects": {"pinned": "is_pinned"},
    "customers": {
        "pinned": "is_pinned",
        "contact_persons": "contactPersons",
        "invoice_email": "invoiceEmail",
        "payment_terms": "paymentTerms",
    },
    "deviations": {"comments": "deviation_comments"},
}

# Embedded child relations: read with the parent, written through their own table.
_CHILDREN: dict[str, frozenset[str]] = {
    "deviations": frozenset({"comments"}),
}

# Server-managed columns never sent on insert/update.
_READ_ONLY = frozenset({"id", "created_at", "updated_at"})


def wire_name(kind: EntityKind, field: str) -> str:
    return _RENAMES.get(kind.name, {}).get(field, field)


def _plain(value: Any) -> Any:
    """Nested models → dicts; scalars (dates included) left for the driver."""
    if isinstance(value, pydantic.BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


def to_wire(kind: EntityKind, fields: Mapping[str, Any], *, jsonable: bool = True) -> dict[str, Any]:
    """
    Model field names → wire row, server-managed columns dropped.

    jsonable=True produces a JSON body (HTTP); False keeps dates and numbers
    as Python objects for a database driver.
    """
    children = _CHILDREN.get(kind.name, frozenset())
    row: dict[str, Any] = {}
    for key, value in fields.items():
        if key in _READ_ONLY or key in children:
            continue
        row[wire_name(kind, key)] = to_jsonable_python(value) if jsonable else _plain(value)
    return row


def from_wire(kind: EntityKind, row: Mapping[str, Any]) -> Entity:
    """
    Wire row → validated model.

    Unknown columns are dropped and nulls fall back to model defaults.
    A row the model refuses raises ServerError: the store returned data
    this client cannot represent.
    """
    inverse = {wire: field for field, wire in _RENAMES.get(kind.name, {}).items()}
    known = kind.model.model_fields
    data: dict[str, Any] = {}

    for key, value in row.items():
        if key == LEGACY_PIN:
            continue
        field = inverse.get(key, key)
        if field not in known or value is None:
            continue
        data[field] = value

    if kind.pin_field is not None and LEGACY_PIN in row:
        legacy = row[LEGACY_PIN]
        current = row.get(wire_name(kind, kind.pin_field))
        if current is None:
            if legacy is not None:
                data[kind.pin_field] = bool(legacy)
        elif legacy is not None and bool(legacy) != bool(current):
            logger.warning(
                "%s %s: %s=%s disagrees with %s=%s, keeping the latter",
                kind.name,
                row.get("id"),
                LEGACY_PIN,
                legacy,
                wire_name(kind, kind.pin_field),
                current,
            )

    if "id" in data:
        data["id"] = str(data["id"])

    try:
        return kind.model.model_validate(data)
    except pydantic.ValidationError as exc:
        raise ServerError(f"Malformed {kind.name} row {row.get('id')!r}: {exc.error_count()} invalid field(s)") from exc
