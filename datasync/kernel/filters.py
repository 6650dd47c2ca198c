"""
Datasync Kernel — Filter Engine

Pure projection from (collection, FilterParameters) to the ordered tuple of
records the view layer displays.

  apply_filter  — keep records passing every active predicate (logical AND)
  apply_sort    — pinned first, then locale-aware ascending by display name
  derive_view   — apply_filter + apply_sort
  ViewMemo      — derive_view memoized on the identity of its inputs

Nothing here mutates a collection or talks to a store or a sink.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from datasync.kernel.types import MATCH_ALL, Collection, Entity, EntityKind

# ---------------------------------------------------------------------------
# Filter parameters
# ---------------------------------------------------------------------------

QUERY = "query"


def is_active(value: str | None) -> bool:
    """A categorical filter value is active unless empty or the match-all sentinel."""
    return value is not None and value.strip() != "" and value != MATCH_ALL


@dataclass(frozen=True)
class FilterParameters:
    """
    Independent view filters: one free-text query plus categorical filters.

    Immutable — every change produces a new instance, so a memo keyed on
    identity notices it.
    """

    query: str = ""
    filters: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def for_kind(cls, kind: EntityKind) -> FilterParameters:
        return cls(filters=MappingProxyType({name: MATCH_ALL for name in kind.filter_fields}))

    def names(self) -> tuple[str, ...]:
        return (QUERY, *self.filters)

    def value(self, name: str) -> str:
        if name == QUERY:
            return self.query
        return self.filters[name]

    def replace(self, name: str, value: str | None) -> FilterParameters:
        """Return a copy with one parameter changed. None resets it."""
        if name == QUERY:
            return FilterParameters(query=value or "", filters=self.filters)
        if name not in self.filters:
            raise KeyError(f"Unknown filter '{name}'")
        updated = dict(self.filters)
        updated[name] = MATCH_ALL if value is None else value
        return FilterParameters(query=self.query, filters=MappingProxyType(updated))

    @property
    def is_match_all(self) -> bool:
        return not self.query and not any(is_active(v) for v in self.filters.values())


# ---------------------------------------------------------------------------
# Field access
# ---------------------------------------------------------------------------


def _walk(value: Any, parts: list[str]) -> Iterator[Any]:
    if value is None:
        return
    if isinstance(value, (list, tuple)):
        for item in value:
            yield from _walk(item, parts)
        return
    if not parts:
        yield value
        return
    head, rest = parts[0], parts[1:]
    if isinstance(value, Mapping):
        child = value.get(head)
    else:
        child = getattr(value, head, None)
    yield from _walk(child, rest)


def field_values(record: Entity, path: str) -> list[Any]:
    """
    Every value found at a dotted path.

      field_values(project, "name")                     → ["Boligbyggeri Nord"]
      field_values(customer, "contact_persons.email")   → ["a@x.dk", "b@y.dk"]
    """
    return list(_walk(record, path.split(".")))


def _text(value: Any) -> str:
    return value if isinstance(value, str) else str(value)


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def matches_query(record: Entity, kind: EntityKind, query: str) -> bool:
    """Case-insensitive substring match against any of the kind's search fields."""
    if not query:
        return True
    needle = query.casefold()
    for path in kind.search_fields:
        for value in field_values(record, path):
            if needle in _text(value).casefold():
                return True
    return False


def matches_filter(record: Entity, path: str, expected: str | None) -> bool:
    """Case-insensitive exact equality; inactive filters always pass."""
    if not is_active(expected):
        return True
    wanted = expected.casefold()
    return any(_text(value).casefold() == wanted for value in field_values(record, path))


def apply_filter(records: Iterable[Entity], kind: EntityKind, params: FilterParameters) -> list[Entity]:
    active = [(kind.filter_fields[name], value) for name, value in params.filters.items() if is_active(value)]
    result: list[Entity] = []
    for record in records:
        if not matches_query(record, kind, params.query):
            continue
        if all(matches_filter(record, path, value) for path, value in active):
            result.append(record)
    return result


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


def collation_key(value: str) -> tuple[str, str, str]:
    """
    Locale-independent approximation of a localeCompare ordering.

    Primary: base letters, case- and accent-insensitive ("Åben" ~ "aben").
    Secondary: accents. Tertiary: case, lowercase first.
    """
    decomposed = unicodedata.normalize("NFKD", value)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return (base.casefold(), decomposed.casefold(), value.swapcase())


def _display_name(record: Entity, kind: EntityKind) -> str:
    values = field_values(record, kind.sort_field)
    return _text(values[0]) if values else ""


def _is_pinned(record: Entity, kind: EntityKind) -> bool:
    if kind.pin_field is None:
        return False
    return bool(getattr(record, kind.pin_field, False))


def apply_sort(records: Iterable[Entity], kind: EntityKind) -> list[Entity]:
    """
    Pinned before unpinned, then ascending by display name.
    Python's sort is stable, so full ties keep their collection order.
    """
    return sorted(
        records,
        key=lambda record: (not _is_pinned(record, kind), collation_key(_display_name(record, kind))),
    )


def derive_view(collection: Collection, kind: EntityKind, params: FilterParameters) -> tuple[Entity, ...]:
    return tuple(apply_sort(apply_filter(collection.values(), kind, params), kind))


class ViewMemo:
    """
    Caches the last derived view. Recomputes only when the collection or the
    parameters object changes identity — both are immutable, so identity is
    a sufficient key.
    """

    def __init__(self, kind: EntityKind) -> None:
        self._kind = kind
        self._collection: Collection | None = None
        self._params: FilterParameters | None = None
        self._result: tuple[Entity, ...] = ()
        self.computations = 0

    def get(self, collection: Collection, params: FilterParameters) -> tuple[Entity, ...]:
        if collection is self._collection and params is self._params:
            return self._result
        self._result = derive_view(collection, self._kind, params)
        self._collection = collection
        self._params = params
        self.computations += 1
        return self._result


# ---------------------------------------------------------------------------
# Grouping helpers
# ---------------------------------------------------------------------------


def group_by(records: Iterable[Entity], path: str) -> dict[str, list[Entity]]:
    """Group records by a field's value. Records without a value are skipped."""
    groups: dict[str, list[Entity]] = {}
    for record in records:
        for value in field_values(record, path)[:1]:
            key = _text(value)
            if not key:
                continue
            groups.setdefault(key, []).append(record)
    return groups


def distinct_values(records: Iterable[Entity], path: str) -> list[str]:
    """Distinct non-empty values of a field, in collation order. Feeds filter option lists."""
    seen = {_text(value) for record in records for value in field_values(record, path)}
    seen.discard("")
    return sorted(seen, key=collation_key)
