"""Shared record kind and fixtures data for kernel tests."""

from __future__ import annotations

import asyncio

from pydantic import Field

from datasync.kernel.types import Entity, EntityKind


class Item(Entity):
    name: str = Field(min_length=1)
    status: str = "open"
    pinned: bool = False
    tags: tuple[str, ...] = ()


ITEMS = EntityKind(
    name="items",
    label="Item",
    model=Item,
    search_fields=("name", "tags"),
    filter_fields={"status": "status"},
    sort_field="name",
    pin_field="pinned",
)


def make_items(*specs: tuple[str, str, bool]) -> list[Item]:
    """make_items(("1", "Beta", False), ("2", "Alpha", True))"""
    return [Item(id=entity_id, name=name, pinned=pinned) for entity_id, name, pinned in specs]


async def settle(rounds: int = 10) -> None:
    """Let scheduled tasks run until they block."""
    for _ in range(rounds):
        await asyncio.sleep(0)
