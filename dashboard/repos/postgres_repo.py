"""
RemoteStore over Postgres via an asyncpg pool.

Same contract as RestRepo: rows go through `wire`, driver exceptions are
translated into the kernel's error categories. Column names come from the
model fields (never from user input) and are quoted; values are always
bound parameters.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

import asyncpg

from datasync.kernel.errors import NetworkError, NotFoundError, ServerError, ValidationError
from datasync.kernel.types import Entity, EntityKind
from dashboard.config import Settings
from dashboard.repos.wire import from_wire, to_wire

logger = logging.getLogger(__name__)

# parent kind → (child table, foreign key column), embedded as a JSON array
_CHILDREN: dict[str, tuple[str, str]] = {
    "deviations": ("deviation_comments", "deviation_id"),
}


async def create_pool(settings: Settings) -> asyncpg.Pool:
    """
    Create the connection pool.
    Called once when a DataContext opens; closed with it.
    """
    return await asyncpg.create_pool(
        dsn=settings.DATABASE_URL,
        min_size=1,
        max_size=10,
        command_timeout=settings.REQUEST_TIMEOUT,
        init=_init_connection,
    )


async def _init_connection(conn: asyncpg.Connection) -> None:
    """
    Initialize each new connection.
    UUIDs come back as strings (entity ids are strings); JSON decodes to Python.
    """
    await conn.set_type_codec(
        "uuid",
        encoder=str,
        decoder=str,
        schema="pg_catalog",
    )
    await conn.set_type_codec(
        "jsonb",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog",
    )
    await conn.set_type_codec(
        "json",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog",
    )


def _ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


@contextmanager
def _translate_errors(table: str) -> Iterator[None]:
    try:
        yield
    except (OSError, TimeoutError, asyncpg.PostgresConnectionError, asyncpg.InterfaceError) as exc:
        raise NetworkError(str(exc) or type(exc).__name__) from exc
    except (asyncpg.IntegrityConstraintViolationError, asyncpg.DataError, asyncpg.UndefinedColumnError) as exc:
        raise ValidationError(str(exc)) from exc
    except asyncpg.PostgresError as exc:
        logger.warning("%s: postgres error %s", table, exc.sqlstate)
        raise ServerError(str(exc)) from exc


class PostgresRepo:
    """All record operations for one kind, against one table."""

    def __init__(self, kind: EntityKind, pool: asyncpg.Pool, *, table: str | None = None) -> None:
        self.kind = kind
        self.pool = pool
        self.table = table or kind.name
        self._select = self._build_select()

    def _build_select(self) -> str:
        table = _ident(self.table)
        child = _CHILDREN.get(self.kind.name)
        if child is None:
            return f"SELECT t.* FROM {table} t"
        child_table, fk = _ident(child[0]), _ident(child[1])
        return (
            f"SELECT t.*, COALESCE("
            f"(SELECT json_agg(c ORDER BY c.created_at) FROM {child_table} c WHERE c.{fk} = t.id), "
            f"'[]'::json) AS {_ident(child[0])} FROM {table} t"
        )

    async def _fetch_one(self, conn: asyncpg.Connection, entity_id: str) -> Entity:
        row = await conn.fetchrow(f"{self._select} WHERE t.id = $1", entity_id)
        if row is None:
            raise NotFoundError(f"{self.kind.name} '{entity_id}' not found")
        return from_wire(self.kind, dict(row))

    # -- RemoteStore --

    async def list(self) -> list[Entity]:
        with _translate_errors(self.table):
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(self._select)

        records: list[Entity] = []
        for row in rows:
            try:
                records.append(from_wire(self.kind, dict(row)))
            except ServerError as exc:
                logger.warning("%s: skipping row: %s", self.kind.name, exc.message)
        return records

    async def create(self, fields: Mapping[str, Any]) -> Entity:
        row = to_wire(self.kind, fields, jsonable=False)
        table = _ident(self.table)
        if row:
            columns = ", ".join(_ident(name) for name in row)
            placeholders = ", ".join(f"${i}" for i in range(1, len(row) + 1))
            sql = f"INSERT INTO {table} ({columns}) VALUES ({placeholders}) RETURNING id"
        else:
            sql = f"INSERT INTO {table} DEFAULT VALUES RETURNING id"

        with _translate_errors(self.table):
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    entity_id = await conn.fetchval(sql, *row.values())
                    return await self._fetch_one(conn, entity_id)

    async def update(self, entity_id: str, patch: Mapping[str, Any]) -> Entity:
        row = to_wire(self.kind, patch, jsonable=False)
        with _translate_errors(self.table):
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    if row:
                        assignments = ", ".join(f"{_ident(name)} = ${i}" for i, name in enumerate(row, start=2))
                        result = await conn.execute(
                            f"UPDATE {_ident(self.table)} SET {assignments} WHERE id = $1",
                            entity_id,
                            *row.values(),
                        )
                        if result == "UPDATE 0":
                            raise NotFoundError(f"{self.kind.name} '{entity_id}' not found")
                    return await self._fetch_one(conn, entity_id)

    async def delete(self, entity_id: str) -> None:
        with _translate_errors(self.table):
            async with self.pool.acquire() as conn:
                result = await conn.execute(f"DELETE FROM {_ident(self.table)} WHERE id = $1", entity_id)
        if result == "DELETE 0":
            raise NotFoundError(f"{self.kind.name} '{entity_id}' not found")
