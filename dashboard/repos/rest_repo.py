"""
RemoteStore over the Supabase REST API (PostgREST).

  GET    /rest/v1/<table>?select=...             list
  POST   /rest/v1/<table>                        create  (Prefer: return=representation)
  PATCH  /rest/v1/<table>?id=eq.<id>             update  (Prefer: return=representation)
  DELETE /rest/v1/<table>?id=eq.<id>             delete  (Prefer: return=representation)

HTTP failures are translated into the kernel's error categories here, so
nothing above this module sees an httpx exception.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from datasync.kernel.errors import (
    NetworkError,
    NotFoundError,
    RemoteStoreError,
    ServerError,
    UnknownError,
    ValidationError,
)
from datasync.kernel.types import Entity, EntityKind
from dashboard.config import Settings
from dashboard.repos.wire import from_wire, to_wire

logger = logging.getLogger(__name__)

# Embedded relations fetched with the parent row
_SELECTS: dict[str, str] = {
    "deviations": "*,deviation_comments(*)",
}

_VALIDATION_STATUSES = {400, 409, 422}


def create_client(settings: Settings) -> httpx.AsyncClient:
    """One client per DataContext; closed when the context closes."""
    return httpx.AsyncClient(
        base_url=f"{settings.SUPABASE_URL}/rest/v1",
        timeout=settings.REQUEST_TIMEOUT,
        headers={
            "apikey": settings.SUPABASE_KEY,
            "Authorization": f"Bearer {settings.SUPABASE_KEY}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        },
    )


def error_for_response(res: httpx.Response) -> RemoteStoreError:
    """Map a failed PostgREST response onto an error category."""
    try:
        body = res.json()
        message = body.get("message") or body.get("hint") or res.reason_phrase
    except (ValueError, AttributeError):
        message = res.text or res.reason_phrase

    status = res.status_code
    if status == 404:
        return NotFoundError(message, status=status)
    if status in _VALIDATION_STATUSES:
        return ValidationError(message, status=status)
    if status >= 500:
        return ServerError(message, status=status)
    return UnknownError(message, status=status)


class RestRepo:
    """All record operations for one kind, over PostgREST."""

    def __init__(self, kind: EntityKind, client: httpx.AsyncClient, *, table: str | None = None) -> None:
        self.kind = kind
        self.client = client
        self.table = table or kind.name
        self.select = _SELECTS.get(kind.name, "*")

    async def _request(
        self,
        method: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
        representation: bool = False,
    ) -> Any:
        headers = {"Prefer": "return=representation"} if representation else None
        try:
            res = await self.client.request(method, f"/{self.table}", params=params, json=json, headers=headers)
        except httpx.TransportError as exc:
            raise NetworkError(str(exc) or type(exc).__name__) from exc

        if not res.is_success:
            error = error_for_response(res)
            logger.debug("%s %s → %s: %s", method, self.table, res.status_code, error.message)
            raise error

        if not res.content:
            return []
        try:
            return res.json()
        except ValueError as exc:
            raise ServerError(f"Invalid JSON from {self.table}", status=res.status_code) from exc

    def _one(self, rows: Any, entity_id: str | None = None) -> Entity:
        if not rows:
            if entity_id is not None:
                raise NotFoundError(f"{self.kind.name} '{entity_id}' not found")
            raise ServerError(f"{self.table} returned no representation")
        return from_wire(self.kind, rows[0])

    # -- RemoteStore --

    async def list(self) -> list[Entity]:
        rows = await self._request("GET", params={"select": self.select})
        records: list[Entity] = []
        for row in rows:
            try:
                records.append(from_wire(self.kind, row))
            except ServerError as exc:
                logger.warning("%s: skipping row: %s", self.kind.name, exc.message)
        return records

    async def create(self, fields: Mapping[str, Any]) -> Entity:
        rows = await self._request(
            "POST",
            params={"select": self.select},
            json=to_wire(self.kind, fields),
            representation=True,
        )
        return self._one(rows)

    async def update(self, entity_id: str, patch: Mapping[str, Any]) -> Entity:
        rows = await self._request(
            "PATCH",
            params={"id": f"eq.{entity_id}", "select": self.select},
            json=to_wire(self.kind, patch),
            representation=True,
        )
        return self._one(rows, entity_id)

    async def delete(self, entity_id: str) -> None:
        rows = await self._request("DELETE", params={"id": f"eq.{entity_id}"}, representation=True)
        if not rows:
            raise NotFoundError(f"{self.kind.name} '{entity_id}' not found")
