"""
Deviations screen.

Workflow:
  Afventer ──approve──▶ Godkendt
      │
      └────reject─────▶ Afvist   (may then be converted to an additional task)

Comments live in their own table; adding one is an optimistic mutation of
the parent deviation so the thread updates immediately.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from datasync.kernel.facade import EntityView
from datasync.kernel.mutations import make_placeholder_id
from datasync.kernel.types import NotificationSink, RemoteStore
from dashboard.kinds import DEVIATIONS
from dashboard.models import Deviation, DeviationComment
from dashboard.references import DEVIATION_PREFIX, generate_reference


class DeviationsView(EntityView):
    def __init__(self, store: RemoteStore, comments: RemoteStore, sink: NotificationSink | None = None) -> None:
        super().__init__(DEVIATIONS, store, sink)
        self.comments = comments

    def prepare_create(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        return {**fields, "deviation_id": generate_reference(DEVIATION_PREFIX)}

    async def approve(self, entity_id: str) -> bool:
        self._check_open()
        call = self.coordinator.update(
            entity_id,
            {"status": "Godkendt"},
            success_title="Deviation approved",
            success_detail="It has been sent on to quality assurance.",
        )
        return await self._write(call) is not None

    async def reject(self, entity_id: str) -> bool:
        self._check_open()
        call = self.coordinator.update(
            entity_id,
            {"status": "Afvist"},
            success_title="Deviation rejected",
            success_detail="It can be converted to an additional task.",
        )
        return await self._write(call) is not None

    async def add_comment(self, entity_id: str, author: str, text: str) -> bool:
        placeholder_id = make_placeholder_id()

        def transform(current: Deviation) -> Deviation:
            comment = DeviationComment(id=placeholder_id, deviation_id=current.id, author=author, text=text)
            return current.model_copy(update={"comments": (*current.comments, comment)})

        async def remote(before: Deviation, optimistic: Deviation) -> Deviation:
            confirmed = await self.comments.create({"deviation_id": before.id, "author": author, "text": text})
            return before.model_copy(update={"comments": (*before.comments, confirmed)})

        self._check_open()
        call = self.coordinator.mutate(
            entity_id,
            transform,
            remote,
            success_title="Comment added",
            success_detail="Everyone involved has been notified.",
            failure_title="Could not add comment",
        )
        return await self._write(call) is not None
