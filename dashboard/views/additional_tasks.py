"""
Additional tasks screen.

Workflow:
  Afventer ──approve──▶ Godkendt ──send_to_qa──▶ Færdig
      │
      └────reject─────▶ Afvist

A rejected deviation can be turned into a new task; price, time and
materials are left for the user to fill in.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from datasync.kernel.facade import EntityView
from datasync.kernel.types import Entity, NotificationSink, RemoteStore
from dashboard.kinds import ADDITIONAL_TASKS
from dashboard.models import Deviation
from dashboard.references import TASK_PREFIX, generate_reference


class AdditionalTasksView(EntityView):
    def __init__(self, store: RemoteStore, sink: NotificationSink | None = None) -> None:
        super().__init__(ADDITIONAL_TASKS, store, sink)

    def prepare_create(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        return {**fields, "task_id": generate_reference(TASK_PREFIX)}

    async def _set_status(self, entity_id: str, status: str, title: str, detail: str) -> bool:
        self._check_open()
        call = self.coordinator.update(entity_id, {"status": status}, success_title=title, success_detail=detail)
        return await self._write(call) is not None

    async def approve(self, entity_id: str) -> bool:
        return await self._set_status(
            entity_id, "Godkendt", "Additional task approved", "The task is ready to be carried out."
        )

    async def reject(self, entity_id: str) -> bool:
        return await self._set_status(entity_id, "Afvist", "Additional task rejected", "See the comments for details.")

    async def send_to_qa(self, entity_id: str) -> bool:
        return await self._set_status(
            entity_id,
            "Færdig",
            "Additional task sent to quality assurance",
            "The work is marked as done and ready for QA.",
        )

    async def convert_deviation(self, deviation: Deviation) -> Entity | None:
        """Create a pending task from a deviation. Returns the confirmed task or None."""
        self._check_open()
        fields = {
            "title": f"{deviation.title} (fra afvigelse)",
            "project_id": deviation.project_id,
            "drawing": deviation.drawing,
            "status": "Afventer",
            "price": 0,
            "time_required": "0 timer",
            "materials": "",
            "description": deviation.description,
            "assigned_to": deviation.assigned_to,
            "from_deviation_id": deviation.id,
        }
        call = self.coordinator.create(
            self.prepare_create(fields),
            success_title="Deviation converted to additional task",
            success_detail="Open Additional tasks to see the new task.",
        )
        return await self._write(call)
