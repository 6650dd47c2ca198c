"""Additional task models. An additional task (tillægsopgave) is extra billable work on a project."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from datasync.kernel.types import Entity

TaskStatus = Literal["Afventer", "Godkendt", "Afvist", "Færdig"]


class AdditionalTask(Entity):
    """Core additional task model."""

    task_id: str = ""  # AT-YYYYMMDD-XXXX
    title: str = Field(min_length=1)
    description: str = ""
    project_id: str = ""
    drawing: str = ""
    status: TaskStatus = "Afventer"
    price: float = Field(default=0, ge=0)
    time_required: str = ""
    materials: str = ""
    assigned_to: str = ""
    from_deviation_id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
