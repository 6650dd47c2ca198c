"""Project models. Represents rows in the projects table."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from datasync.kernel.types import Entity


class TeamMember(BaseModel):
    """Person shown on a project card."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str
    initials: str = ""
    color: str | None = None


class Project(Entity):
    """Core project model."""

    project_id: str = ""  # human-facing reference, P-YYYYMMDD-XXXX
    name: str = Field(min_length=1)
    status: str = "aktiv"
    type: str = ""
    priority: str = "green"
    progress: int = Field(default=0, ge=0, le=100)
    category: str = "bolig"
    pinned: bool = False
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    customer: str | None = None
    contact_person: str | None = None
    budget: float | None = None
    address: str | None = None
    team: tuple[TeamMember, ...] = ()
    created_at: datetime | None = None
    updated_at: datetime | None = None
