"""Deviation models. A deviation (afvigelse) is a reported departure from the drawings."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, Field

from datasync.kernel.types import Entity

DeviationStatus = Literal["Afventer", "Godkendt", "Afvist"]


class DeviationComment(Entity):
    """Row in the deviation_comments table."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    deviation_id: str
    author: str = Field(min_length=1)
    text: str = Field(min_length=1)
    created_at: datetime | None = None


class Deviation(Entity):
    """Core deviation model."""

    deviation_id: str = ""  # AFV-YYYYMMDD-XXXX
    title: str = Field(min_length=1)
    description: str = ""
    project_id: str = ""
    drawing: str = ""
    status: DeviationStatus = "Afventer"
    assigned_to: str = ""
    approver_role: str = "Ingeniør"
    comments: tuple[DeviationComment, ...] = ()
    created_at: datetime | None = None
    updated_at: datetime | None = None
