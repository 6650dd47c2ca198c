"""Customer models. Represents rows in the customers table."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from datasync.kernel.types import Entity

CustomerRole = Literal[
    "bygherre",
    "hovedentreprenør",
    "underentreprenør",
    "leverandør",
    "rådgiver",
    "andet",
]

PaymentTerms = Literal[
    "8 dage",
    "14 dage",
    "30 dage",
    "løbende måned + 15 dage",
    "løbende måned + 30 dage",
]


class ContactPerson(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = ""
    name: str
    email: str = ""
    phone: str = ""
    position: str | None = None


class Customer(Entity):
    """Core customer model."""

    name: str = Field(min_length=1)
    cvr: str = ""
    address: str = ""
    contact_persons: tuple[ContactPerson, ...] = ()
    role: CustomerRole = "bygherre"
    invoice_email: str = ""
    payment_terms: PaymentTerms = "30 dage"
    pinned: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
