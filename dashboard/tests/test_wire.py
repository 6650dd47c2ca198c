"""
Tests for wire name translation.

Covers:
  - pinned ↔ is_pinned, with legacy isPinned collapsed on input
  - camelCase customer columns
  - embedded deviation comments
  - unknown columns dropped, nulls fall back to defaults
  - malformed rows raise ServerError
"""

from datetime import date

import pytest

from dashboard.kinds import CUSTOMERS, DEVIATIONS, PROJECTS
from dashboard.models import ContactPerson, Project
from dashboard.repos.wire import from_wire, to_wire
from datasync.kernel.errors import ServerError


class TestToWire:
    def test_pinned_renamed(self):
        assert to_wire(PROJECTS, {"name": "X", "pinned": True}) == {"name": "X", "is_pinned": True}

    def test_server_columns_dropped(self):
        row = to_wire(PROJECTS, {"id": "p1", "created_at": "2025-01-01", "name": "X"})
        assert row == {"name": "X"}

    def test_customer_camel_case(self):
        row = to_wire(
            CUSTOMERS,
            {
                "contact_persons": (ContactPerson(name="Mette", email="m@x.dk"),),
                "invoice_email": "faktura@x.dk",
                "payment_terms": "14 dage",
            },
        )
        assert row["contactPersons"][0]["name"] == "Mette"
        assert row["invoiceEmail"] == "faktura@x.dk"
        assert row["paymentTerms"] == "14 dage"

    def test_dates_json_or_python(self):
        fields = {"start_date": date(2025, 3, 1)}
        assert to_wire(PROJECTS, fields) == {"start_date": "2025-03-01"}
        assert to_wire(PROJECTS, fields, jsonable=False) == {"start_date": date(2025, 3, 1)}

    def test_deviation_comments_not_written(self):
        assert to_wire(DEVIATIONS, {"title": "X", "comments": ()}) == {"title": "X"}


class TestFromWire:
    def test_is_pinned(self):
        project = from_wire(PROJECTS, {"id": "p1", "name": "X", "is_pinned": True})
        assert isinstance(project, Project)
        assert project.pinned is True

    def test_legacy_is_pinned_used_when_canonical_missing(self):
        project = from_wire(PROJECTS, {"id": "p1", "name": "X", "isPinned": True})
        assert project.pinned is True

    def test_canonical_wins_on_conflict(self, caplog):
        project = from_wire(PROJECTS, {"id": "p1", "name": "X", "is_pinned": False, "isPinned": True})
        assert project.pinned is False
        assert "disagrees" in caplog.text

    def test_null_pinned_is_false(self):
        assert from_wire(PROJECTS, {"id": "p1", "name": "X", "is_pinned": None}).pinned is False

    def test_unknown_columns_dropped(self):
        project = from_wire(PROJECTS, {"id": "p1", "name": "X", "project_name": "old", "owner_id": 7})
        assert project.name == "X"

    def test_uuid_id_becomes_string(self):
        from uuid import UUID

        row_id = UUID("6f1c2a9e-0d4b-4b8e-9a57-2f0c1e3d4b5a")
        assert from_wire(PROJECTS, {"id": row_id, "name": "X"}).id == str(row_id)

    def test_customer_from_camel_case(self):
        customer = from_wire(
            CUSTOMERS,
            {
                "id": "c1",
                "name": "Hansen",
                "contactPersons": [{"id": "k1", "name": "Mette", "email": "m@x.dk", "phone": ""}],
                "paymentTerms": "8 dage",
                "is_pinned": True,
            },
        )
        assert customer.contact_persons[0].email == "m@x.dk"
        assert customer.payment_terms == "8 dage"
        assert customer.pinned is True

    def test_deviation_with_comments(self):
        deviation = from_wire(
            DEVIATIONS,
            {
                "id": "d1",
                "title": "X",
                "deviation_comments": [{"id": "m1", "deviation_id": "d1", "author": "Jens", "text": "Set"}],
            },
        )
        assert deviation.comments[0].author == "Jens"

    def test_malformed_row(self):
        with pytest.raises(ServerError):
            from_wire(PROJECTS, {"id": "p1", "name": "X", "progress": 400})
