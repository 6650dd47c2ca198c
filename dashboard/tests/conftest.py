"""
Pytest configuration and fixtures for Siteboard dashboard tests.

Everything runs on the memory backend unless a test builds its own repo.
"""

from __future__ import annotations

import pytest
import pytest_asyncio

from dashboard.context import DataContext
from dashboard.kinds import ADDITIONAL_TASKS, CUSTOMERS, DEVIATION_COMMENTS, DEVIATIONS, PROJECTS
from dashboard.models import ContactPerson, Customer, Deviation, Project
from dashboard.notifications import MemorySink
from dashboard.repos.memory_repo import MemoryRepo


def sample_projects() -> list[Project]:
    return [
        Project(id="p1", project_id="P-20250301-0001", name="Skole Syd", type="renovering", category="offentlig"),
        Project(
            id="p2",
            project_id="P-20250301-0002",
            name="Boligbyggeri Nord",
            type="nybyggeri",
            category="bolig",
            pinned=True,
        ),
        Project(id="p3", project_id="P-20250301-0003", name="Åkanden", type="nybyggeri", category="bolig"),
    ]


def sample_deviations() -> list[Deviation]:
    return [
        Deviation(
            id="d1",
            deviation_id="AFV-20250301-00A1",
            title="Forkert vinduesplacering",
            description="Vindue sidder 20 cm for lavt",
            project_id="P-20250301-0001",
            drawing="A-101",
            assigned_to="Jens",
        ),
        Deviation(id="d2", title="Manglende isolering", project_id="P-20250301-0002", status="Godkendt"),
    ]


def sample_customers() -> list[Customer]:
    return [
        Customer(
            id="c1",
            name="Hansen Byg A/S",
            cvr="12345678",
            role="hovedentreprenør",
            contact_persons=(ContactPerson(id="k1", name="Mette Hansen", email="mette@hansenbyg.dk"),),
        ),
        Customer(id="c2", name="Aarhus Kommune", cvr="55133018", role="bygherre", pinned=True),
    ]


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def repos():
    """One MemoryRepo per kind, seeded with sample rows. Deviations embed their comments."""
    comments = MemoryRepo(DEVIATION_COMMENTS)
    return {
        PROJECTS.name: MemoryRepo(PROJECTS, sample_projects()),
        DEVIATIONS.name: MemoryRepo(
            DEVIATIONS, sample_deviations(), children={"comments": (comments, "deviation_id")}
        ),
        DEVIATION_COMMENTS.name: comments,
        ADDITIONAL_TASKS.name: MemoryRepo(ADDITIONAL_TASKS),
        CUSTOMERS.name: MemoryRepo(CUSTOMERS, sample_customers()),
    }


@pytest_asyncio.fixture
async def ctx(repos, sink):
    """An opened DataContext over the seeded repos."""
    context = DataContext(lambda kind: repos[kind.name], sink)
    await context.open()
    sink.clear()
    yield context
    await context.close()
