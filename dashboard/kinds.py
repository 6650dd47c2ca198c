"""
Entity kinds the dashboard manages.

Each kind tells the kernel which model to validate against, which fields the
free-text search looks at, which categorical filters exist and how records
are ordered.
"""

from __future__ import annotations

from datasync.kernel.types import EntityKind
from dashboard.models import AdditionalTask, Customer, Deviation, DeviationComment, Project

PROJECTS = EntityKind(
    name="projects",
    label="Project",
    model=Project,
    search_fields=("name", "project_id", "type"),
    filter_fields={"type": "type", "status": "status", "priority": "priority"},
    sort_field="name",
    pin_field="pinned",
)

DEVIATIONS = EntityKind(
    name="deviations",
    label="Deviation",
    model=Deviation,
    search_fields=("title", "description", "project_id", "deviation_id"),
    filter_fields={"project": "project_id", "status": "status", "approver": "approver_role"},
    sort_field="title",
)

ADDITIONAL_TASKS = EntityKind(
    name="additional_tasks",
    label="Additional task",
    model=AdditionalTask,
    search_fields=("title", "description", "project_id", "task_id"),
    filter_fields={"project": "project_id", "status": "status"},
    sort_field="title",
)

CUSTOMERS = EntityKind(
    name="customers",
    label="Customer",
    model=Customer,
    search_fields=("name", "cvr", "contact_persons.name", "contact_persons.email"),
    filter_fields={"role": "role"},
    sort_field="name",
    pin_field="pinned",
)

# Child table of deviations; never listed on its own screen.
DEVIATION_COMMENTS = EntityKind(
    name="deviation_comments",
    label="Comment",
    model=DeviationComment,
    search_fields=("author", "text"),
    sort_field="created_at",
)

KINDS: dict[str, EntityKind] = {
    kind.name: kind for kind in (PROJECTS, DEVIATIONS, ADDITIONAL_TASKS, CUSTOMERS)
}
