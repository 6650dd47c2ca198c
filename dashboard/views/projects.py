"""Projects screen."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from datasync.kernel.facade import EntityView
from datasync.kernel.filters import apply_sort, group_by
from datasync.kernel.types import Entity, NotificationSink, RemoteStore
from dashboard.kinds import PROJECTS
from dashboard.references import PROJECT_PREFIX, generate_reference


class ProjectsView(EntityView):
    def __init__(self, store: RemoteStore, sink: NotificationSink | None = None) -> None:
        super().__init__(PROJECTS, store, sink)

    def prepare_create(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        return {**fields, "project_id": generate_reference(PROJECT_PREFIX)}

    def by_category(self) -> dict[str, list[Entity]]:
        """All projects grouped by category, each group pinned-first then by name. Uncategorized ones are left out."""
        ordered = apply_sort(self.cache.snapshot().values(), self.kind)
        return group_by(ordered, "category")
