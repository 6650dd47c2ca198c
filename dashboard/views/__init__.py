"""Per-kind views: EntityView plus the dashboard's domain workflows."""

from dashboard.views.additional_tasks import AdditionalTasksView
from dashboard.views.customers import CustomersView
from dashboard.views.deviations import DeviationsView
from dashboard.views.projects import ProjectsView

__all__ = [
    "ProjectsView",
    "DeviationsView",
    "AdditionalTasksView",
    "CustomersView",
]
