"""
Pydantic models for Siteboard.

All record shapes defined here. No imports from repos, views or the CLI.
"""

from dashboard.models.additional_task import AdditionalTask, TaskStatus
from dashboard.models.customer import ContactPerson, Customer, CustomerRole, PaymentTerms
from dashboard.models.deviation import Deviation, DeviationComment, DeviationStatus
from dashboard.models.project import Project, TeamMember

__all__ = [
    "Project",
    "TeamMember",
    "Deviation",
    "DeviationComment",
    "DeviationStatus",
    "AdditionalTask",
    "TaskStatus",
    "Customer",
    "ContactPerson",
    "CustomerRole",
    "PaymentTerms",
]
