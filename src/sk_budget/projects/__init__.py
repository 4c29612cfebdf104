"""
Projects module - SK project documentation workflow
"""

from sk_budget.projects.models import Project, ProjectStep, ProjectSummary, StepDocument
from sk_budget.projects.store import ProjectWorkflowStore, coerce_step

__all__ = [
    "Project",
    "ProjectStep",
    "ProjectSummary",
    "ProjectWorkflowStore",
    "StepDocument",
    "coerce_step",
]
