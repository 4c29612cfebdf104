"""
Project Workflow Models

An SK project moves through five documentation steps. Each step holds one
document (opaque HTML produced by the document generator and edited by
the council) and a completion flag.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field
from sqlmodel import SQLModel


class ProjectStep(str, Enum):
    """
    Documentation steps, in workflow order

    PLANNING → APPROVAL → RESOLUTION → DV → WITHDRAWAL
    """

    PLANNING = "planning"
    APPROVAL = "approval"
    RESOLUTION = "resolution"
    DV = "dv"
    WITHDRAWAL = "withdrawal"

    @property
    def label(self) -> str:
        return _STEP_LABELS[self][0]

    @property
    def description(self) -> str:
        return _STEP_LABELS[self][1]


_STEP_LABELS: dict[ProjectStep, tuple[str, str]] = {
    ProjectStep.PLANNING: (
        "Planning",
        "Initial project scope, requirements, and strategy documentation",
    ),
    ProjectStep.APPROVAL: (
        "Approval",
        "Stakeholder review, sign-offs, and authorization documents",
    ),
    ProjectStep.RESOLUTION: (
        "Resolution",
        "Implementation details, technical solutions, and execution plans",
    ),
    ProjectStep.DV: (
        "Design Verification",
        "Testing, validation, and quality assurance documentation",
    ),
    ProjectStep.WITHDRAWAL: (
        "Withdrawal",
        "Project closure, lessons learned, and final reports",
    ),
}


class StepDocument(BaseModel):
    """Document content and completion flag for one workflow step"""

    content: str = ""
    last_modified: datetime
    is_completed: bool = False


class Project(BaseModel):
    """
    SK project with its workflow documents

    Attributes:
        id: Project identifier (project_<ms>_<random>)
        title: Project title
        description: Short description
        created_at: Creation time
        last_modified: Last change to any field or document
        documents: One StepDocument per ProjectStep
        completed_steps: Steps marked complete, in the order they were marked
    """

    id: str
    title: str
    description: str = ""
    created_at: datetime
    last_modified: datetime
    documents: dict[ProjectStep, StepDocument]
    completed_steps: list[ProjectStep] = Field(default_factory=list)

    @classmethod
    def new(cls, project_id: str, title: str, description: str, now: datetime) -> "Project":
        return cls(
            id=project_id,
            title=title,
            description=description,
            created_at=now,
            last_modified=now,
            documents={step: StepDocument(last_modified=now) for step in ProjectStep},
        )

    def document(self, step: ProjectStep) -> StepDocument:
        return self.documents[step]

    def progress_percent(self) -> float:
        return len(self.completed_steps) / len(ProjectStep) * 100


# Read models (for list views)


class ProjectSummary(SQLModel):
    """
    Lightweight project summary for lists/dashboards

    Contains just enough info for overview displays, including the
    project's budget allocation if it has one.
    """

    project_id: str
    title: str
    last_modified: datetime
    completed_steps: int
    progress_percent: float
    allocated_amount: float | None = None
    category: str | None = None
