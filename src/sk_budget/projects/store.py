"""
Project Workflow Store - per-project documents and step completion

Projects are persisted together as one JSON array. The store never touches
the allocation ledger directly: deleting a project asks the budget engine
to release that project's allocation.
"""

import json

from pydantic import TypeAdapter, ValidationError

from sk_budget.budget.engine import BudgetAllocationEngine
from sk_budget.kernel.errors import ProjectNotFound, UnknownStep
from sk_budget.kernel.ids import DefaultIdFactory, IdFactory
from sk_budget.kernel.logging import LogOperation, get_logger
from sk_budget.kernel.metrics import persistence_recoveries_total
from sk_budget.kernel.store import KeyValueStore, LoadStatus
from sk_budget.kernel.time import RealTimeProvider, TimeProvider
from sk_budget.projects.models import Project, ProjectStep, ProjectSummary

logger = get_logger(__name__)

_project_list = TypeAdapter(list[Project])


def coerce_step(step: str | ProjectStep) -> ProjectStep:
    """Accept a ProjectStep or its string value"""
    if isinstance(step, ProjectStep):
        return step
    try:
        return ProjectStep(step.lower())
    except ValueError:
        raise UnknownStep(step) from None


class ProjectWorkflowStore:
    """
    CRUD for projects and their step documents

    Every read goes back to the store, so two façades over the same
    database see each other's writes.
    """

    def __init__(
        self,
        store: KeyValueStore,
        engine: BudgetAllocationEngine,
        time_provider: TimeProvider | None = None,
        id_factory: IdFactory | None = None,
        key: str = "sk-projects",
    ) -> None:
        self.store = store
        self.engine = engine
        self.time_provider = time_provider or RealTimeProvider()
        self.id_factory = id_factory or DefaultIdFactory()
        self.key = key
        self.load_status: LoadStatus = LoadStatus.ABSENT

    def _load(self) -> list[Project]:
        raw = self.store.get(self.key)
        if raw is None:
            self.load_status = LoadStatus.ABSENT
            return []
        try:
            projects = _project_list.validate_python(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Error loading projects, treating as empty", key=self.key, error=str(e))
            persistence_recoveries_total.labels(record=self.key).inc()
            self.load_status = LoadStatus.RECOVERED
            return []
        self.load_status = LoadStatus.LOADED
        return projects

    def _save(self, projects: list[Project]) -> None:
        self.store.put(
            self.key,
            json.dumps([p.model_dump(mode="json") for p in projects]),
        )

    def list_projects(self) -> list[Project]:
        return self._load()

    def get_project(self, project_id: str) -> Project | None:
        for project in self._load():
            if project.id == project_id:
                return project
        return None

    def require_project(self, project_id: str) -> Project:
        project = self.get_project(project_id)
        if project is None:
            raise ProjectNotFound(project_id)
        return project

    def create_project(self, title: str, description: str = "") -> Project:
        """
        Create a project with an empty document for every step

        Args:
            title: Project title
            description: Short description

        Returns:
            The new project
        """
        now = self.time_provider.now()
        project = Project.new(self.id_factory.generate(now), title, description, now)
        projects = self._load()
        projects.append(project)
        self._save(projects)
        logger.info("Project created", project_id=project.id, title=title)
        return project

    def update_project(self, updated: Project) -> Project:
        """
        Replace a stored project, stamping last_modified

        Raises:
            ProjectNotFound: If no project has updated.id
        """
        projects = self._load()
        for index, project in enumerate(projects):
            if project.id == updated.id:
                stamped = updated.model_copy(
                    update={"last_modified": self.time_provider.now()}
                )
                projects[index] = stamped
                self._save(projects)
                return stamped
        raise ProjectNotFound(updated.id)

    def update_step_document(
        self, project_id: str, step: str | ProjectStep, content: str
    ) -> Project:
        """Replace the document content of one step"""
        step = coerce_step(step)
        project = self.require_project(project_id)
        with LogOperation(
            logger, "update_step_document", project_id=project_id, step=step.value, content=content
        ):
            document = project.documents[step].model_copy(
                update={"content": content, "last_modified": self.time_provider.now()}
            )
            project.documents[step] = document
            return self.update_project(project)

    def toggle_step_completion(self, project_id: str, step: str | ProjectStep) -> Project:
        """
        Flip a step's completion flag

        Marking complete appends the step to completed_steps (once);
        un-marking removes it.
        """
        step = coerce_step(step)
        project = self.require_project(project_id)
        document = project.documents[step]
        completed = not document.is_completed
        project.documents[step] = document.model_copy(update={"is_completed": completed})

        if completed:
            if step not in project.completed_steps:
                project.completed_steps.append(step)
        else:
            project.completed_steps = [s for s in project.completed_steps if s != step]

        logger.info(
            "Step completion toggled",
            project_id=project_id,
            step=step.value,
            completed=completed,
        )
        return self.update_project(project)

    def delete_project(self, project_id: str) -> None:
        """
        Delete a project and release its budget allocation

        Idempotent: deleting an unknown project only makes sure no
        allocation is left behind for it.
        """
        projects = self._load()
        remaining = [p for p in projects if p.id != project_id]
        if len(remaining) != len(projects):
            self._save(remaining)
            logger.info("Project deleted", project_id=project_id)
        self.engine.remove_allocation(project_id)

    def summaries(self) -> list[ProjectSummary]:
        """List view of every project with its allocation, if any"""
        summaries = []
        for project in self._load():
            allocation = self.engine.get_allocation(project.id)
            summaries.append(
                ProjectSummary(
                    project_id=project.id,
                    title=project.title,
                    last_modified=project.last_modified,
                    completed_steps=len(project.completed_steps),
                    progress_percent=project.progress_percent(),
                    allocated_amount=allocation.allocated_amount if allocation else None,
                    category=allocation.category if allocation else None,
                )
            )
        return summaries
