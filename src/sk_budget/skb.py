"""
SKBudget - Main façade class

This is the primary interface for the SK Budget Tracker. It wires the
record store, the budget engine and the project workflow store together in
a fixed order (store → catalog → ledger → projects) and exposes one
high-level API for the CLI and the health server.

Example:
    >>> from sk_budget import SKBudget
    >>> skb = SKBudget("council.db")
    >>> report = skb.import_budget("abyip_2025.csv")
    >>> project = skb.create_project("Liga ng Kabataan", "Inter-purok basketball league")
    >>> skb.allocate(project.id, 25000, "SPORTS DEVELOPMENT")
    True
    >>> skb.summary().percentage_used
    12.5
"""

from pathlib import Path
from typing import Any

from sk_budget.budget.engine import BudgetAllocationEngine
from sk_budget.budget.ingestion import from_extracted_records, load_catalog_file, parse_extraction_response
from sk_budget.budget.invariants import validate_catalog
from sk_budget.budget.models import (
    BudgetCatalog,
    BudgetSummary,
    CategoryStatus,
    ProjectAllocation,
    ReconciliationReport,
    ValidationResult,
)
from sk_budget.budget.repositories import AllocationLedgerRepository, CatalogRepository
from sk_budget.kernel.ids import IdFactory
from sk_budget.kernel.logging import get_logger
from sk_budget.kernel.policy import BudgetPolicy
from sk_budget.kernel.store import InMemoryKeyValueStore, KeyValueStore, SQLiteKeyValueStore
from sk_budget.kernel.time import RealTimeProvider, TimeProvider
from sk_budget.projects.models import Project, ProjectStep, ProjectSummary
from sk_budget.projects.store import ProjectWorkflowStore

logger = get_logger(__name__)


class SKBudget:
    """
    SK Budget Tracker main façade

    Provides a unified API for:
    - Budget catalog import (CSV, JSON, PDF extraction output)
    - Allocation validation and commitment
    - Budget and category status
    - Project workflow documents
    """

    def __init__(
        self,
        sqlite_path: str | Path | None = None,
        *,
        store: KeyValueStore | None = None,
        policy: BudgetPolicy | None = None,
        time_provider: TimeProvider | None = None,
        id_factory: IdFactory | None = None,
    ) -> None:
        """
        Initialize the tracker and hydrate it from storage

        Args:
            sqlite_path: Path to SQLite database (ignored if store is given)
            store: Explicit record store; in-memory if neither is given
            policy: Tolerance and status thresholds (defaults if None)
            time_provider: Time provider (uses real time if None)
            id_factory: Project id generator (defaults if None)
        """
        self.policy = policy or BudgetPolicy()
        self.time_provider = time_provider or RealTimeProvider()

        if store is not None:
            self.store = store
        elif sqlite_path is not None:
            self.store = SQLiteKeyValueStore(sqlite_path)
        else:
            self.store = InMemoryKeyValueStore()

        self.engine = BudgetAllocationEngine(
            CatalogRepository(self.store, key=self.policy.catalog_key),
            AllocationLedgerRepository(self.store, key=self.policy.ledger_key),
            self.policy,
        )
        self.engine.load()

        self.projects = ProjectWorkflowStore(
            self.store,
            self.engine,
            time_provider=self.time_provider,
            id_factory=id_factory,
            key=self.policy.projects_key,
        )

    # ------------------------------------------------------------------
    # Budget setup
    # ------------------------------------------------------------------

    @property
    def is_configured(self) -> bool:
        return self.engine.is_configured

    @property
    def catalog(self) -> BudgetCatalog | None:
        return self.engine.catalog

    def import_budget(self, path: str | Path, fmt: str | None = None) -> ReconciliationReport:
        """Import a CSV / JSON / extraction-response file as the budget catalog"""
        catalog = load_catalog_file(path, fmt=fmt, tolerance=self.policy.ingestion_tolerance)
        return self.engine.replace_catalog(catalog)

    def import_catalog(self, catalog: BudgetCatalog) -> ReconciliationReport:
        """Install an already-built catalog after running the ingestion checks"""
        validate_catalog(catalog, self.policy.ingestion_tolerance)
        return self.engine.replace_catalog(catalog)

    def import_extracted(self, records: list[dict[str, Any]]) -> ReconciliationReport:
        """Install a catalog from PDF-extracted records"""
        catalog = from_extracted_records(records, tolerance=self.policy.ingestion_tolerance)
        return self.engine.replace_catalog(catalog)

    def import_extraction_response(self, text: str) -> ReconciliationReport:
        """Install a catalog from the extraction service's raw answer"""
        catalog = parse_extraction_response(text, tolerance=self.policy.ingestion_tolerance)
        return self.engine.replace_catalog(catalog)

    # ------------------------------------------------------------------
    # Allocations
    # ------------------------------------------------------------------

    def validate(
        self, amount: float, category: str, project_id: str | None = None
    ) -> ValidationResult:
        return self.engine.validate(amount, category, project_id=project_id)

    def allocate(
        self,
        project_id: str,
        amount: float,
        category: str,
        description: str | None = None,
    ) -> bool:
        return self.engine.allocate(project_id, amount, category, description)

    def get_allocation(self, project_id: str) -> ProjectAllocation | None:
        return self.engine.get_allocation(project_id)

    def list_allocations(self) -> list[ProjectAllocation]:
        return self.engine.list_allocations()

    def remove_allocation(self, project_id: str) -> None:
        self.engine.remove_allocation(project_id)

    def summary(self) -> BudgetSummary:
        return self.engine.summary()

    def category_statuses(self) -> list[CategoryStatus]:
        return self.engine.category_statuses()

    def reconcile(self) -> ReconciliationReport | None:
        return self.engine.reconcile()

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def create_project(self, title: str, description: str = "") -> Project:
        return self.projects.create_project(title, description)

    def list_projects(self) -> list[Project]:
        return self.projects.list_projects()

    def get_project(self, project_id: str) -> Project | None:
        return self.projects.get_project(project_id)

    def project_summaries(self) -> list[ProjectSummary]:
        return self.projects.summaries()

    def update_step_document(
        self, project_id: str, step: str | ProjectStep, content: str
    ) -> Project:
        return self.projects.update_step_document(project_id, step, content)

    def toggle_step_completion(self, project_id: str, step: str | ProjectStep) -> Project:
        return self.projects.toggle_step_completion(project_id, step)

    def delete_project(self, project_id: str) -> None:
        self.projects.delete_project(project_id)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def refresh(self) -> None:
        """Re-read catalog and ledger written by other processes"""
        self.engine.load()

    def health(self) -> dict[str, Any]:
        """
        Snapshot for the health endpoint

        Returns:
            Dict with configuration state, load statuses and (when
            configured) the budget summary and reconciliation result
        """
        data: dict[str, Any] = {
            "budget_configured": self.is_configured,
            "catalog_load_status": self.engine.catalog_load_status.value,
            "ledger_load_status": self.engine.ledger_load_status.value,
            "recovered_from_corruption": self.engine.recovered_from_corruption,
            "allocation_count": len(self.engine.list_allocations()),
        }
        if self.is_configured:
            data["summary"] = self.summary().model_dump(mode="json")
            report = self.reconcile()
            data["ledger_consistent"] = report.is_clean if report else True
        return data
