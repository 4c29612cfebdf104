"""
Budget Allocation Engine - availability, validation and committed allocations

The engine owns the in-memory catalog and ledger for one session. It is
constructed explicitly (no module-level singleton) and hydrated with
load(): catalog first, then ledger.

Every mutation is check-then-act under a lock:
- allocate: re-check against current state, replace, persist
- remove_allocation: remove if present, persist
- replace_catalog: persist, reconcile existing allocations
"""

import threading

from sk_budget.budget.invariants import (
    category_availability,
    check_allocation,
    percentage_of,
    reconcile_ledger,
    status_message,
    usage_status,
)
from sk_budget.budget.models import (
    AllocationLedger,
    BudgetCatalog,
    BudgetSummary,
    CategoryStatus,
    ProjectAllocation,
    ReconciliationReport,
    ValidationResult,
)
from sk_budget.budget.repositories import AllocationLedgerRepository, CatalogRepository
from sk_budget.kernel.logging import LogOperation, get_logger
from sk_budget.kernel.metrics import (
    allocation_attempts_total,
    allocation_removals_total,
    update_utilization_metrics,
)
from sk_budget.kernel.policy import BudgetPolicy
from sk_budget.kernel.store import LoadStatus

logger = get_logger(__name__)


class BudgetAllocationEngine:
    """
    Core budget engine

    Composes the catalog and the allocation ledger. Callers must check
    `is_configured` (or handle the invalid ValidationResult) before
    offering allocation to users: with no catalog every allocation is
    rejected and every amount reads as zero.
    """

    def __init__(
        self,
        catalog_repository: CatalogRepository,
        ledger_repository: AllocationLedgerRepository,
        policy: BudgetPolicy | None = None,
    ) -> None:
        """
        Initialize engine with its repositories (does not load)

        Args:
            catalog_repository: Persistence for the catalog record
            ledger_repository: Persistence for the allocation ledger record
            policy: Tolerance and status thresholds (defaults if None)
        """
        self.catalog_repository = catalog_repository
        self.ledger_repository = ledger_repository
        self.policy = policy or BudgetPolicy()

        self._catalog: BudgetCatalog | None = None
        self._ledger = AllocationLedger()
        self._lock = threading.Lock()

        self.catalog_load_status: LoadStatus = LoadStatus.ABSENT
        self.ledger_load_status: LoadStatus = LoadStatus.ABSENT

    # ------------------------------------------------------------------
    # Hydration
    # ------------------------------------------------------------------

    def load(self) -> None:
        """
        Hydrate from storage: catalog first, then ledger

        With no catalog the ledger stays empty in memory; it is read once a
        catalog is imported.
        """
        with self._lock:
            catalog_result = self.catalog_repository.load()
            self._catalog = catalog_result.value
            self.catalog_load_status = catalog_result.status

            if self._catalog is None:
                self._ledger = AllocationLedger()
                self.ledger_load_status = LoadStatus.ABSENT
            else:
                self._load_ledger()

        logger.info(
            "Budget engine loaded",
            catalog_status=self.catalog_load_status.value,
            ledger_status=self.ledger_load_status.value,
            allocations=len(self._ledger),
        )
        self._publish_metrics()

    def _load_ledger(self) -> None:
        ledger_result = self.ledger_repository.load_all()
        self._ledger = AllocationLedger(ledger_result.value)
        self.ledger_load_status = ledger_result.status

    @property
    def is_configured(self) -> bool:
        """True once a budget catalog is loaded"""
        return self._catalog is not None

    @property
    def catalog(self) -> BudgetCatalog | None:
        return self._catalog

    @property
    def recovered_from_corruption(self) -> bool:
        """True if either record was unreadable and replaced by empty state"""
        return LoadStatus.RECOVERED in (
            self.catalog_load_status,
            self.ledger_load_status,
        )

    # ------------------------------------------------------------------
    # Catalog replacement
    # ------------------------------------------------------------------

    def replace_catalog(self, catalog: BudgetCatalog) -> ReconciliationReport:
        """
        Install a new catalog and reconcile existing allocations

        Existing allocations are kept even if the new catalog no longer
        covers them; the returned report lists every category that is now
        overcommitted and every allocation whose category disappeared.

        Args:
            catalog: Already-validated catalog

        Returns:
            ReconciliationReport for the ledger against the new catalog
        """
        with self._lock:
            with LogOperation(
                logger,
                "replace_catalog",
                total_budget=catalog.total_budget,
                categories=len(catalog.items),
            ) as op:
                was_configured = self._catalog is not None
                self.catalog_repository.save(catalog)
                self._catalog = catalog
                self.catalog_load_status = LoadStatus.LOADED
                if not was_configured:
                    self._load_ledger()
                report = reconcile_ledger(catalog, self._ledger)
                op.note(clean=report.is_clean, allocations=len(self._ledger))

        if not report.is_clean:
            logger.warning(
                "Catalog replacement left allocations out of balance",
                overcommitted=[c.category for c in report.overcommitted],
                orphaned=[a.project_id for a in report.orphaned],
                exceeds_total=report.exceeds_total,
            )
        self._publish_metrics()
        return report

    def reconcile(self) -> ReconciliationReport | None:
        """Check the ledger against the current catalog (None if unconfigured)"""
        if self._catalog is None:
            return None
        return reconcile_ledger(self._catalog, self._ledger)

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    def total_budget(self) -> float:
        return self._catalog.total_budget if self._catalog else 0.0

    def total_allocated(self) -> float:
        return self._ledger.total_allocated()

    def category_available(self, category: str) -> float:
        """
        Ceiling minus committed allocations for a category

        Unknown categories have a ceiling of 0, so the result may be zero or
        negative. This read is deliberately permissive; rejection happens
        in validate() and allocate().
        """
        if self._catalog is None:
            return -self._ledger.allocated_in(category)
        return category_availability(self._catalog, self._ledger).get(category, 0.0)

    def category_availabilities(
        self, exclude_project_id: str | None = None
    ) -> dict[str, float]:
        """Availability for every category, optionally with one project retracted"""
        if self._catalog is None:
            return {}
        return category_availability(
            self._catalog, self._ledger, exclude_project_id=exclude_project_id
        )

    def total_available(self) -> float:
        """Total minus committed, clamped at 0 for display"""
        return max(0.0, self.raw_available())

    def raw_available(self) -> float:
        """Unclamped total minus committed; negative means overcommitted"""
        return self.total_budget() - self.total_allocated()

    def is_over_allocated(self) -> bool:
        return self.total_allocated() > self.total_budget()

    def over_allocation_amount(self) -> float:
        return max(0.0, self.total_allocated() - self.total_budget())

    # ------------------------------------------------------------------
    # Validation and mutation
    # ------------------------------------------------------------------

    def validate(
        self, amount: float, category: str, project_id: str | None = None
    ) -> ValidationResult:
        """
        Check a proposed allocation without committing it

        Args:
            amount: Requested amount
            category: Requested category
            project_id: Requesting project; its current allocation is
                treated as released before the check

        Returns:
            ValidationResult with a user-facing message when invalid
        """
        return check_allocation(
            self._catalog,
            self._ledger,
            amount,
            category,
            self.policy,
            project_id=project_id,
        )

    def allocate(
        self,
        project_id: str,
        amount: float,
        category: str,
        description: str | None = None,
    ) -> bool:
        """
        Commit (or replace) a project's allocation

        The availability check is repeated here against current state, so a
        stale validate() result can never let an overcommit through.

        Args:
            project_id: Project receiving the allocation
            amount: Amount to commit
            category: Category to draw from
            description: Optional note

        Returns:
            True if committed and persisted, False if rejected (no mutation)
        """
        with self._lock:
            result = check_allocation(
                self._catalog,
                self._ledger,
                amount,
                category,
                self.policy,
                project_id=project_id,
            )
            if not result.valid:
                allocation_attempts_total.labels(outcome="rejected").inc()
                logger.info(
                    "Allocation rejected",
                    project_id=project_id,
                    category=category,
                    reason=result.message,
                )
                return False

            previous = self._ledger.get(project_id)
            updated = self._ledger.copy()
            updated.put(
                ProjectAllocation(
                    project_id=project_id,
                    allocated_amount=amount,
                    category=category,
                    description=description,
                )
            )
            self.ledger_repository.save_all(updated.allocations())
            self._ledger = updated

        allocation_attempts_total.labels(outcome="accepted").inc()
        logger.info(
            "Allocation committed",
            project_id=project_id,
            category=category,
            replaced_category=previous.category if previous else None,
        )
        self._publish_metrics()
        return True

    def get_allocation(self, project_id: str) -> ProjectAllocation | None:
        return self._ledger.get(project_id)

    def list_allocations(self) -> list[ProjectAllocation]:
        return self._ledger.allocations()

    def allocations_for_category(self, category: str) -> list[ProjectAllocation]:
        return [a for a in self._ledger if a.category == category]

    def remove_allocation(self, project_id: str) -> None:
        """
        Remove a project's allocation

        Idempotent: removing an absent allocation is not an error and
        leaves the stored ledger untouched.
        """
        with self._lock:
            if project_id not in self._ledger:
                return
            updated = self._ledger.copy()
            updated.remove(project_id)
            self.ledger_repository.save_all(updated.allocations())
            self._ledger = updated

        allocation_removals_total.inc()
        logger.info("Allocation removed", project_id=project_id)
        self._publish_metrics()

    # ------------------------------------------------------------------
    # Read projections
    # ------------------------------------------------------------------

    def summary(self) -> BudgetSummary:
        """Totals and usage status for the whole budget"""
        total = self.total_budget()
        allocated = self.total_allocated()
        percentage = percentage_of(allocated, total)
        status = usage_status(percentage, self.policy)
        return BudgetSummary(
            total=total,
            allocated=allocated,
            available=max(0.0, total - allocated),
            percentage_used=percentage,
            status=status,
            status_message=status_message(status, "Budget"),
        )

    def category_status(self, category: str) -> CategoryStatus:
        """Usage and status for one category"""
        total = self._catalog.amount_of(category) if self._catalog else 0.0
        used = self._ledger.allocated_in(category)
        percentage = percentage_of(used, total)
        status = usage_status(percentage, self.policy)
        return CategoryStatus(
            category=category,
            total=total,
            used=used,
            available=total - used,
            percentage=percentage,
            status=status,
            status_message=status_message(status, "Category"),
        )

    def category_statuses(self) -> list[CategoryStatus]:
        """Status of every catalog category, in catalog order"""
        if self._catalog is None:
            return []
        return [self.category_status(c) for c in self._catalog.categories()]

    def _publish_metrics(self) -> None:
        if self._catalog is None:
            return
        by_category = self._ledger.allocated_by_category()
        update_utilization_metrics(
            total=self._catalog.total_budget,
            allocated=self._ledger.total_allocated(),
            categories={
                item.category: (item.amount, by_category.get(item.category, 0.0))
                for item in self._catalog.items
            },
        )
