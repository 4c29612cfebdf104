"""
Budget Module Invariants - allocation and ingestion rules

Pure functions over (catalog, ledger). The engine calls them for every
check; nothing here reads storage or mutates state.

Rules enforced:
1. Catalog shape at ingestion (positive total, non-empty, unique
   categories, items add up to the total)
2. No category is ever overcommitted by an accepted allocation
3. The total budget is never overcommitted by an accepted allocation
4. A project re-allocating is checked as if its current allocation had
   first been retracted (replace, don't add)
"""

import math

from sk_budget.budget.models import (
    AllocationLedger,
    BudgetCatalog,
    CategoryOvercommit,
    ReconciliationReport,
    UsageStatus,
    ValidationResult,
)
from sk_budget.kernel.errors import (
    CatalogTotalMismatch,
    DuplicateCategory,
    EmptyCatalog,
    NonFiniteAmount,
    NonPositiveTotal,
)
from sk_budget.kernel.policy import BudgetPolicy

NO_BUDGET_MESSAGE = (
    "No budget data configured. Run budget setup to upload the ABYIP budget first."
)


def validate_catalog(catalog: BudgetCatalog, tolerance: float = 0.01) -> None:
    """
    Ingestion gate shared by every upload format

    Args:
        catalog: Parsed catalog
        tolerance: Accepted |sum(items) - total| difference

    Raises:
        NonFiniteAmount: If the total or an item amount is NaN or infinite
        NonPositiveTotal: If total_budget <= 0
        EmptyCatalog: If there are no items
        DuplicateCategory: If a category name appears twice
        CatalogTotalMismatch: If items don't add up to the total
    """
    if not math.isfinite(catalog.total_budget):
        raise NonFiniteAmount("Total budget", catalog.total_budget)
    for item in catalog.items:
        if not math.isfinite(item.amount):
            raise NonFiniteAmount(f"Amount for {item.category}", item.amount)

    if not catalog.total_budget or catalog.total_budget <= 0:
        raise NonPositiveTotal(catalog.total_budget)

    if not catalog.items:
        raise EmptyCatalog()

    seen: set[str] = set()
    duplicates: list[str] = []
    for item in catalog.items:
        if item.category in seen and item.category not in duplicates:
            duplicates.append(item.category)
        seen.add(item.category)
    if duplicates:
        raise DuplicateCategory(duplicates)

    items_total = catalog.items_total()
    if abs(items_total - catalog.total_budget) > tolerance:
        raise CatalogTotalMismatch(
            items_total=items_total,
            total_budget=catalog.total_budget,
            tolerance=tolerance,
        )


def category_availability(
    catalog: BudgetCatalog,
    ledger: AllocationLedger,
    exclude_project_id: str | None = None,
) -> dict[str, float]:
    """
    Remaining amount per category

    Args:
        catalog: Current catalog
        ledger: Current allocations
        exclude_project_id: Project whose allocation is treated as retracted

    Returns:
        category -> ceiling minus committed amount. Categories that only
        appear in the ledger (no longer in the catalog) have a ceiling of 0
        and therefore a negative value.
    """
    available = {item.category: item.amount for item in catalog.items}
    for allocation in ledger:
        if allocation.project_id == exclude_project_id:
            continue
        available[allocation.category] = (
            available.get(allocation.category, 0.0) - allocation.allocated_amount
        )
    return available


def total_committed(
    ledger: AllocationLedger, exclude_project_id: str | None = None
) -> float:
    """Sum of all allocations, optionally ignoring one project"""
    return sum(
        a.allocated_amount for a in ledger if a.project_id != exclude_project_id
    )


def check_allocation(
    catalog: BudgetCatalog | None,
    ledger: AllocationLedger,
    amount: float,
    category: str,
    policy: BudgetPolicy,
    project_id: str | None = None,
) -> ValidationResult:
    """
    Decide whether an allocation may be committed

    When project_id already holds an allocation, that allocation is
    released first - into whichever category it came from - and the
    request is checked against what remains.

    Args:
        catalog: Current catalog (None when no budget is configured)
        ledger: Current allocations
        amount: Requested amount
        category: Requested category
        policy: Provides currency formatting
        project_id: Requesting project, if known

    Returns:
        ValidationResult (valid, or invalid with a user-facing message)
    """
    if catalog is None:
        return ValidationResult.rejected(NO_BUDGET_MESSAGE)

    if project_id is not None and not project_id.strip():
        return ValidationResult.rejected("Project id must not be empty")

    if math.isnan(amount) or amount <= 0:
        return ValidationResult.rejected("Amount must be greater than 0")

    fmt = policy.format_amount

    if not catalog.has_category(category):
        return ValidationResult.rejected(
            f"Unknown budget category '{category}'. "
            f"Available: {fmt(0.0)}, Requested: {fmt(amount)}",
            available=0.0,
        )

    available = category_availability(catalog, ledger, exclude_project_id=project_id)[
        category
    ]
    if amount > available:
        return ValidationResult.rejected(
            f"Insufficient budget in {category}. "
            f"Available: {fmt(available)}, Requested: {fmt(amount)}",
            available=available,
        )

    total_available = catalog.total_budget - total_committed(
        ledger, exclude_project_id=project_id
    )
    if amount > total_available:
        return ValidationResult.rejected(
            "This allocation would exceed total available budget. "
            f"Available: {fmt(total_available)}, Requested: {fmt(amount)}",
            available=total_available,
        )

    return ValidationResult.ok()


def percentage_of(used: float, total: float) -> float:
    """used / total as a percentage, 0 when total is not positive"""
    return (used / total) * 100 if total > 0 else 0.0


def usage_status(percentage: float, policy: BudgetPolicy) -> UsageStatus:
    """
    Map a usage percentage onto ok / warning / critical

    Monotonic in percentage; the same function backs both the budget-level
    and the category-level views.
    """
    if percentage >= policy.critical_threshold_percent:
        return UsageStatus.CRITICAL
    if percentage >= policy.warning_threshold_percent:
        return UsageStatus.WARNING
    return UsageStatus.OK


def status_message(status: UsageStatus, subject: str = "Budget") -> str:
    return {
        UsageStatus.CRITICAL: f"{subject} nearly exhausted",
        UsageStatus.WARNING: f"{subject} usage is high",
        UsageStatus.OK: f"{subject} usage is normal",
    }[status]


def reconcile_ledger(
    catalog: BudgetCatalog, ledger: AllocationLedger
) -> ReconciliationReport:
    """
    Check an existing ledger against a (possibly new) catalog

    Args:
        catalog: Catalog to check against
        ledger: Allocations committed earlier

    Returns:
        ReconciliationReport listing overcommitted categories and
        allocations whose category no longer exists
    """
    overcommitted: list[CategoryOvercommit] = []
    by_category = ledger.allocated_by_category()

    for item in catalog.items:
        allocated = by_category.get(item.category, 0.0)
        if allocated > item.amount:
            overcommitted.append(
                CategoryOvercommit(
                    category=item.category,
                    ceiling=item.amount,
                    allocated=allocated,
                    deficit=allocated - item.amount,
                    project_ids=[
                        a.project_id for a in ledger if a.category == item.category
                    ],
                )
            )

    orphaned = [a for a in ledger if not catalog.has_category(a.category)]

    return ReconciliationReport(
        total_budget=catalog.total_budget,
        total_allocated=ledger.total_allocated(),
        overcommitted=overcommitted,
        orphaned=orphaned,
    )
