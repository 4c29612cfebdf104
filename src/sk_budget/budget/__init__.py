"""
Budget module - catalog ingestion, allocation ledger and the allocation engine
"""

from sk_budget.budget.engine import BudgetAllocationEngine
from sk_budget.budget.models import (
    AllocationLedger,
    BudgetCatalog,
    BudgetItem,
    BudgetSummary,
    CategoryStatus,
    ProjectAllocation,
    ReconciliationReport,
    UsageStatus,
    ValidationResult,
)
from sk_budget.budget.repositories import AllocationLedgerRepository, CatalogRepository

__all__ = [
    "BudgetAllocationEngine",
    "AllocationLedger",
    "AllocationLedgerRepository",
    "BudgetCatalog",
    "BudgetItem",
    "BudgetSummary",
    "CatalogRepository",
    "CategoryStatus",
    "ProjectAllocation",
    "ReconciliationReport",
    "UsageStatus",
    "ValidationResult",
]
