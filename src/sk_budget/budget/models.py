"""
Budget Domain Models - catalog, allocations and read-side views

These models represent the fundamental building blocks of budget tracking
for an SK council:

- BudgetItem: one PPA category with its peso ceiling
- BudgetCatalog: the total budget and its category breakdown
- ProjectAllocation: a commitment of part of one category to one project
- AllocationLedger: every current allocation, at most one per project

Field aliases match the persisted record layout (camelCase for the catalog
total and allocation fields, snake_case for the committee metadata), so the
same JSON the onboarding upload produces can be loaded back unchanged.
"""

from enum import Enum
from typing import Any, Iterator

from pydantic import BaseModel, ConfigDict, Field


class UsageStatus(str, Enum):
    """
    Usage level of the whole budget or of one category

    The cut-overs come from BudgetPolicy and are shared by every view.
    """

    OK = "ok"
    WARNING = "warning"
    CRITICAL = "critical"


class BudgetItem(BaseModel):
    """
    Single PPA category in the budget catalog

    Attributes:
        category: Unique category name (e.g., "PPA 1.1 - Health")
        amount: Ceiling for this category
        description: Free-text description
        committee_responsible: SK committee implementing the PPA
        committee_oversight: SK committee overseeing the PPA
        abyip_ppa_activity: Matching ABYIP line item
    """

    model_config = ConfigDict(populate_by_name=True)

    category: str = Field(min_length=1)
    amount: float = Field(ge=0)
    description: str | None = None
    committee_responsible: str | None = None
    committee_oversight: str | None = None
    abyip_ppa_activity: str | None = None


class BudgetCatalog(BaseModel):
    """
    Total budget and its category breakdown

    Loaded once per onboarding/import event and read-only afterwards.
    Replacing it is allowed but triggers reconciliation of the ledger.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "totalBudget": 1000.0,
                    "items": [
                        {"category": "Health", "amount": 600.0},
                        {"category": "Sports Development", "amount": 400.0},
                    ],
                }
            ]
        },
    )

    total_budget: float = Field(alias="totalBudget")
    items: list[BudgetItem] = Field(default_factory=list)

    def get_item(self, category: str) -> BudgetItem | None:
        """Get catalog item by category name"""
        for item in self.items:
            if item.category == category:
                return item
        return None

    def has_category(self, category: str) -> bool:
        return self.get_item(category) is not None

    def amount_of(self, category: str) -> float:
        """Ceiling for a category; unknown categories have a ceiling of 0"""
        item = self.get_item(category)
        return item.amount if item else 0.0

    def categories(self) -> list[str]:
        return [item.category for item in self.items]

    def items_total(self) -> float:
        return sum(item.amount for item in self.items)

    def to_record(self) -> dict[str, Any]:
        """Serialize to the persisted record layout"""
        return self.model_dump(by_alias=True, exclude_none=True)


class ProjectAllocation(BaseModel):
    """
    Amount of one category committed to one project

    Attributes:
        project_id: Owning project
        allocated_amount: Committed amount (positive)
        category: Catalog category the amount is drawn from
        description: Optional note shown alongside the allocation
    """

    model_config = ConfigDict(populate_by_name=True)

    project_id: str = Field(alias="projectId", min_length=1)
    allocated_amount: float = Field(alias="allocatedAmount", gt=0)
    category: str
    description: str | None = None

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class AllocationLedger:
    """
    Current allocations keyed by project id

    Insertion ordered: replacing a project's allocation moves it to the
    end, matching the order in which allocations were last committed.
    Only BudgetAllocationEngine mutates a live ledger.
    """

    def __init__(self, allocations: list[ProjectAllocation] | None = None) -> None:
        self._by_project: dict[str, ProjectAllocation] = {}
        for allocation in allocations or []:
            self.put(allocation)

    def __iter__(self) -> Iterator[ProjectAllocation]:
        return iter(list(self._by_project.values()))

    def __len__(self) -> int:
        return len(self._by_project)

    def __contains__(self, project_id: object) -> bool:
        return project_id in self._by_project

    def get(self, project_id: str) -> ProjectAllocation | None:
        return self._by_project.get(project_id)

    def put(self, allocation: ProjectAllocation) -> None:
        """Insert or replace the allocation for allocation.project_id"""
        self._by_project.pop(allocation.project_id, None)
        self._by_project[allocation.project_id] = allocation

    def remove(self, project_id: str) -> ProjectAllocation | None:
        """Remove and return a project's allocation (None if absent)"""
        return self._by_project.pop(project_id, None)

    def allocations(self) -> list[ProjectAllocation]:
        return list(self._by_project.values())

    def total_allocated(self) -> float:
        return sum(a.allocated_amount for a in self._by_project.values())

    def allocated_in(self, category: str) -> float:
        return sum(
            a.allocated_amount
            for a in self._by_project.values()
            if a.category == category
        )

    def allocated_by_category(self) -> dict[str, float]:
        totals: dict[str, float] = {}
        for a in self._by_project.values():
            totals[a.category] = totals.get(a.category, 0.0) + a.allocated_amount
        return totals

    def copy(self) -> "AllocationLedger":
        return AllocationLedger(self.allocations())


class ValidationResult(BaseModel):
    """
    Outcome of checking a proposed allocation

    Never raised: an over-budget request is an expected, recoverable
    outcome. `message` is human-readable and names the category and the
    amount that was actually available.
    """

    valid: bool
    message: str | None = None
    available: float | None = None

    @classmethod
    def ok(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def rejected(
        cls, message: str, available: float | None = None
    ) -> "ValidationResult":
        return cls(valid=False, message=message, available=available)


class BudgetSummary(BaseModel):
    """Whole-budget view for dashboards"""

    total: float
    allocated: float
    available: float
    percentage_used: float
    status: UsageStatus
    status_message: str


class CategoryStatus(BaseModel):
    """Per-category view for dashboards"""

    category: str
    total: float
    used: float
    available: float
    percentage: float
    status: UsageStatus
    status_message: str


class CategoryOvercommit(BaseModel):
    """A category whose allocations exceed its ceiling"""

    category: str
    ceiling: float
    allocated: float
    deficit: float
    project_ids: list[str]


class ReconciliationReport(BaseModel):
    """
    Ledger checked against the current catalog

    Produced after every catalog replacement. A clean report means every
    invariant of the ledger still holds.
    """

    total_budget: float
    total_allocated: float
    overcommitted: list[CategoryOvercommit] = Field(default_factory=list)
    orphaned: list[ProjectAllocation] = Field(default_factory=list)

    @property
    def exceeds_total(self) -> bool:
        return self.total_allocated > self.total_budget

    @property
    def is_clean(self) -> bool:
        return not self.overcommitted and not self.orphaned and not self.exceeds_total
