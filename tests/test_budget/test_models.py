"""
Tests for Budget Domain Models

Covers the persisted record layout (camelCase aliases) and the ledger's
one-allocation-per-project bookkeeping.
"""

import pytest
from pydantic import ValidationError

from sk_budget.budget.models import (
    AllocationLedger,
    BudgetCatalog,
    BudgetItem,
    ProjectAllocation,
    ReconciliationReport,
    ValidationResult,
)


def test_catalog_loads_from_record_layout() -> None:
    """Test catalog accepts the persisted camelCase record"""
    catalog = BudgetCatalog.model_validate(
        {
            "totalBudget": 1000,
            "items": [
                {
                    "category": "Health",
                    "amount": 600,
                    "committee_responsible": "Committee on Health",
                },
                {"category": "Sports", "amount": 400},
            ],
        }
    )

    assert catalog.total_budget == 1000
    assert catalog.categories() == ["Health", "Sports"]
    assert catalog.get_item("Health").committee_responsible == "Committee on Health"


def test_catalog_record_round_trip_omits_missing_metadata(catalog: BudgetCatalog) -> None:
    """Test to_record uses aliases and leaves out unset optional fields"""
    record = catalog.to_record()

    assert record == {
        "totalBudget": 1000.0,
        "items": [
            {"category": "A", "amount": 600.0},
            {"category": "B", "amount": 400.0},
        ],
    }
    assert BudgetCatalog.model_validate(record) == catalog


def test_catalog_unknown_category_has_zero_ceiling(catalog: BudgetCatalog) -> None:
    """Test amount_of treats unknown categories as ceiling 0"""
    assert catalog.amount_of("A") == 600.0
    assert catalog.amount_of("Z") == 0.0
    assert not catalog.has_category("Z")


def test_budget_item_rejects_negative_amount() -> None:
    """Test item amounts must be non-negative"""
    with pytest.raises(ValidationError):
        BudgetItem(category="A", amount=-1)


def test_budget_item_rejects_empty_category() -> None:
    """Test item categories must be non-empty"""
    with pytest.raises(ValidationError):
        BudgetItem(category="", amount=10)


def test_allocation_record_layout() -> None:
    """Test allocation serializes as projectId / allocatedAmount"""
    allocation = ProjectAllocation(
        project_id="p1", allocated_amount=250.0, category="A", description="Jerseys"
    )

    assert allocation.to_record() == {
        "projectId": "p1",
        "allocatedAmount": 250.0,
        "category": "A",
        "description": "Jerseys",
    }
    assert ProjectAllocation.model_validate(allocation.to_record()) == allocation


def test_allocation_amount_must_be_positive() -> None:
    """Test zero allocations cannot be constructed"""
    with pytest.raises(ValidationError):
        ProjectAllocation(project_id="p1", allocated_amount=0, category="A")


class TestAllocationLedger:
    """Test ledger bookkeeping"""

    def test_put_replaces_existing_project(self) -> None:
        """Test a project holds at most one allocation"""
        ledger = AllocationLedger()
        ledger.put(ProjectAllocation(project_id="p1", allocated_amount=100, category="A"))
        ledger.put(ProjectAllocation(project_id="p1", allocated_amount=50, category="B"))

        assert len(ledger) == 1
        assert ledger.get("p1").category == "B"
        assert ledger.total_allocated() == 50

    def test_replacement_moves_allocation_to_end(self) -> None:
        """Test re-allocating reorders the project to last"""
        ledger = AllocationLedger(
            [
                ProjectAllocation(project_id="p1", allocated_amount=100, category="A"),
                ProjectAllocation(project_id="p2", allocated_amount=100, category="A"),
            ]
        )
        ledger.put(ProjectAllocation(project_id="p1", allocated_amount=10, category="A"))

        assert [a.project_id for a in ledger] == ["p2", "p1"]

    def test_totals_by_category(self) -> None:
        """Test per-category sums"""
        ledger = AllocationLedger(
            [
                ProjectAllocation(project_id="p1", allocated_amount=100, category="A"),
                ProjectAllocation(project_id="p2", allocated_amount=200, category="A"),
                ProjectAllocation(project_id="p3", allocated_amount=50, category="B"),
            ]
        )

        assert ledger.allocated_in("A") == 300
        assert ledger.allocated_in("C") == 0
        assert ledger.allocated_by_category() == {"A": 300, "B": 50}

    def test_copy_is_independent(self) -> None:
        """Test mutating a copy leaves the original untouched"""
        ledger = AllocationLedger(
            [ProjectAllocation(project_id="p1", allocated_amount=100, category="A")]
        )
        copy = ledger.copy()
        copy.remove("p1")

        assert "p1" in ledger
        assert "p1" not in copy

    def test_remove_absent_returns_none(self) -> None:
        """Test removing an unknown project is harmless"""
        assert AllocationLedger().remove("missing") is None


def test_validation_result_constructors() -> None:
    """Test ok / rejected helpers"""
    assert ValidationResult.ok().valid
    rejected = ValidationResult.rejected("nope", available=5.0)
    assert not rejected.valid
    assert rejected.message == "nope"
    assert rejected.available == 5.0


def test_reconciliation_report_flags() -> None:
    """Test is_clean / exceeds_total"""
    clean = ReconciliationReport(total_budget=1000, total_allocated=500)
    assert clean.is_clean
    assert not clean.exceeds_total

    over = ReconciliationReport(total_budget=1000, total_allocated=1200)
    assert over.exceeds_total
    assert not over.is_clean
