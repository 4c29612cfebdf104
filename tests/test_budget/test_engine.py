"""
Tests for BudgetAllocationEngine

End-to-end behaviour of one engine session over an in-memory store:
allocation scenarios, replace semantics, status views, catalog
replacement and recovery from unreadable records.
"""

import json
import threading

import pytest

from sk_budget.budget.engine import BudgetAllocationEngine
from sk_budget.budget.invariants import NO_BUDGET_MESSAGE
from sk_budget.budget.models import BudgetCatalog, BudgetItem, UsageStatus
from sk_budget.budget.repositories import AllocationLedgerRepository, CatalogRepository
from sk_budget.kernel.errors import StoreError
from sk_budget.kernel.metrics import allocation_attempts_total
from sk_budget.kernel.store import InMemoryKeyValueStore, LoadStatus


def _engine_over(store: InMemoryKeyValueStore) -> BudgetAllocationEngine:
    engine = BudgetAllocationEngine(
        CatalogRepository(store), AllocationLedgerRepository(store)
    )
    engine.load()
    return engine


class FailingLedgerStore(InMemoryKeyValueStore):
    """Store whose ledger writes fail"""

    def put(self, key: str, value: str) -> None:
        if key == "projectBudgets":
            raise StoreError(key, "disk full")
        super().put(key, value)


# =============================================================================
# Core allocation scenarios
# =============================================================================


def test_allocate_within_category(engine: BudgetAllocationEngine) -> None:
    """Test 500 of A's 600 is committed and reflected in the summary"""
    assert engine.allocate("p1", 500, "A") is True

    assert engine.category_available("A") == 100
    summary = engine.summary()
    assert summary.total == 1000
    assert summary.allocated == 500
    assert summary.available == 500
    assert summary.percentage_used == 50


def test_reallocation_releases_previous_amount(engine: BudgetAllocationEngine) -> None:
    """Test p1 may grow to A's full ceiling but no further"""
    assert engine.allocate("p1", 500, "A")

    # 500 is released first, so 600 fits exactly
    assert engine.allocate("p1", 600, "A") is True
    assert engine.get_allocation("p1").allocated_amount == 600
    assert engine.category_available("A") == 0


@pytest.mark.parametrize("amount", [700, 800])
def test_reallocation_beyond_ceiling_leaves_previous(
    engine: BudgetAllocationEngine, amount: float
) -> None:
    """Test a rejected re-allocation keeps the earlier 500"""
    assert engine.allocate("p1", 500, "A")

    assert engine.allocate("p1", amount, "A") is False

    assert engine.get_allocation("p1").allocated_amount == 500
    assert engine.category_available("A") == 100


def test_allocate_over_category_ceiling(engine: BudgetAllocationEngine) -> None:
    """Test 450 in B (ceiling 400) is rejected naming B and 400 available"""
    result = engine.validate(450, "B", project_id="p2")

    assert not result.valid
    assert "B" in result.message
    assert "₱400.00" in result.message
    assert result.available == 400
    assert engine.allocate("p2", 450, "B") is False
    assert engine.get_allocation("p2") is None


def test_remove_nonexistent_allocation(
    engine: BudgetAllocationEngine, memory_store: InMemoryKeyValueStore
) -> None:
    """Test removing an unknown project is a silent no-op"""
    engine.allocate("p1", 100, "A")
    before = memory_store.get("projectBudgets")

    engine.remove_allocation("nonexistent")

    assert memory_store.get("projectBudgets") == before
    assert len(engine.list_allocations()) == 1


def test_remove_allocation_restores_availability(engine: BudgetAllocationEngine) -> None:
    """Test removal returns the amount to its category"""
    engine.allocate("p1", 300, "B")
    engine.remove_allocation("p1")

    assert engine.category_available("B") == 400
    assert engine.get_allocation("p1") is None


def test_reallocation_across_categories(engine: BudgetAllocationEngine) -> None:
    """Test moving a project from A to B frees A"""
    engine.allocate("p1", 500, "A")

    assert engine.allocate("p1", 400, "B")

    assert engine.category_available("A") == 600
    assert engine.category_available("B") == 0
    assert engine.total_allocated() == 400


def test_rejected_amounts(
    engine: BudgetAllocationEngine, memory_store: InMemoryKeyValueStore
) -> None:
    """Test rejected requests leave memory and the stored ledger untouched"""
    engine.allocate("p0", 100, "A")
    before = memory_store.get("projectBudgets")

    assert engine.allocate("p1", 0, "A") is False
    assert engine.allocate("p1", -5, "A") is False
    assert engine.allocate("p1", 10, "Nowhere") is False
    assert engine.allocate("p1", 601, "A") is False

    assert memory_store.get("projectBudgets") == before
    assert [a.project_id for a in engine.list_allocations()] == ["p0"]


def test_empty_project_id_is_rejected_not_raised(
    engine: BudgetAllocationEngine, memory_store: InMemoryKeyValueStore
) -> None:
    """Test validate and allocate agree that a project id is required"""
    before = memory_store.get("projectBudgets")

    assert not engine.validate(100, "A", project_id="").valid

    assert engine.allocate("", 100, "A") is False

    assert engine.list_allocations() == []
    assert memory_store.get("projectBudgets") == before


def test_no_category_or_total_overcommit_after_many_attempts(
    engine: BudgetAllocationEngine,
) -> None:
    """Test a sequence of attempts never leaves any category over its ceiling"""
    attempts = [
        ("p1", 250, "A"),
        ("p2", 250, "A"),
        ("p3", 250, "A"),
        ("p4", 350, "B"),
        ("p5", 100, "B"),
        ("p1", 350, "A"),
        ("p2", 50, "B"),
    ]
    for project_id, amount, category in attempts:
        engine.allocate(project_id, amount, category)
        for item in engine.catalog.items:
            assert engine.category_available(item.category) >= 0
        assert engine.total_allocated() <= engine.total_budget()


def test_concurrent_allocations_never_overcommit(engine: BudgetAllocationEngine) -> None:
    """Test parallel allocations into A stop exactly at its ceiling"""
    results: list[bool] = []
    results_lock = threading.Lock()

    def worker(n: int) -> None:
        ok = engine.allocate(f"p{n}", 100, "A")
        with results_lock:
            results.append(ok)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(10)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert results.count(True) == 6
    assert engine.category_available("A") == 0


# =============================================================================
# No catalog configured
# =============================================================================


def test_unconfigured_engine_rejects_everything(
    unconfigured_engine: BudgetAllocationEngine,
) -> None:
    """Test validate and allocate point at budget setup when no catalog exists"""
    assert not unconfigured_engine.is_configured

    result = unconfigured_engine.validate(100, "A")
    assert not result.valid
    assert result.message == NO_BUDGET_MESSAGE
    assert unconfigured_engine.allocate("p1", 100, "A") is False
    assert unconfigured_engine.summary().total == 0
    assert unconfigured_engine.category_statuses() == []
    assert unconfigured_engine.reconcile() is None


def test_unconfigured_engine_ignores_stored_ledger(memory_store: InMemoryKeyValueStore) -> None:
    """Test the ledger is only read once a catalog exists"""
    memory_store.put(
        "projectBudgets",
        json.dumps([{"projectId": "p1", "allocatedAmount": 100, "category": "A"}]),
    )

    engine = _engine_over(memory_store)

    assert engine.list_allocations() == []
    assert engine.ledger_load_status == LoadStatus.ABSENT

    engine.replace_catalog(
        BudgetCatalog(total_budget=600, items=[BudgetItem(category="A", amount=600)])
    )
    assert engine.get_allocation("p1").allocated_amount == 100
    assert engine.ledger_load_status == LoadStatus.LOADED


# =============================================================================
# Availability views
# =============================================================================


def test_category_available_unknown_category(engine: BudgetAllocationEngine) -> None:
    """Test unknown categories read as 0 available"""
    assert engine.category_available("Z") == 0


def test_raw_and_clamped_available(
    engine: BudgetAllocationEngine,
) -> None:
    """Test total_available clamps at 0 while raw_available shows the deficit"""
    engine.allocate("p1", 600, "A")
    engine.allocate("p2", 400, "B")
    engine.replace_catalog(
        BudgetCatalog(
            total_budget=800,
            items=[BudgetItem(category="A", amount=500), BudgetItem(category="B", amount=300)],
        )
    )

    assert engine.total_available() == 0
    assert engine.raw_available() == -200
    assert engine.is_over_allocated()
    assert engine.over_allocation_amount() == 200
    assert engine.category_available("A") == -100


def test_category_availabilities_excluding_project(engine: BudgetAllocationEngine) -> None:
    """Test the per-category map with one project retracted"""
    engine.allocate("p1", 200, "A")
    engine.allocate("p2", 100, "B")

    assert engine.category_availabilities() == {"A": 400, "B": 300}
    assert engine.category_availabilities(exclude_project_id="p1") == {"A": 600, "B": 300}


def test_allocations_for_category(engine: BudgetAllocationEngine) -> None:
    """Test filtering allocations by category"""
    engine.allocate("p1", 100, "A")
    engine.allocate("p2", 100, "B")
    engine.allocate("p3", 100, "A")

    assert [a.project_id for a in engine.allocations_for_category("A")] == ["p1", "p3"]


# =============================================================================
# Status views
# =============================================================================


@pytest.mark.parametrize(
    "amount,expected",
    [(740, UsageStatus.OK), (750, UsageStatus.WARNING), (900, UsageStatus.CRITICAL)],
)
def test_summary_status_thresholds(amount: float, expected: UsageStatus) -> None:
    """Test the overall status cut-overs at 75% and 90%"""
    engine = _engine_over(InMemoryKeyValueStore())
    engine.replace_catalog(
        BudgetCatalog(total_budget=1000, items=[BudgetItem(category="A", amount=1000)])
    )
    engine.allocate("p1", amount, "A")

    assert engine.summary().status == expected


def test_category_status(engine: BudgetAllocationEngine) -> None:
    """Test per-category usage and message"""
    engine.allocate("p1", 360, "B")

    status = engine.category_status("B")

    assert status.total == 400
    assert status.used == 360
    assert status.available == 40
    assert status.percentage == 90
    assert status.status == UsageStatus.CRITICAL
    assert status.status_message == "Category nearly exhausted"


def test_category_statuses_in_catalog_order(engine: BudgetAllocationEngine) -> None:
    """Test one status per catalog category"""
    assert [s.category for s in engine.category_statuses()] == ["A", "B"]


def test_category_status_zero_ceiling() -> None:
    """Test a zero-amount category reports 0% rather than dividing by zero"""
    engine = _engine_over(InMemoryKeyValueStore())
    engine.replace_catalog(
        BudgetCatalog(
            total_budget=100,
            items=[BudgetItem(category="A", amount=100), BudgetItem(category="Empty", amount=0)],
        )
    )

    assert engine.category_status("Empty").percentage == 0


# =============================================================================
# Catalog replacement
# =============================================================================


def test_replace_catalog_reports_overcommit(engine: BudgetAllocationEngine) -> None:
    """Test importing a smaller budget surfaces the categories now over"""
    engine.allocate("p1", 500, "A")
    engine.allocate("p2", 100, "B")

    report = engine.replace_catalog(
        BudgetCatalog(total_budget=500, items=[BudgetItem(category="A", amount=500)])
    )

    assert not report.is_clean
    assert report.overcommitted == []
    assert [a.project_id for a in report.orphaned] == ["p2"]
    assert report.exceeds_total
    # Allocations are kept; nothing is silently dropped
    assert len(engine.list_allocations()) == 2


def test_replace_catalog_clean(engine: BudgetAllocationEngine) -> None:
    """Test a larger budget reconciles cleanly"""
    engine.allocate("p1", 500, "A")

    report = engine.replace_catalog(
        BudgetCatalog(
            total_budget=2000,
            items=[BudgetItem(category="A", amount=1200), BudgetItem(category="B", amount=800)],
        )
    )

    assert report.is_clean
    assert engine.category_available("A") == 700


# =============================================================================
# Persistence
# =============================================================================


def test_allocations_persist_across_sessions(
    engine: BudgetAllocationEngine, memory_store: InMemoryKeyValueStore
) -> None:
    """Test a second engine over the same store sees committed allocations"""
    engine.allocate("p1", 500, "A", description="Medical mission")

    reloaded = _engine_over(memory_store)

    allocation = reloaded.get_allocation("p1")
    assert allocation.allocated_amount == 500
    assert allocation.description == "Medical mission"
    assert reloaded.catalog_load_status == LoadStatus.LOADED
    assert reloaded.ledger_load_status == LoadStatus.LOADED


def test_failed_save_leaves_ledger_unchanged(catalog: BudgetCatalog) -> None:
    """Test the in-memory ledger only changes after a successful write"""
    engine = _engine_over(FailingLedgerStore())
    engine.replace_catalog(catalog)

    with pytest.raises(StoreError):
        engine.allocate("p1", 100, "A")

    assert engine.get_allocation("p1") is None
    assert engine.category_available("A") == 600


def test_corrupt_catalog_recovered(memory_store: InMemoryKeyValueStore) -> None:
    """Test an unreadable catalog reads as unconfigured, flagged RECOVERED"""
    memory_store.put("budgetData", "{not json")

    engine = _engine_over(memory_store)

    assert not engine.is_configured
    assert engine.catalog_load_status == LoadStatus.RECOVERED
    assert engine.recovered_from_corruption


def test_corrupt_ledger_recovered(
    engine: BudgetAllocationEngine, memory_store: InMemoryKeyValueStore
) -> None:
    """Test an unreadable ledger starts empty, flagged RECOVERED"""
    memory_store.put("projectBudgets", json.dumps([{"projectId": "p1"}]))

    reloaded = _engine_over(memory_store)

    assert reloaded.is_configured
    assert reloaded.list_allocations() == []
    assert reloaded.ledger_load_status == LoadStatus.RECOVERED
    assert reloaded.recovered_from_corruption


def test_empty_store_is_absent_not_recovered(
    unconfigured_engine: BudgetAllocationEngine,
) -> None:
    """Test a fresh store is distinguishable from a corrupted one"""
    assert unconfigured_engine.catalog_load_status == LoadStatus.ABSENT
    assert not unconfigured_engine.recovered_from_corruption


# =============================================================================
# Metrics
# =============================================================================


def test_allocation_outcomes_counted(engine: BudgetAllocationEngine) -> None:
    """Test accepted and rejected attempts increment their counters"""
    accepted_before = allocation_attempts_total.labels(outcome="accepted")._value.get()
    rejected_before = allocation_attempts_total.labels(outcome="rejected")._value.get()

    engine.allocate("p1", 100, "A")
    engine.allocate("p2", 10000, "A")

    assert allocation_attempts_total.labels(outcome="accepted")._value.get() == accepted_before + 1
    assert allocation_attempts_total.labels(outcome="rejected")._value.get() == rejected_before + 1
