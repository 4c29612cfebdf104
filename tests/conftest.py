"""
Pytest configuration and shared fixtures

Fun fact: The name "conftest" comes from pytest's configuration testing
framework. Files named conftest.py are automatically discovered and their
fixtures are available to all tests in the same directory and subdirectories!
"""

import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

import pytest

from sk_budget.budget.engine import BudgetAllocationEngine
from sk_budget.budget.models import BudgetCatalog, BudgetItem
from sk_budget.budget.repositories import AllocationLedgerRepository, CatalogRepository
from sk_budget.kernel.ids import SequentialIdFactory
from sk_budget.kernel.policy import BudgetPolicy
from sk_budget.kernel.store import InMemoryKeyValueStore
from sk_budget.kernel.time import TestTimeProvider
from sk_budget.skb import SKBudget


@pytest.fixture
def temp_db() -> Iterator[Path]:
    """Provide a temporary database file that's cleaned up after test"""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    yield db_path

    # Cleanup
    if db_path.exists():
        db_path.unlink()


@pytest.fixture
def test_time() -> TestTimeProvider:
    """
    Provide a controllable time provider for deterministic tests

    Default time: 2025-01-15 12:00:00 UTC
    """
    return TestTimeProvider(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def policy() -> BudgetPolicy:
    """Provide default budget policy (1-centavo tolerance, 75% / 90% cut-overs)"""
    return BudgetPolicy()


@pytest.fixture
def memory_store() -> InMemoryKeyValueStore:
    """Provide a fresh in-memory record store"""
    return InMemoryKeyValueStore()


@pytest.fixture
def catalog() -> BudgetCatalog:
    """
    Two-category catalog used throughout the allocation tests

    A = 600, B = 400, total = 1000
    """
    return BudgetCatalog(
        total_budget=1000.0,
        items=[
            BudgetItem(category="A", amount=600.0),
            BudgetItem(category="B", amount=400.0),
        ],
    )


@pytest.fixture
def unconfigured_engine(
    memory_store: InMemoryKeyValueStore, policy: BudgetPolicy
) -> BudgetAllocationEngine:
    """Engine over an empty store (no budget uploaded yet)"""
    engine = BudgetAllocationEngine(
        CatalogRepository(memory_store),
        AllocationLedgerRepository(memory_store),
        policy,
    )
    engine.load()
    return engine


@pytest.fixture
def engine(
    unconfigured_engine: BudgetAllocationEngine, catalog: BudgetCatalog
) -> BudgetAllocationEngine:
    """Engine with the A/B catalog installed and no allocations"""
    unconfigured_engine.replace_catalog(catalog)
    return unconfigured_engine


@pytest.fixture
def skb(test_time: TestTimeProvider, catalog: BudgetCatalog) -> SKBudget:
    """In-memory façade with the A/B catalog and predictable project ids"""
    tracker = SKBudget(time_provider=test_time, id_factory=SequentialIdFactory())
    tracker.import_catalog(catalog)
    return tracker
