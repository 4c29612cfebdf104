"""
Kernel - shared infrastructure for the tracker

Errors, logging, configuration, persistence, ids and time live here; the
budget and project modules build on them.
"""

from sk_budget.kernel.errors import (
    CatalogIngestionError,
    ProjectNotFound,
    SKBudgetError,
    StoreError,
)
from sk_budget.kernel.ids import DefaultIdFactory, IdFactory, generate_project_id
from sk_budget.kernel.policy import BudgetPolicy
from sk_budget.kernel.store import (
    InMemoryKeyValueStore,
    KeyValueStore,
    LoadResult,
    LoadStatus,
    SQLiteKeyValueStore,
)
from sk_budget.kernel.time import RealTimeProvider, TestTimeProvider, TimeProvider

__all__ = [
    # IDs
    "IdFactory",
    "DefaultIdFactory",
    "generate_project_id",
    # Time
    "TimeProvider",
    "RealTimeProvider",
    "TestTimeProvider",
    # Configuration
    "BudgetPolicy",
    # Persistence
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "SQLiteKeyValueStore",
    "LoadResult",
    "LoadStatus",
    # Errors
    "SKBudgetError",
    "StoreError",
    "CatalogIngestionError",
    "ProjectNotFound",
]
