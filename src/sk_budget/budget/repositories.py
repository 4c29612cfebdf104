"""
Budget Repositories - catalog and ledger persistence

Both records are whole-document JSON blobs overwritten on every save.

Load policy: an unreadable record (bad JSON, wrong shape) is logged, counted
and replaced by empty state instead of failing the session. The returned
LoadResult carries status RECOVERED so callers can tell this apart from a
record that was never written.
"""

import json

from pydantic import TypeAdapter, ValidationError

from sk_budget.budget.models import BudgetCatalog, ProjectAllocation
from sk_budget.kernel.logging import get_logger
from sk_budget.kernel.metrics import persistence_recoveries_total
from sk_budget.kernel.store import KeyValueStore, LoadResult, LoadStatus

logger = get_logger(__name__)

_allocation_list = TypeAdapter(list[ProjectAllocation])


class CatalogRepository:
    """Loads and saves the budget catalog record"""

    def __init__(self, store: KeyValueStore, key: str = "budgetData") -> None:
        self.store = store
        self.key = key

    def load(self) -> LoadResult[BudgetCatalog | None]:
        """
        Read the catalog

        Returns:
            LoadResult whose value is None when absent or unreadable
        """
        raw = self.store.get(self.key)
        if raw is None:
            return LoadResult(value=None, status=LoadStatus.ABSENT)

        try:
            catalog = BudgetCatalog.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(
                "Failed to load budget data, treating as not configured",
                key=self.key,
                error=str(e),
            )
            persistence_recoveries_total.labels(record=self.key).inc()
            return LoadResult(value=None, status=LoadStatus.RECOVERED, error=str(e))

        return LoadResult(value=catalog, status=LoadStatus.LOADED)

    def save(self, catalog: BudgetCatalog) -> None:
        """Persist the catalog, overwriting any prior value"""
        self.store.put(self.key, json.dumps(catalog.to_record()))
        logger.info(
            "Budget catalog saved",
            key=self.key,
            total_budget=catalog.total_budget,
            categories=len(catalog.items),
        )

    def clear(self) -> None:
        self.store.delete(self.key)


class AllocationLedgerRepository:
    """Loads and saves the list of project allocations"""

    def __init__(self, store: KeyValueStore, key: str = "projectBudgets") -> None:
        self.store = store
        self.key = key

    def load_all(self) -> LoadResult[list[ProjectAllocation]]:
        """
        Read every allocation

        Returns:
            LoadResult whose value is an empty list when absent or unreadable
        """
        raw = self.store.get(self.key)
        if raw is None:
            return LoadResult(value=[], status=LoadStatus.ABSENT)

        try:
            allocations = _allocation_list.validate_python(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(
                "Failed to load project budgets, starting from an empty ledger",
                key=self.key,
                error=str(e),
            )
            persistence_recoveries_total.labels(record=self.key).inc()
            return LoadResult(value=[], status=LoadStatus.RECOVERED, error=str(e))

        return LoadResult(value=allocations, status=LoadStatus.LOADED)

    def save_all(self, allocations: list[ProjectAllocation]) -> None:
        """Persist the full allocation list, overwriting any prior value"""
        self.store.put(
            self.key, json.dumps([a.to_record() for a in allocations])
        )
        logger.debug("Allocation ledger saved", key=self.key, count=len(allocations))
