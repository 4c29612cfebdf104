"""
Prometheus metrics collection for the SK Budget Tracker.

Provides observability into allocation outcomes, budget utilization and
silent recoveries from unreadable persisted records.
"""

from prometheus_client import Counter, Gauge, start_http_server

# ============================================================================
# Allocation Metrics
# ============================================================================

allocation_attempts_total = Counter(
    "sk_budget_allocation_attempts_total",
    "Total number of allocation attempts",
    ["outcome"],  # outcome: accepted, rejected
)

allocation_removals_total = Counter(
    "sk_budget_allocation_removals_total",
    "Total number of allocations removed",
)

# ============================================================================
# Budget Utilization Metrics
# ============================================================================

budget_utilization_ratio = Gauge(
    "sk_budget_utilization_ratio",
    "Budget utilization ratio (allocated/total)",
)

category_utilization_ratio = Gauge(
    "sk_budget_category_utilization_ratio",
    "Per-category utilization ratio (allocated/ceiling)",
    ["category"],
)

# ============================================================================
# Persistence Metrics
# ============================================================================

persistence_recoveries_total = Counter(
    "sk_budget_persistence_recoveries_total",
    "Number of unreadable records replaced by empty state at load time",
    ["record"],
)


def update_utilization_metrics(
    total: float,
    allocated: float,
    categories: dict[str, tuple[float, float]],
) -> None:
    """
    Update utilization gauges.

    Args:
        total: Catalog total budget
        allocated: Sum of all allocations
        categories: category -> (ceiling, allocated)
    """
    budget_utilization_ratio.set(allocated / total if total > 0 else 0.0)
    # Categories dropped by a catalog replacement stop exporting
    category_utilization_ratio.clear()
    for category, (ceiling, used) in categories.items():
        category_utilization_ratio.labels(category=category).set(
            used / ceiling if ceiling > 0 else 0.0
        )


def start_metrics_server(port: int = 9090) -> None:
    """
    Start Prometheus metrics HTTP server.

    Args:
        port: Port to listen on (default: 9090)
    """
    start_http_server(port)
