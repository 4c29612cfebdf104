"""
Custom exceptions for the SK Budget Tracker

A small, explicit error hierarchy lets the CLI and façade tell ingestion
problems apart from missing records and storage faults.

Note: allocation validation failures are NOT exceptions. An over-budget
request is an expected outcome of normal use, so the engine returns a
ValidationResult instead of raising.
"""


class SKBudgetError(Exception):
    """Base exception for all SK Budget Tracker errors"""

    pass


class StoreError(SKBudgetError):
    """Raised when the key-value store cannot be read or written"""

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        self.reason = reason
        super().__init__(f"Store operation on '{key}' failed: {reason}")


# Catalog ingestion errors


class CatalogIngestionError(SKBudgetError):
    """
    Base class for budget catalog ingestion failures

    Raised by every ingestion path (CSV, JSON, extracted records) before
    anything is persisted, so a rejected upload never replaces the
    current catalog.
    """

    pass


class EmptyCatalog(CatalogIngestionError):
    """Raised when an uploaded catalog has no items"""

    def __init__(self) -> None:
        super().__init__("Budget must have at least one item")


class NonPositiveTotal(CatalogIngestionError):
    """Raised when the catalog total budget is zero or negative"""

    def __init__(self, total_budget: float) -> None:
        self.total_budget = total_budget
        super().__init__(
            f"Total budget must be greater than 0 (got {total_budget})"
        )


class NonFiniteAmount(CatalogIngestionError):
    """Raised when the total or an item amount is NaN or infinite"""

    def __init__(self, field: str, value: float) -> None:
        self.field = field
        self.value = value
        super().__init__(f"{field} must be a finite number (got {value})")


class CatalogTotalMismatch(CatalogIngestionError):
    """Raised when item amounts do not add up to the declared total"""

    def __init__(
        self, items_total: float, total_budget: float, tolerance: float
    ) -> None:
        self.items_total = items_total
        self.total_budget = total_budget
        self.tolerance = tolerance
        super().__init__(
            f"Item amounts ({items_total}) don't match total budget "
            f"({total_budget}); difference exceeds {tolerance}"
        )


class DuplicateCategory(CatalogIngestionError):
    """Raised when two catalog items share the same category name"""

    def __init__(self, categories: list[str]) -> None:
        self.categories = categories
        super().__init__(
            f"Duplicate budget categories: {', '.join(categories)} - "
            "each PPA category must appear exactly once"
        )


class MissingColumns(CatalogIngestionError):
    """Raised when a CSV upload lacks the required columns"""

    def __init__(self, missing: list[str]) -> None:
        self.missing = missing
        super().__init__(
            f"CSV must have \"category\" and \"amount\" columns "
            f"(missing: {', '.join(missing)})"
        )


class InvalidAmount(CatalogIngestionError):
    """Raised when a catalog row carries a non-numeric or negative amount"""

    def __init__(self, row: int, value: object) -> None:
        self.row = row
        self.value = value
        super().__init__(f"Invalid amount in row {row}: {value!r}")


class UnsupportedFormat(CatalogIngestionError):
    """Raised when an upload is not CSV or JSON"""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"Unsupported budget file '{name}' - please upload a CSV or JSON file"
        )


class MalformedCatalog(CatalogIngestionError):
    """Raised when an upload parses but does not have the catalog shape"""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Budget data is malformed: {reason}")


# Project workflow errors


class ProjectNotFound(SKBudgetError):
    """Raised when a project does not exist"""

    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        super().__init__(f"Project {project_id} not found")


class UnknownStep(SKBudgetError):
    """Raised when a workflow step name is not recognised"""

    def __init__(self, step: str) -> None:
        self.step = step
        super().__init__(
            f"Unknown workflow step '{step}' "
            "(expected planning, approval, resolution, dv or withdrawal)"
        )
