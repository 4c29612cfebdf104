"""
Budget Policy - tunable parameters for ingestion and status reporting

One policy object is shared by the ingestion validator, the allocation
engine and every status view, so the category-level and total-level
"warning" / "critical" cut-overs can never drift apart.
"""

from pydantic import BaseModel, Field, model_validator


class BudgetPolicy(BaseModel):
    """
    Tracker configuration

    Defaults follow the SK council workflow: amounts in Philippine pesos,
    a one-centavo tolerance when checking that uploaded line items add up
    to the declared total, and usage warnings at 75% / 90%.
    """

    ingestion_tolerance: float = Field(
        default=0.01,
        ge=0.0,
        description="Maximum |sum(items) - totalBudget| accepted at ingestion",
    )

    warning_threshold_percent: float = Field(
        default=75.0,
        ge=0.0,
        le=100.0,
        description="Usage percentage at which a budget or category becomes 'warning'",
    )

    critical_threshold_percent: float = Field(
        default=90.0,
        ge=0.0,
        le=100.0,
        description="Usage percentage at which a budget or category becomes 'critical'",
    )

    currency_symbol: str = Field(
        default="₱",
        description="Symbol prefixed to amounts in user-facing messages",
    )

    catalog_key: str = Field(
        default="budgetData",
        description="Store key holding the budget catalog record",
    )

    ledger_key: str = Field(
        default="projectBudgets",
        description="Store key holding the allocation ledger record",
    )

    projects_key: str = Field(
        default="sk-projects",
        description="Store key holding the project workflow records",
    )

    @model_validator(mode="after")
    def _thresholds_are_ordered(self) -> "BudgetPolicy":
        if self.warning_threshold_percent > self.critical_threshold_percent:
            raise ValueError(
                "warning_threshold_percent must not exceed critical_threshold_percent"
            )
        return self

    def format_amount(self, amount: float) -> str:
        """Render an amount for user-facing messages, e.g. '₱1,250.00'"""
        return f"{self.currency_symbol}{amount:,.2f}"
