"""
SK Budget Tracker - budget allocation and project documentation for
Sangguniang Kabataan councils

Tracks how much of each PPA category of the council's budget has been
committed to projects, and never lets an allocation overcommit a category
or the total.
"""

from sk_budget.skb import SKBudget

__version__ = "0.1.0"
__all__ = ["SKBudget", "__version__"]
