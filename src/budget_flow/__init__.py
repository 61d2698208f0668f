"""
BudgetFlow - Monthly budgeting core with cross-month carryover

Tracks income, budget categories and expenses per calendar month. Two
system categories, "Savings" and "Credit Card Payments", carry meaning
across month boundaries: planned savings continue into the next month and
unpaid card debt becomes the next month's starting debt.
"""

from budget_flow.flow import BudgetFlow

__version__ = "0.1.0"
__all__ = ["BudgetFlow", "__version__"]
