"""
Kernel - Infrastructure shared by the budgeting core

Ids, clocks, errors, logging, metrics, retry policy and persistence. None of
it knows what a budget is beyond the BudgetMonth it stores.
"""

from budget_flow.kernel.errors import (
    BudgetFlowError,
    MonthNotFound,
    PersistenceError,
    ValidationError,
)
from budget_flow.kernel.ids import IdFactory, SequentialIdFactory, generate_id
from budget_flow.kernel.time import FixedTimeProvider, RealTimeProvider, TimeProvider

__all__ = [
    # IDs
    "IdFactory",
    "SequentialIdFactory",
    "generate_id",
    # Time
    "TimeProvider",
    "RealTimeProvider",
    "FixedTimeProvider",
    # Errors
    "BudgetFlowError",
    "ValidationError",
    "MonthNotFound",
    "PersistenceError",
]
