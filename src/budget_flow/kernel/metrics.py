"""
Prometheus metrics collection for BudgetFlow.

Counts mutations, month creation, normalizer repairs and persistence
outcomes in the default prometheus_client registry; serving it is left to
the host process.
"""

import time
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar

from prometheus_client import Counter, Histogram

# ============================================================================
# Month Store Metrics
# ============================================================================

mutations_total = Counter(
    "budget_flow_mutations_total",
    "Total number of mutation operations by outcome",
    ["operation", "outcome"],  # outcome: applied, noop, rejected
)

mutation_duration_seconds = Histogram(
    "budget_flow_mutation_duration_seconds",
    "Duration of mutation operations in seconds",
    ["operation"],
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25),
)

months_created_total = Counter(
    "budget_flow_months_created_total",
    "Total number of months built by the month factory",
)

normalizer_repairs_total = Counter(
    "budget_flow_normalizer_repairs_total",
    "Total number of times the normalizer corrected stored category data",
)

# ============================================================================
# Persistence Metrics
# ============================================================================

persistence_writes_total = Counter(
    "budget_flow_persistence_writes_total",
    "Total number of month writes dispatched to the persistence collaborator",
    ["status"],  # status: success, failure
)

# ============================================================================
# Helper Functions
# ============================================================================

P = ParamSpec("P")
R = TypeVar("R")


def track_mutation(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """
    Decorator to time a mutation operation and count rejected calls.

    Applied and no-op outcomes are counted by the operation itself, since
    only it knows whether the month changed.
    """

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            except Exception:
                mutations_total.labels(operation=operation, outcome="rejected").inc()
                raise
            finally:
                mutation_duration_seconds.labels(operation=operation).observe(
                    time.perf_counter() - start
                )

        return wrapper

    return decorator
