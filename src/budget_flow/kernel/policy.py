"""
Budget Policy - Tunable parameters of the budgeting core

Everything a deployment may want to change without touching code lives
here: the starter category template, the persistence retry policy and the
labels used for entries the core creates on the user's behalf.
"""

from pydantic import BaseModel, Field, model_validator

DEFAULT_CATEGORY_TEMPLATE: tuple[str, ...] = (
    "Groceries",
    "Rent/Mortgage",
    "Utilities",
    "Transport",
    "Entertainment",
    "Health",
    "Savings",
    "Other",
)


class BudgetPolicy(BaseModel):
    """
    Configuration for a BudgetFlow session

    The defaults reproduce the documented behaviour: single-attempt
    persistence dispatched on a background thread, and the eight-category
    starter template.
    """

    policy_version: str = Field(
        default="1.0",
        description="Policy version for tracking changes over time",
    )

    default_categories: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CATEGORY_TEMPLATE),
        min_length=1,
        description="Category names every new month starts with (zero budgets)",
    )

    # Persistence
    persistence_max_attempts: int = Field(
        default=1,
        ge=1,
        le=10,
        description="Attempts per month write; 1 means fire-and-forget without retry",
    )

    persistence_min_wait_ms: int = Field(
        default=100,
        ge=0,
        description="Minimum backoff between write attempts",
    )

    persistence_max_wait_ms: int = Field(
        default=2000,
        ge=0,
        description="Maximum backoff between write attempts",
    )

    background_writes: bool = Field(
        default=True,
        description="Dispatch writes to a worker thread instead of running them inline",
    )

    # Labels for entries created by the core
    expected_income_description: str = Field(
        default="Expected income",
        min_length=1,
        description="Description of the income entry recorded when applying a budget plan",
    )

    suggested_expense_description: str = Field(
        default="Scanned receipt",
        min_length=1,
        description="Fallback description for assistant-suggested expenses",
    )

    @model_validator(mode="after")
    def _check_backoff_bounds(self) -> "BudgetPolicy":
        if self.persistence_min_wait_ms > self.persistence_max_wait_ms:
            raise ValueError("persistence_min_wait_ms must not exceed persistence_max_wait_ms")
        return self
