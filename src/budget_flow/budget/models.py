"""
Budget Domain Models - Core entities for monthly budgeting

These models are the shape of a user's budget data. They carry no
behaviour beyond simple lookups; transitions live in transforms.py and
read-side math in aggregation.py.

Key concepts:
- BudgetMonth: One calendar month, keyed by "YYYY-MM"
- System categories: "Savings" and "Credit Card Payments", always present
- Derived budgets: A category with subcategories budgets their sum

All entities are frozen. A mutation builds a new BudgetMonth with
model_copy(update=...) instead of editing one in place.
"""

from concurrent.futures import Future
from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, model_validator

SAVINGS = "Savings"
CREDIT_CARD_PAYMENTS = "Credit Card Payments"
SYSTEM_CATEGORY_NAMES: tuple[str, ...] = (SAVINGS, CREDIT_CARD_PAYMENTS)

ZERO = Decimal("0")


class MonthEndFeedback(str, Enum):
    """
    How the month's budget felt, recorded when the month is closed

    Fed back into next-month planning so the assistant can loosen or
    tighten the following budget.
    """

    TOO_STRICT = "too_strict"
    JUST_RIGHT = "just_right"
    EASY = "easy"


class Expense(BaseModel):
    """
    A single spend recorded against a category or subcategory

    Immutable once created; the only way to change one is to delete it.
    Amount positivity is enforced when the expense is added, not here, so
    older stored data always loads.
    """

    id: str
    description: str
    amount: Decimal
    date_added: datetime

    model_config = {"frozen": True}


class IncomeEntry(BaseModel):
    """Income received during a month"""

    id: str
    description: str
    amount: Decimal
    date_added: datetime

    model_config = {"frozen": True}


class SubCategory(BaseModel):
    """
    Line item under a non-system category

    Attributes:
        id: Unique identifier within the month
        name: Display name
        budgeted_amount: Planned spend; the parent's budget is the sum of these
        expenses: Spends recorded against this subcategory
    """

    id: str
    name: str
    budgeted_amount: Decimal = Field(default=ZERO, ge=0)
    expenses: list[Expense] = Field(default_factory=list)

    model_config = {"frozen": True}


class BudgetCategory(BaseModel):
    """
    Top-level budget category

    Invariants (restored by the normalizer and the transforms):
    - System categories have no subcategories and a canonical name
    - Non-system categories with subcategories budget their subcategory sum
    - Expenses attach directly only when there are no subcategories

    Attributes:
        id: Unique identifier within the month
        name: Display name
        budgeted_amount: Planned spend (or savings/payment goal for system categories)
        expenses: Spends recorded directly against the category
        subcategories: Optional breakdown of the category
        is_system_category: True for "Savings" and "Credit Card Payments"
    """

    id: str
    name: str
    budgeted_amount: Decimal = Field(default=ZERO, ge=0)
    expenses: list[Expense] = Field(default_factory=list)
    subcategories: list[SubCategory] = Field(default_factory=list)
    is_system_category: bool = False

    def get_subcategory(self, subcategory_id: str) -> SubCategory | None:
        """Get subcategory by ID"""
        for sub in self.subcategories:
            if sub.id == subcategory_id:
                return sub
        return None

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "id": "cat-001",
                    "name": "Groceries",
                    "budgeted_amount": "80.00",
                    "expenses": [],
                    "subcategories": [
                        {"id": "sub-001", "name": "Produce", "budgeted_amount": "50.00", "expenses": []},
                        {"id": "sub-002", "name": "Dairy", "budgeted_amount": "30.00", "expenses": []},
                    ],
                    "is_system_category": False,
                }
            ]
        },
    }


class BudgetMonth(BaseModel):
    """
    One calendar month of budget data

    A month moves Nonexistent -> Active -> Closed. It is created lazily by
    the month factory and closed terminally by rollover; there is no
    reopen and no delete.

    Attributes:
        id: "YYYY-MM" key, always derived from year and month
        year: Calendar year
        month: Calendar month 1-12
        incomes: Income received this month
        categories: Budget categories, including both system categories
        starting_credit_card_debt: Debt carried in from the previous month
        is_rolled_over: True once the month is closed
        month_end_feedback: How the budget felt, recorded at close time
    """

    id: str
    year: int = Field(ge=1, le=9999)
    month: int = Field(ge=1, le=12)
    incomes: list[IncomeEntry] = Field(default_factory=list)
    categories: list[BudgetCategory] = Field(default_factory=list)
    starting_credit_card_debt: Decimal = Field(default=ZERO, ge=0)
    is_rolled_over: bool = False
    month_end_feedback: MonthEndFeedback | None = None

    @model_validator(mode="after")
    def _id_matches_calendar_month(self) -> "BudgetMonth":
        expected = f"{self.year:04d}-{self.month:02d}"
        if self.id != expected:
            raise ValueError(f"Month id {self.id!r} does not match {expected!r}")
        return self

    def get_category(self, category_id: str) -> BudgetCategory | None:
        """Get category by ID"""
        for category in self.categories:
            if category.id == category_id:
                return category
        return None

    def is_closed(self) -> bool:
        """Check if the month has been rolled over"""
        return self.is_rolled_over

    model_config = {"frozen": True}


# ========== Update payloads ==========


class SubCategoryPayload(BaseModel):
    """Subcategory as submitted by a bulk month update"""

    id: str | None = None
    name: str
    budgeted_amount: Decimal | None = None


class CategoryPayload(BaseModel):
    """
    Category as submitted by a bulk month update

    Missing ids mean "new category". Expenses are never part of a payload;
    they are carried over from the stored category with the same id.
    """

    id: str | None = None
    name: str
    budgeted_amount: Decimal | None = None
    is_system_category: bool = False
    subcategories: list[SubCategoryPayload] = Field(default_factory=list)


# ========== Read models ==========


class CategoryOption(BaseModel):
    """An expense target offered to the categorisation assistant"""

    id: str
    name: str
    is_subcategory: bool = False


class MonthEndSummary(BaseModel):
    """Close-of-month figures shown before and after rollover"""

    month_id: str
    total_income: Decimal
    planned_savings: Decimal
    actual_savings: Decimal
    planned_credit_card_payments: Decimal
    actual_credit_card_payments: Decimal
    operational_budget: Decimal
    operational_spending: Decimal
    net_cash_flow: Decimal
    starting_credit_card_debt: Decimal
    ending_credit_card_debt: Decimal
    unspent_total: Decimal
    feedback: MonthEndFeedback | None = None


class PlanningContext(BaseModel):
    """Source-month figures handed to the next-month planning assistant"""

    month_id: str
    current_income: Decimal
    current_savings_total: Decimal
    current_credit_card_debt: Decimal
    previous_month_feedback: MonthEndFeedback | None = None


class MutationResult:
    """
    Outcome of a mutation operation

    changed is False for no-ops (closed month, unknown id, nothing to do);
    write is then None. created_id names the entity the operation created,
    if any.
    """

    def __init__(
        self,
        month: BudgetMonth,
        changed: bool,
        write: Future | None = None,
        created_id: str | None = None,
    ) -> None:
        self.month = month
        self.changed = changed
        self.write = write
        self.created_id = created_id

    def __repr__(self) -> str:
        return (
            f"MutationResult(month={self.month.id}, changed={self.changed}, "
            f"created_id={self.created_id})"
        )


class RolloverResult:
    """
    Result of closing a month

    unspent_total is informational only; nothing is moved into any budget.
    write is the persistence future, or None when nothing was written.
    """

    def __init__(
        self,
        success: bool,
        message: str,
        unspent_total: Decimal,
        month: BudgetMonth,
        write: Future | None = None,
    ) -> None:
        self.success = success
        self.message = message
        self.unspent_total = unspent_total
        self.month = month
        self.write = write

    def __repr__(self) -> str:
        return (
            f"RolloverResult(success={self.success}, month={self.month.id}, "
            f"unspent_total={self.unspent_total})"
        )
