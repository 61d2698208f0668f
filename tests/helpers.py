"""
Test Helper Functions - Builders and test doubles

Builders keep month fixtures readable: a test names the categories and
amounts it cares about and everything else gets a sensible default.
"""

from collections.abc import Sequence
from datetime import datetime, timezone
from decimal import Decimal

from budget_flow.budget.models import (
    CREDIT_CARD_PAYMENTS,
    SAVINGS,
    BudgetCategory,
    BudgetMonth,
    CategoryOption,
    Expense,
    IncomeEntry,
    SubCategory,
)
from budget_flow.budget.suggestions import (
    BudgetPlanSuggestion,
    ExpenseSuggestion,
    PlanningRequest,
)
from budget_flow.kernel.errors import PersistenceError
from budget_flow.kernel.persistence import InMemoryMonthRepository

WHEN = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)

_counter = 0


def _next_id(prefix: str) -> str:
    global _counter
    _counter += 1
    return f"{prefix}-{_counter}"


def make_expense(amount: str | Decimal, description: str = "Spend", expense_id: str | None = None) -> Expense:
    return Expense(
        id=expense_id or _next_id("exp"),
        description=description,
        amount=Decimal(str(amount)),
        date_added=WHEN,
    )


def make_income(amount: str | Decimal, description: str = "Salary") -> IncomeEntry:
    return IncomeEntry(
        id=_next_id("inc"),
        description=description,
        amount=Decimal(str(amount)),
        date_added=WHEN,
    )


def make_subcategory(
    name: str,
    budget: str | Decimal = "0",
    spent: Sequence[str] = (),
    subcategory_id: str | None = None,
) -> SubCategory:
    return SubCategory(
        id=subcategory_id or _next_id("sub"),
        name=name,
        budgeted_amount=Decimal(str(budget)),
        expenses=[make_expense(amount) for amount in spent],
    )


def make_category(
    name: str,
    budget: str | Decimal = "0",
    spent: Sequence[str] = (),
    subcategories: Sequence[SubCategory] = (),
    system: bool = False,
    category_id: str | None = None,
) -> BudgetCategory:
    """
    Builder for test categories

    Args:
        name: Category name
        budget: Budgeted amount
        spent: Amounts of expenses recorded directly on the category
        subcategories: Optional subcategories
        system: Whether to flag as a system category
        category_id: Explicit id (generated if None)
    """
    return BudgetCategory(
        id=category_id or _next_id("cat"),
        name=name,
        budgeted_amount=Decimal(str(budget)),
        expenses=[make_expense(amount) for amount in spent],
        subcategories=list(subcategories),
        is_system_category=system,
    )


def system_categories(
    savings_budget: str = "0",
    savings_spent: Sequence[str] = (),
    payments_budget: str = "0",
    payments_spent: Sequence[str] = (),
) -> list[BudgetCategory]:
    """Both well-formed system categories"""
    return [
        make_category(SAVINGS, savings_budget, savings_spent, system=True),
        make_category(CREDIT_CARD_PAYMENTS, payments_budget, payments_spent, system=True),
    ]


def make_month(
    month_id: str = "2025-06",
    categories: Sequence[BudgetCategory] | None = None,
    incomes: Sequence[IncomeEntry] = (),
    starting_debt: str | Decimal = "0",
    rolled_over: bool = False,
) -> BudgetMonth:
    """
    Builder for test months

    Without explicit categories the month holds only the two system
    categories.
    """
    year, month = (int(part) for part in month_id.split("-"))
    return BudgetMonth(
        id=month_id,
        year=year,
        month=month,
        incomes=list(incomes),
        categories=list(categories) if categories is not None else system_categories(),
        starting_credit_card_debt=Decimal(str(starting_debt)),
        is_rolled_over=rolled_over,
    )


def category_named(month: BudgetMonth, name: str) -> BudgetCategory:
    """The single category called name (fails the test otherwise)"""
    matches = [cat for cat in month.categories if cat.name == name]
    assert len(matches) == 1, f"expected one {name!r}, found {len(matches)}"
    return matches[0]


def assert_system_invariant(month: BudgetMonth) -> None:
    """Exactly one well-formed Savings and Credit Card Payments"""
    for canonical in (SAVINGS, CREDIT_CARD_PAYMENTS):
        matches = [cat for cat in month.categories if cat.name.casefold() == canonical.casefold()]
        assert len(matches) == 1
        assert matches[0].name == canonical
        assert matches[0].is_system_category
        assert matches[0].subcategories == []


# =============================================================================
# Collaborator doubles
# =============================================================================


class RecordingRepository(InMemoryMonthRepository):
    """In-memory repository that remembers which months were written"""

    def __init__(self) -> None:
        super().__init__()
        self.saved_ids: list[str] = []

    def save_month(self, user_id: str, month_id: str, month: BudgetMonth) -> None:
        super().save_month(user_id, month_id, month)
        self.saved_ids.append(month_id)


class FlakyRepository(RecordingRepository):
    """Fails the first `failures` writes, then behaves"""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.attempts = 0

    def save_month(self, user_id: str, month_id: str, month: BudgetMonth) -> None:
        self.attempts += 1
        if self.attempts <= self.failures:
            raise PersistenceError(user_id, month_id, "disk unavailable")
        super().save_month(user_id, month_id, month)


class StubSuggestionProvider:
    """Suggestion provider returning canned answers and recording calls"""

    def __init__(
        self,
        expense: ExpenseSuggestion | None = None,
        plan: BudgetPlanSuggestion | None = None,
    ) -> None:
        self.expense = expense or ExpenseSuggestion()
        self.plan = plan or BudgetPlanSuggestion()
        self.seen_options: list[CategoryOption] = []
        self.seen_requests: list[PlanningRequest] = []

    def categorize_expense(
        self, image_data_uri: str, options: Sequence[CategoryOption]
    ) -> ExpenseSuggestion:
        self.seen_options = list(options)
        return self.expense

    def prepare_budget(self, request: PlanningRequest) -> BudgetPlanSuggestion:
        self.seen_requests.append(request)
        return self.plan
