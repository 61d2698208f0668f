"""
Month Factory - Building new months and the entities inside them

A new month inherits two figures from its predecessor, when one exists:

- Starting credit card debt: what was left after last month's payments
- Savings budget: last month's *planned* savings, not what was actually
  saved, so the saving intent continues from month to month

Everything else starts fresh from the category template with zero budgets.
"""

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from decimal import Decimal

from budget_flow.budget.aggregation import debt_at_end_of_month, get_system_category
from budget_flow.budget.invariants import parse_month_id
from budget_flow.budget.models import (
    SAVINGS,
    ZERO,
    BudgetCategory,
    BudgetMonth,
    Expense,
    IncomeEntry,
    SubCategory,
)
from budget_flow.budget.normalizer import normalize_system_categories
from budget_flow.kernel.ids import IdFactory, default_id_factory
from budget_flow.kernel.policy import DEFAULT_CATEGORY_TEMPLATE


# ========== Month id arithmetic ==========


def format_month_id(year: int, month: int) -> str:
    """Format (year, month) as a zero-padded "YYYY-MM" id"""
    return f"{year:04d}-{month:02d}"


def previous_month_id(month_id: str) -> str:
    """Calendar month before month_id, rolling the year back at January"""
    year, month = parse_month_id(month_id)
    if month == 1:
        return format_month_id(year - 1, 12)
    return format_month_id(year, month - 1)


def next_month_id(month_id: str) -> str:
    """Calendar month after month_id, rolling the year forward at December"""
    year, month = parse_month_id(month_id)
    if month == 12:
        return format_month_id(year + 1, 1)
    return format_month_id(year, month + 1)


# ========== Carryover ==========


def carryover_debt(previous: BudgetMonth | None) -> Decimal:
    """
    Debt the next month starts with

    max(0, previous starting debt - previous credit card payments)
    """
    if previous is None:
        return ZERO
    return debt_at_end_of_month(previous)


def carryover_savings_budget(previous: BudgetMonth | None) -> Decimal:
    """Planned Savings budget of the previous month, or zero"""
    if previous is None:
        return ZERO
    savings = get_system_category(previous, SAVINGS)
    return savings.budgeted_amount if savings else ZERO


# ========== Entity constructors ==========


def new_expense(
    description: str,
    amount: Decimal,
    date_added: datetime,
    id_factory: IdFactory = default_id_factory,
) -> Expense:
    """Create an expense with a fresh id (inputs already validated)"""
    return Expense(
        id=id_factory.generate(),
        description=description,
        amount=amount,
        date_added=date_added,
    )


def new_income(
    description: str,
    amount: Decimal,
    date_added: datetime,
    id_factory: IdFactory = default_id_factory,
) -> IncomeEntry:
    """Create an income entry with a fresh id (inputs already validated)"""
    return IncomeEntry(
        id=id_factory.generate(),
        description=description,
        amount=amount,
        date_added=date_added,
    )


def new_category(
    name: str,
    budgeted_amount: Decimal = ZERO,
    subcategories: Sequence[SubCategory] = (),
    id_factory: IdFactory = default_id_factory,
) -> BudgetCategory:
    """Create a non-system category with no expenses"""
    return BudgetCategory(
        id=id_factory.generate(),
        name=name,
        budgeted_amount=budgeted_amount,
        expenses=[],
        subcategories=list(subcategories),
        is_system_category=False,
    )


def new_subcategory(
    name: str,
    budgeted_amount: Decimal = ZERO,
    id_factory: IdFactory = default_id_factory,
) -> SubCategory:
    """Create a subcategory with no expenses"""
    return SubCategory(
        id=id_factory.generate(),
        name=name,
        budgeted_amount=budgeted_amount,
        expenses=[],
    )


def template_categories(
    names: Iterable[str],
    id_factory: IdFactory = default_id_factory,
) -> list[BudgetCategory]:
    """Zero-budget categories from a name template"""
    return [new_category(name, id_factory=id_factory) for name in names]


def with_savings_budget(
    categories: Sequence[BudgetCategory], savings_budget: Decimal
) -> list[BudgetCategory]:
    """Set the budget of the system Savings category, wherever the template put it"""
    return [
        cat.model_copy(update={"budgeted_amount": savings_budget})
        if cat.is_system_category and cat.name == SAVINGS
        else cat
        for cat in categories
    ]


# ========== Month Factory ==========


def create_month(
    month_id: str,
    prior_months: Mapping[str, BudgetMonth],
    *,
    template: Iterable[str] = DEFAULT_CATEGORY_TEMPLATE,
    id_factory: IdFactory = default_id_factory,
) -> BudgetMonth:
    """
    Build a brand-new month, carrying debt and savings intent forward

    Steps:
    1. Parse month_id and find the calendar predecessor
    2. Carry over max(0, debt - payments) and the planned Savings budget
    3. Lay out the template categories with zero budgets
    4. Normalize, guaranteeing both system categories
    5. Give the Savings category the carried-over budget

    Args:
        month_id: "YYYY-MM" id of the month to build
        prior_months: Existing months keyed by id (only the predecessor is read)
        template: Category names for the starter layout
        id_factory: Source of entity ids

    Returns:
        New, open BudgetMonth with no incomes

    Raises:
        InvalidMonthId: If month_id is malformed
    """
    year, month = parse_month_id(month_id)
    previous = prior_months.get(previous_month_id(month_id))

    categories = template_categories(template, id_factory=id_factory)
    normalized, _ = normalize_system_categories(categories, id_factory.generate)
    normalized = with_savings_budget(normalized, carryover_savings_budget(previous))

    return BudgetMonth(
        id=month_id,
        year=year,
        month=month,
        incomes=[],
        categories=normalized,
        starting_credit_card_debt=carryover_debt(previous),
        is_rolled_over=False,
    )
