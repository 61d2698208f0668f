"""
Assistant Suggestions - Contract with the AI suggestion collaborator

The core never talks to a model itself. A SuggestionProvider is injected
into BudgetFlow; this module defines what it receives and returns, and how
its loosely-filled output is mapped into the entity model.

Every output field is optional. The mapping tolerates partial answers:
absent or negative amounts become 0, blank names are skipped, and a
suggested category id that matches no expense target is ignored.
"""

from collections.abc import Iterable, Sequence
from decimal import Decimal
from typing import Protocol

from pydantic import BaseModel, Field

from budget_flow.budget.factory import new_category, new_subcategory
from budget_flow.budget.invariants import is_reserved_name
from budget_flow.budget.models import (
    SYSTEM_CATEGORY_NAMES,
    ZERO,
    BudgetCategory,
    CategoryOption,
    MonthEndFeedback,
)
from budget_flow.budget.transforms import with_derived_budget
from budget_flow.kernel.ids import IdFactory, default_id_factory

# ========== Provider output ==========


class ExpenseSuggestion(BaseModel):
    """Receipt categorisation result"""

    suggested_category_id: str | None = None
    suggested_amount: Decimal | None = None
    suggested_description: str | None = None
    ai_error: str | None = None


class SuggestedSubCategory(BaseModel):
    name: str
    budgeted_amount: Decimal | None = None


class SuggestedCategory(BaseModel):
    """
    One category of a suggested budget

    budgeted_amount is ignored when subcategories are given; the parent
    budget is always their sum.
    """

    name: str
    budgeted_amount: Decimal | None = None
    subcategories: list[SuggestedSubCategory] | None = None


class BudgetPlanSuggestion(BaseModel):
    """Next-month budget proposal with advice text"""

    income_basis_for_budget: Decimal | None = None
    suggested_categories: list[SuggestedCategory] | None = None
    financial_advice: str = ""
    ai_error: str | None = None


# ========== Provider input ==========


class PlanningRequest(BaseModel):
    """Everything the planning assistant is told about the source month"""

    user_goals: str
    current_month_id: str
    current_income: Decimal
    current_savings_total: Decimal
    current_credit_card_debt: Decimal
    previous_month_feedback: MonthEndFeedback | None = None
    statement_data_uris: list[str] = Field(default_factory=list)


class SuggestionProvider(Protocol):
    """
    AI suggestion collaborator

    Implementations may raise; BudgetFlow lets the exception propagate and
    leaves the store untouched. Soft failures come back as ai_error.
    """

    def categorize_expense(
        self, image_data_uri: str, options: Sequence[CategoryOption]
    ) -> ExpenseSuggestion:
        ...

    def prepare_budget(self, request: PlanningRequest) -> BudgetPlanSuggestion:
        ...


# ========== Mapping into the entity model ==========


def suggested_amount(value: Decimal | None) -> Decimal:
    """Absent, negative or non-finite amounts count as zero"""
    if value is None or not value.is_finite() or value < 0:
        return ZERO
    return value


def to_categories(
    suggested: Iterable[SuggestedCategory] | None,
    id_factory: IdFactory = default_id_factory,
) -> tuple[list[BudgetCategory], dict[str, Decimal]]:
    """
    Map suggested categories into fresh non-system categories

    Suggestions named like a system category are not created; their
    amounts are returned separately, keyed by canonical name, for the
    caller to apply to the existing system categories.

    Returns:
        (new non-system categories, system budgets by canonical name)
    """
    categories: list[BudgetCategory] = []
    system_budgets: dict[str, Decimal] = {}

    for suggestion in suggested or []:
        name = (suggestion.name or "").strip()
        if not name:
            continue

        if is_reserved_name(name):
            canonical = next(
                reserved for reserved in SYSTEM_CATEGORY_NAMES
                if reserved.casefold() == name.casefold()
            )
            system_budgets[canonical] = suggested_amount(suggestion.budgeted_amount)
            continue

        subcategories = [
            new_subcategory(
                sub.name.strip(),
                suggested_amount(sub.budgeted_amount),
                id_factory=id_factory,
            )
            for sub in suggestion.subcategories or []
            if (sub.name or "").strip()
        ]
        category = new_category(
            name,
            suggested_amount(suggestion.budgeted_amount),
            subcategories,
            id_factory=id_factory,
        )
        categories.append(with_derived_budget(category))

    return categories, system_budgets


def matched_option(
    suggestion: ExpenseSuggestion, options: Sequence[CategoryOption]
) -> CategoryOption | None:
    """The option the suggestion points at, if it points at a real one"""
    if not suggestion.suggested_category_id:
        return None
    for option in options:
        if option.id == suggestion.suggested_category_id:
            return option
    return None
