"""
Month Transforms - Pure month -> month functions behind every mutation

Each function takes a BudgetMonth snapshot and returns a new one. Nothing
here reads the store, persists, or checks whether the month is closed;
BudgetFlow does that before calling in.

Unknown ids on delete are treated as "already gone" and return the month
unchanged (the same object), so callers can detect a no-op with `is`.
"""

from collections.abc import Callable, Mapping, Sequence
from decimal import Decimal

from budget_flow.budget.factory import (
    carryover_debt,
    carryover_savings_budget,
    previous_month_id,
)
from budget_flow.budget.invariants import (
    parse_month_id,
    validate_budget_amount,
    validate_name,
)
from budget_flow.budget.models import (
    SAVINGS,
    ZERO,
    BudgetCategory,
    BudgetMonth,
    CategoryPayload,
    Expense,
    IncomeEntry,
    MonthEndFeedback,
    SubCategory,
    SubCategoryPayload,
)
from budget_flow.budget.normalizer import normalize_system_categories
from budget_flow.kernel.ids import IdFactory, default_id_factory


# ========== Helpers ==========


def with_derived_budget(category: BudgetCategory) -> BudgetCategory:
    """
    Recompute a non-system parent's budget from its subcategories

    Categories without subcategories keep their own budget, so deleting the
    last subcategory leaves the parent's last derived figure in place.
    """
    if category.is_system_category or not category.subcategories:
        return category
    total = sum((sub.budgeted_amount for sub in category.subcategories), ZERO)
    if total == category.budgeted_amount:
        return category
    return category.model_copy(update={"budgeted_amount": total})


def _map_category(
    month: BudgetMonth,
    category_id: str,
    change: Callable[[BudgetCategory], BudgetCategory],
) -> BudgetMonth:
    """Apply change to one category; unchanged month if id is unknown"""
    categories = []
    touched = False
    for category in month.categories:
        if category.id == category_id:
            updated = change(category)
            touched = touched or updated is not category
            categories.append(updated)
        else:
            categories.append(category)
    if not touched:
        return month
    return month.model_copy(update={"categories": categories})


def _map_subcategory(
    month: BudgetMonth,
    subcategory_id: str,
    change: Callable[[SubCategory], SubCategory],
) -> BudgetMonth:
    """Apply change to one subcategory wherever it lives, re-deriving its parent"""

    def update_parent(parent: BudgetCategory) -> BudgetCategory:
        subs = [change(sub) if sub.id == subcategory_id else sub for sub in parent.subcategories]
        if all(new is old for new, old in zip(subs, parent.subcategories)):
            return parent
        return with_derived_budget(parent.model_copy(update={"subcategories": subs}))

    for parent in month.categories:
        if parent.get_subcategory(subcategory_id) is not None:
            return _map_category(month, parent.id, update_parent)
    return month


# ========== Expenses and income ==========


def add_expense(
    month: BudgetMonth, target_id: str, expense: Expense, is_subcategory: bool = False
) -> BudgetMonth:
    """Append an expense to the target category or subcategory"""
    if is_subcategory:
        return _map_subcategory(
            month,
            target_id,
            lambda sub: sub.model_copy(update={"expenses": [*sub.expenses, expense]}),
        )
    return _map_category(
        month,
        target_id,
        lambda cat: cat.model_copy(update={"expenses": [*cat.expenses, expense]}),
    )


def _without_expense(expenses: list[Expense], expense_id: str) -> list[Expense] | None:
    """Expenses minus expense_id, or None if it was not there"""
    kept = [exp for exp in expenses if exp.id != expense_id]
    return kept if len(kept) != len(expenses) else None


def delete_expense(
    month: BudgetMonth, target_id: str, expense_id: str, is_subcategory: bool = False
) -> BudgetMonth:
    """Remove an expense by id from the target; no-op if anything is unknown"""

    def drop(item):
        kept = _without_expense(item.expenses, expense_id)
        return item if kept is None else item.model_copy(update={"expenses": kept})

    if is_subcategory:
        return _map_subcategory(month, target_id, drop)
    return _map_category(month, target_id, drop)


def add_income(month: BudgetMonth, income: IncomeEntry) -> BudgetMonth:
    return month.model_copy(update={"incomes": [*month.incomes, income]})


def delete_income(month: BudgetMonth, income_id: str) -> BudgetMonth:
    incomes = [income for income in month.incomes if income.id != income_id]
    if len(incomes) == len(month.incomes):
        return month
    return month.model_copy(update={"incomes": incomes})


# ========== Categories ==========


def add_category(month: BudgetMonth, category: BudgetCategory) -> BudgetMonth:
    return month.model_copy(update={"categories": [*month.categories, category]})


def update_category(
    month: BudgetMonth,
    category_id: str,
    *,
    name: str | None = None,
    budgeted_amount: Decimal | None = None,
) -> BudgetMonth:
    """
    Edit a category's name and/or budget

    - System categories: only the budget changes; a new name is ignored
    - Non-system categories: the name always changes; the budget only when
      there are no subcategories (otherwise it is derived)
    """

    def change(category: BudgetCategory) -> BudgetCategory:
        update: dict = {}
        if name is not None and not category.is_system_category and name != category.name:
            update["name"] = name
        budget_editable = category.is_system_category or not category.subcategories
        if (
            budgeted_amount is not None
            and budget_editable
            and budgeted_amount != category.budgeted_amount
        ):
            update["budgeted_amount"] = budgeted_amount
        return category.model_copy(update=update) if update else category

    return _map_category(month, category_id, change)


def delete_category(month: BudgetMonth, category_id: str) -> BudgetMonth:
    """Remove a non-system category; system categories are undeletable"""
    target = month.get_category(category_id)
    if target is None or target.is_system_category:
        return month
    categories = [cat for cat in month.categories if cat.id != category_id]
    return month.model_copy(update={"categories": categories})


# ========== Subcategories ==========


def add_subcategory(
    month: BudgetMonth, parent_id: str, subcategory: SubCategory
) -> BudgetMonth:
    """Attach a subcategory to a non-system parent and re-derive its budget"""

    def change(parent: BudgetCategory) -> BudgetCategory:
        if parent.is_system_category:
            return parent
        updated = parent.model_copy(
            update={"subcategories": [*parent.subcategories, subcategory]}
        )
        return with_derived_budget(updated)

    return _map_category(month, parent_id, change)


def update_subcategory(
    month: BudgetMonth,
    parent_id: str,
    subcategory_id: str,
    *,
    name: str | None = None,
    budgeted_amount: Decimal | None = None,
) -> BudgetMonth:
    """Edit a subcategory's name and/or budget and re-derive the parent"""
    parent = month.get_category(parent_id)
    if parent is None or parent.is_system_category:
        return month
    if parent.get_subcategory(subcategory_id) is None:
        return month

    def change(sub: SubCategory) -> SubCategory:
        update: dict = {}
        if name is not None and name != sub.name:
            update["name"] = name
        if budgeted_amount is not None and budgeted_amount != sub.budgeted_amount:
            update["budgeted_amount"] = budgeted_amount
        return sub.model_copy(update=update) if update else sub

    return _map_subcategory(month, subcategory_id, change)


def delete_subcategory(
    month: BudgetMonth, parent_id: str, subcategory_id: str
) -> BudgetMonth:
    """
    Remove a subcategory and re-derive the parent

    The subcategory's expenses go with it.
    """

    def change(parent: BudgetCategory) -> BudgetCategory:
        if parent.is_system_category or parent.get_subcategory(subcategory_id) is None:
            return parent
        subs = [sub for sub in parent.subcategories if sub.id != subcategory_id]
        return with_derived_budget(parent.model_copy(update={"subcategories": subs}))

    return _map_category(month, parent_id, change)


# ========== Bulk update ==========


def _merge_subcategory(
    payload: SubCategoryPayload,
    existing: SubCategory | None,
    id_factory: IdFactory,
) -> SubCategory:
    name = validate_name("subcategory name", payload.name)
    if payload.budgeted_amount is not None:
        budget = validate_budget_amount("budgeted_amount", payload.budgeted_amount)
    else:
        budget = existing.budgeted_amount if existing else ZERO

    return SubCategory(
        id=existing.id if existing else (payload.id or id_factory.generate()),
        name=name,
        budgeted_amount=budget,
        expenses=list(existing.expenses) if existing else [],
    )


def _merge_category(
    payload: CategoryPayload,
    existing: BudgetCategory | None,
    id_factory: IdFactory,
) -> BudgetCategory:
    system = bool(existing and existing.is_system_category)
    # System categories keep their canonical name and take no subcategories
    name = existing.name if system else validate_name("category name", payload.name)
    if payload.budgeted_amount is not None:
        budget = validate_budget_amount("budgeted_amount", payload.budgeted_amount)
    else:
        budget = existing.budgeted_amount if existing else ZERO

    subcategories = [] if system else [
        _merge_subcategory(
            sub,
            existing.get_subcategory(sub.id) if existing and sub.id else None,
            id_factory,
        )
        for sub in payload.subcategories
    ]

    merged = BudgetCategory(
        id=existing.id if existing else (payload.id or id_factory.generate()),
        name=name,
        budgeted_amount=budget,
        expenses=list(existing.expenses) if existing else [],
        subcategories=subcategories,
        is_system_category=payload.is_system_category or system,
    )
    return with_derived_budget(merged)


def merge_categories(
    existing: Sequence[BudgetCategory],
    payload: Sequence[CategoryPayload],
    id_factory: IdFactory = default_id_factory,
) -> list[BudgetCategory]:
    """
    Merge a submitted category list against the stored one

    Payloads never carry expenses: a category or subcategory whose id
    matches a stored one keeps the stored expenses, and a missing budget
    keeps the stored budget. Stored system categories the payload left out
    are kept, so a bulk edit cannot drop them.

    Raises:
        EmptyName: If a submitted name is blank
        NegativeAmount: If a submitted budget is negative
    """
    by_id = {cat.id: cat for cat in existing}
    merged = [
        _merge_category(item, by_id.get(item.id) if item.id else None, id_factory)
        for item in payload
    ]

    submitted_ids = {cat.id for cat in merged}
    submitted_names = {cat.name.strip().casefold() for cat in merged}
    for cat in existing:
        if (
            cat.is_system_category
            and cat.id not in submitted_ids
            and cat.name.casefold() not in submitted_names
        ):
            merged.append(cat)
    return merged


def update_month_budget(
    month: BudgetMonth,
    *,
    starting_credit_card_debt: Decimal | None = None,
    categories: list[BudgetCategory] | None = None,
) -> BudgetMonth:
    """Replace starting debt and/or the whole (already merged) category list"""
    update: dict = {}
    if starting_credit_card_debt is not None:
        update["starting_credit_card_debt"] = starting_credit_card_debt
    if categories is not None:
        update["categories"] = categories
    return month.model_copy(update=update) if update else month


# ========== Month-level transitions ==========


def copy_category_layout(
    categories: Sequence[BudgetCategory],
    id_factory: IdFactory = default_id_factory,
) -> list[BudgetCategory]:
    """Names, budgets and subcategory layout with fresh ids and no expenses"""
    return [
        BudgetCategory(
            id=id_factory.generate(),
            name=cat.name,
            budgeted_amount=cat.budgeted_amount,
            expenses=[],
            subcategories=[
                SubCategory(
                    id=id_factory.generate(),
                    name=sub.name,
                    budgeted_amount=sub.budgeted_amount,
                    expenses=[],
                )
                for sub in cat.subcategories
            ],
            is_system_category=cat.is_system_category,
        )
        for cat in categories
    ]


def duplicate_month(
    source: BudgetMonth,
    target_id: str,
    prior_months: Mapping[str, BudgetMonth],
    id_factory: IdFactory = default_id_factory,
) -> BudgetMonth:
    """
    Build target_id from source's category layout

    Expenses and incomes start empty. Debt and the Savings budget carry over
    as the month factory would, taking them from the calendar predecessor
    of target_id when it exists and from source otherwise.

    Raises:
        InvalidMonthId: If target_id is malformed
    """
    year, month_number = parse_month_id(target_id)
    carry_from = prior_months.get(previous_month_id(target_id)) or source

    savings_budget = carryover_savings_budget(carry_from)
    categories = [
        cat.model_copy(update={"budgeted_amount": savings_budget})
        if cat.is_system_category and cat.name == SAVINGS
        else cat
        for cat in copy_category_layout(source.categories, id_factory)
    ]
    categories, _ = normalize_system_categories(categories, id_factory.generate)

    return BudgetMonth(
        id=target_id,
        year=year,
        month=month_number,
        incomes=[],
        categories=categories,
        starting_credit_card_debt=carryover_debt(carry_from),
        is_rolled_over=False,
    )


def close_month(month: BudgetMonth) -> BudgetMonth:
    """Mark the month rolled over (terminal)"""
    return month.model_copy(update={"is_rolled_over": True})


def record_feedback(month: BudgetMonth, feedback: MonthEndFeedback) -> BudgetMonth:
    if month.month_end_feedback == feedback:
        return month
    return month.model_copy(update={"month_end_feedback": feedback})


def apply_budget_plan(
    month: BudgetMonth,
    categories: Sequence[BudgetCategory],
    system_budgets: Mapping[str, Decimal],
    starting_credit_card_debt: Decimal,
    expected_income: IncomeEntry | None = None,
) -> BudgetMonth:
    """
    Replace the non-system categories with a suggested layout

    System categories keep their ids and expenses; their budgets come from
    system_budgets (keyed by canonical name) when present.
    """
    system = [
        cat.model_copy(update={"budgeted_amount": system_budgets[cat.name]})
        if cat.name in system_budgets
        else cat
        for cat in month.categories
        if cat.is_system_category
    ]
    incomes = [*month.incomes, expected_income] if expected_income else list(month.incomes)
    return month.model_copy(
        update={
            "categories": [*categories, *system],
            "starting_credit_card_debt": starting_credit_card_debt,
            "incomes": incomes,
        }
    )
