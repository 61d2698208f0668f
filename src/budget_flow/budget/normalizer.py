"""
System-Category Normalizer

Guarantees that a category list holds exactly one well-formed "Savings"
and one well-formed "Credit Card Payments" category. Runs after every
structural category change and on every month loaded from storage, since
stored data may be stale or hand-edited.

Placement of the system categories is not guaranteed; callers find them by
name and flag, never by position.
"""

from collections.abc import Callable

from budget_flow.budget.models import (
    SYSTEM_CATEGORY_NAMES,
    ZERO,
    BudgetCategory,
    Expense,
)
from budget_flow.kernel.ids import generate_id


def _matches(category: BudgetCategory, canonical: str) -> bool:
    return category.name.strip().casefold() == canonical.casefold()


def _flattened_expenses(category: BudgetCategory) -> list[Expense]:
    """Direct expenses followed by every subcategory's expenses"""
    expenses = list(category.expenses)
    for sub in category.subcategories:
        expenses.extend(sub.expenses)
    return expenses


def _repair(
    first: BudgetCategory, duplicates: list[BudgetCategory], canonical: str
) -> BudgetCategory:
    """
    Force system shape onto the first match, absorbing any duplicates

    Subcategory expenses are kept by moving them onto the category itself.
    """
    expenses = _flattened_expenses(first)
    for duplicate in duplicates:
        expenses.extend(_flattened_expenses(duplicate))

    return first.model_copy(
        update={
            "name": canonical,
            "is_system_category": True,
            "subcategories": [],
            "expenses": expenses,
        }
    )


def normalize_system_categories(
    categories: list[BudgetCategory],
    id_factory: Callable[[], str] = generate_id,
) -> tuple[list[BudgetCategory], bool]:
    """
    Enforce the system-category invariant on a category list

    For each reserved name:
    - a case-insensitive match is forced to the canonical name, flagged as
      system and stripped of subcategories (their expenses move up);
    - further matches are merged into the first one and dropped;
    - if nothing matches, a zero-budget system category is appended.

    Idempotent: a second run on the output returns it unchanged with
    changed=False.

    Args:
        categories: Categories to normalize (not modified)
        id_factory: Source of ids for created system categories

    Returns:
        (normalized categories, whether anything was corrected)
    """
    result = list(categories)
    changed = False

    for canonical in SYSTEM_CATEGORY_NAMES:
        match_positions = [i for i, cat in enumerate(result) if _matches(cat, canonical)]

        if not match_positions:
            result.append(
                BudgetCategory(
                    id=id_factory(),
                    name=canonical,
                    budgeted_amount=ZERO,
                    expenses=[],
                    subcategories=[],
                    is_system_category=True,
                )
            )
            changed = True
            continue

        first_position = match_positions[0]
        first = result[first_position]
        duplicates = [result[i] for i in match_positions[1:]]

        needs_repair = (
            bool(duplicates)
            or first.name != canonical
            or not first.is_system_category
            or bool(first.subcategories)
        )
        if not needs_repair:
            continue

        result[first_position] = _repair(first, duplicates, canonical)
        duplicate_positions = set(match_positions[1:])
        result = [cat for i, cat in enumerate(result) if i not in duplicate_positions]
        changed = True

    # A stray system flag on a user category is cleared
    for i, cat in enumerate(result):
        if cat.is_system_category and not any(
            _matches(cat, canonical) for canonical in SYSTEM_CATEGORY_NAMES
        ):
            result[i] = cat.model_copy(update={"is_system_category": False})
            changed = True

    return result, changed
