"""
Budget Module Invariants - Boundary validation

These pure functions reject bad input before any operation touches the
month store. They either return normally (or return the looked-up entity)
or raise a BudgetFlowError subclass with a descriptive message.
"""

import re
from decimal import Decimal, InvalidOperation

from budget_flow.budget.models import (
    SYSTEM_CATEGORY_NAMES,
    BudgetCategory,
    BudgetMonth,
    SubCategory,
)
from budget_flow.kernel.errors import (
    CategoryNotFound,
    EmptyName,
    InvalidExpenseTarget,
    InvalidMonthId,
    NegativeAmount,
    NonPositiveAmount,
    ReservedCategoryName,
    SubCategoryNotFound,
)

MONTH_ID_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


def parse_month_id(month_id: str) -> tuple[int, int]:
    """
    Split a "YYYY-MM" id into (year, month)

    Raises:
        InvalidMonthId: If the id is not zero-padded YYYY-MM with month 01-12
    """
    match = MONTH_ID_PATTERN.match(month_id or "")
    if match is None:
        raise InvalidMonthId(month_id)

    year, month = int(match.group(1)), int(match.group(2))
    if year < 1 or not 1 <= month <= 12:
        raise InvalidMonthId(month_id)
    return year, month


def _as_decimal(field: str, value: Decimal | int | str) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise NonPositiveAmount(field, str(value)) from None
    if not amount.is_finite():
        raise NonPositiveAmount(field, str(value))
    return amount


def validate_positive_amount(field: str, value: Decimal | int | str) -> Decimal:
    """
    Expense and income amounts must be strictly positive

    Returns:
        The amount as a Decimal

    Raises:
        NonPositiveAmount: If the amount is zero, negative or not a number
    """
    amount = _as_decimal(field, value)
    if amount <= 0:
        raise NonPositiveAmount(field, str(amount))
    return amount


def validate_budget_amount(field: str, value: Decimal | int | str) -> Decimal:
    """
    Budgeted amounts and debt figures may be zero but never negative

    Raises:
        NegativeAmount: If the amount is below zero or not a number
    """
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise NegativeAmount(field, str(value)) from None
    if not amount.is_finite() or amount < 0:
        raise NegativeAmount(field, str(value))
    return amount


def validate_name(field: str, value: str | None) -> str:
    """
    Names and descriptions must contain something other than whitespace

    Returns:
        The stripped value
    """
    stripped = (value or "").strip()
    if not stripped:
        raise EmptyName(field)
    return stripped


def is_reserved_name(name: str) -> bool:
    """True if name matches a system category name, ignoring case"""
    folded = name.strip().casefold()
    return any(folded == reserved.casefold() for reserved in SYSTEM_CATEGORY_NAMES)


def validate_not_reserved_name(name: str) -> None:
    """
    User categories cannot shadow "Savings" or "Credit Card Payments"

    Raises:
        ReservedCategoryName: If name matches a system category
    """
    if is_reserved_name(name):
        raise ReservedCategoryName(name)


def find_category(month: BudgetMonth, category_id: str) -> BudgetCategory:
    """
    Look up a category by id

    Raises:
        CategoryNotFound: If no category has this id
    """
    category = month.get_category(category_id)
    if category is None:
        raise CategoryNotFound(month.id, category_id)
    return category


def find_subcategory(
    month: BudgetMonth, subcategory_id: str
) -> tuple[BudgetCategory, SubCategory]:
    """
    Look up a subcategory by id across all categories

    Returns:
        (parent category, subcategory)

    Raises:
        SubCategoryNotFound: If no subcategory has this id
    """
    for category in month.categories:
        sub = category.get_subcategory(subcategory_id)
        if sub is not None:
            return category, sub
    raise SubCategoryNotFound(month.id, subcategory_id)


def validate_expense_target(
    month: BudgetMonth, target_id: str, is_subcategory: bool
) -> None:
    """
    Verify an expense can be attached to target_id

    A category that has subcategories takes expenses only through them,
    otherwise its spend would be counted twice.

    Raises:
        CategoryNotFound / SubCategoryNotFound: If the target does not exist
        InvalidExpenseTarget: If a category target has subcategories
    """
    if is_subcategory:
        find_subcategory(month, target_id)
        return

    category = find_category(month, target_id)
    if category.subcategories and not category.is_system_category:
        raise InvalidExpenseTarget(category.id, category.name)
