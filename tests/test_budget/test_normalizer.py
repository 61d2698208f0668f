"""
Tests for the System-Category Normalizer

The normalizer must turn any category list (including hand-edited data)
into one holding exactly one well-formed Savings and Credit Card Payments,
and must be idempotent.
"""

from decimal import Decimal

import pytest

from budget_flow.budget.models import CREDIT_CARD_PAYMENTS, SAVINGS
from budget_flow.budget.normalizer import normalize_system_categories
from budget_flow.kernel.ids import SequentialIdFactory
from tests.helpers import (
    assert_system_invariant,
    make_category,
    make_month,
    make_subcategory,
    system_categories,
)


def normalize(categories):
    return normalize_system_categories(categories, SequentialIdFactory("sys").generate)


def test_empty_list_gets_both_system_categories() -> None:
    result, changed = normalize([])

    assert changed is True
    assert [cat.name for cat in result] == [SAVINGS, CREDIT_CARD_PAYMENTS]
    assert all(cat.is_system_category for cat in result)
    assert all(cat.budgeted_amount == Decimal("0") for cat in result)


def test_well_formed_list_is_unchanged() -> None:
    categories = [make_category("Dining", "100"), *system_categories("200")]

    result, changed = normalize(categories)

    assert changed is False
    assert result == categories


def test_case_variant_is_repaired_in_place() -> None:
    savings = make_category("  savings ", "300", spent=["50"], category_id="cat-s")
    categories = [make_category("Dining"), savings]

    result, changed = normalize(categories)

    assert changed is True
    repaired = result[1]
    assert repaired.id == "cat-s"
    assert repaired.name == SAVINGS
    assert repaired.is_system_category
    assert repaired.budgeted_amount == Decimal("300")
    assert [exp.amount for exp in repaired.expenses] == [Decimal("50")]


def test_subcategories_on_system_category_are_flattened() -> None:
    payments = make_category(
        CREDIT_CARD_PAYMENTS,
        "500",
        spent=["100"],
        subcategories=[make_subcategory("Visa", "200", spent=["40", "60"])],
        system=True,
    )

    result, changed = normalize([make_category(SAVINGS, system=True), payments])

    assert changed is True
    fixed = result[1]
    assert fixed.subcategories == []
    assert sorted(exp.amount for exp in fixed.expenses) == [Decimal("100"), Decimal("40"), Decimal("60")]


def test_duplicates_are_merged_into_first_match() -> None:
    first = make_category(SAVINGS, "100", spent=["10"], system=True, category_id="keep")
    duplicate = make_category("SAVINGS", "999", spent=["5"], category_id="drop")

    result, changed = normalize([first, make_category("Dining"), duplicate])

    assert changed is True
    savings = [cat for cat in result if cat.name == SAVINGS]
    assert len(savings) == 1
    assert savings[0].id == "keep"
    assert savings[0].budgeted_amount == Decimal("100")
    assert sorted(exp.amount for exp in savings[0].expenses) == [Decimal("5"), Decimal("10")]
    assert all(cat.id != "drop" for cat in result)


def test_stray_system_flag_is_cleared() -> None:
    categories = [make_category("Dining", system=True), *system_categories()]

    result, changed = normalize(categories)

    assert changed is True
    assert result[0].is_system_category is False


@pytest.mark.parametrize(
    "categories",
    [
        [],
        [make_category("savings")],
        [make_category("Credit card payments", subcategories=[make_subcategory("Visa")])],
        [make_category("Savings"), make_category("savings"), make_category("Dining", system=True)],
        [make_category("Groceries", "80", subcategories=[make_subcategory("Produce", "80")])],
    ],
)
def test_normalizer_is_idempotent(categories) -> None:
    once, _ = normalize(categories)
    twice, changed = normalize(once)

    assert twice == once
    assert changed is False
    assert_system_invariant(make_month(categories=once))


def test_input_list_not_modified() -> None:
    categories = [make_category("savings")]
    snapshot = list(categories)

    normalize(categories)

    assert categories == snapshot
