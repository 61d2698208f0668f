"""
Tests for Month Transforms

Transforms are pure: they never touch their input and return the very
same month object when there is nothing to do.
"""

from decimal import Decimal

from budget_flow.budget import transforms
from budget_flow.budget.models import (
    CREDIT_CARD_PAYMENTS,
    SAVINGS,
    CategoryPayload,
    MonthEndFeedback,
    SubCategoryPayload,
)
from budget_flow.kernel.ids import SequentialIdFactory
from tests.helpers import (
    category_named,
    make_category,
    make_expense,
    make_income,
    make_month,
    make_subcategory,
    system_categories,
)


def groceries_month():
    produce = make_subcategory("Produce", "50", subcategory_id="sub-produce")
    dairy = make_subcategory("Dairy", "30", spent=["12"], subcategory_id="sub-dairy")
    groceries = make_category(
        "Groceries", "80", subcategories=[produce, dairy], category_id="cat-groceries"
    )
    dining = make_category("Dining", "100", spent=["40"], category_id="cat-dining")
    return make_month(categories=[groceries, dining, *system_categories()])


# Expenses and income


def test_add_expense_to_category_and_subcategory() -> None:
    month = groceries_month()
    coffee = make_expense("4.50", "Coffee")
    cheese = make_expense("7", "Cheese")

    after_category = transforms.add_expense(month, "cat-dining", coffee)
    after_sub = transforms.add_expense(after_category, "sub-dairy", cheese, is_subcategory=True)

    assert category_named(after_sub, "Dining").expenses[-1] == coffee
    dairy = category_named(after_sub, "Groceries").get_subcategory("sub-dairy")
    assert dairy.expenses[-1] == cheese
    # Input untouched
    assert len(category_named(month, "Dining").expenses) == 1


def test_delete_expense_unknown_id_returns_same_month() -> None:
    month = groceries_month()

    assert transforms.delete_expense(month, "cat-dining", "nope") is month
    assert transforms.delete_expense(month, "nope", "nope") is month
    assert transforms.delete_expense(month, "sub-dairy", "nope", is_subcategory=True) is month


def test_delete_expense_removes_it() -> None:
    month = groceries_month()
    expense_id = category_named(month, "Dining").expenses[0].id

    after = transforms.delete_expense(month, "cat-dining", expense_id)

    assert category_named(after, "Dining").expenses == []


def test_income_add_and_delete() -> None:
    month = make_month()
    salary = make_income("3000")

    with_income = transforms.add_income(month, salary)
    assert with_income.incomes == [salary]

    assert transforms.delete_income(with_income, "missing") is with_income
    assert transforms.delete_income(with_income, salary.id).incomes == []


# Categories


def test_update_system_category_ignores_rename() -> None:
    month = make_month()
    savings = category_named(month, SAVINGS)

    after = transforms.update_category(
        month, savings.id, name="Rainy day", budgeted_amount=Decimal("250")
    )

    updated = after.get_category(savings.id)
    assert updated.name == SAVINGS
    assert updated.budgeted_amount == Decimal("250")


def test_update_parent_with_subcategories_keeps_derived_budget() -> None:
    month = groceries_month()

    after = transforms.update_category(
        month, "cat-groceries", name="Food", budgeted_amount=Decimal("999")
    )

    food = after.get_category("cat-groceries")
    assert food.name == "Food"
    assert food.budgeted_amount == Decimal("80")


def test_update_category_with_same_values_is_noop() -> None:
    month = groceries_month()

    assert (
        transforms.update_category(month, "cat-dining", name="Dining", budgeted_amount=Decimal("100"))
        is month
    )


def test_delete_system_category_is_noop() -> None:
    month = make_month()
    savings = category_named(month, SAVINGS)

    assert transforms.delete_category(month, savings.id) is month


def test_delete_user_category() -> None:
    month = groceries_month()

    after = transforms.delete_category(month, "cat-dining")

    assert after.get_category("cat-dining") is None


# Subcategories


def test_subcategory_budgets_drive_parent() -> None:
    """Groceries = Produce(50) + Dairy(30); deleting Dairy leaves 50"""
    month = groceries_month()

    after = transforms.delete_subcategory(month, "cat-groceries", "sub-dairy")

    assert after.get_category("cat-groceries").budgeted_amount == Decimal("50")


def test_first_subcategory_replaces_direct_budget() -> None:
    month = groceries_month()
    snacks = make_subcategory("Snacks", "25")

    after = transforms.add_subcategory(month, "cat-dining", snacks)

    assert after.get_category("cat-dining").budgeted_amount == Decimal("25")


def test_deleting_last_subcategory_keeps_parent_budget() -> None:
    only = make_subcategory("Produce", "50", subcategory_id="sub-only")
    parent = make_category("Groceries", "50", subcategories=[only], category_id="cat-g")
    month = make_month(categories=[parent, *system_categories()])

    after = transforms.delete_subcategory(month, "cat-g", "sub-only")

    assert after.get_category("cat-g").subcategories == []
    assert after.get_category("cat-g").budgeted_amount == Decimal("50")


def test_update_subcategory_rederives_parent() -> None:
    month = groceries_month()

    after = transforms.update_subcategory(
        month, "cat-groceries", "sub-produce", budgeted_amount=Decimal("70")
    )

    assert after.get_category("cat-groceries").budgeted_amount == Decimal("100")


def test_subcategory_edits_on_system_parent_are_noops() -> None:
    month = make_month()
    payments = category_named(month, CREDIT_CARD_PAYMENTS)

    assert transforms.add_subcategory(month, payments.id, make_subcategory("Visa")) is month
    assert transforms.delete_subcategory(month, payments.id, "anything") is month


# Bulk update


def test_merge_preserves_expenses_and_system_categories() -> None:
    month = groceries_month()
    ids = SequentialIdFactory("new")

    merged = transforms.merge_categories(
        month.categories,
        [
            CategoryPayload(id="cat-dining", name="Dining out", budgeted_amount=Decimal("120")),
            CategoryPayload(
                id="cat-groceries",
                name="Groceries",
                subcategories=[
                    SubCategoryPayload(id="sub-dairy", name="Dairy", budgeted_amount=Decimal("35")),
                    SubCategoryPayload(name="Bakery", budgeted_amount=Decimal("15")),
                ],
            ),
            CategoryPayload(name="Gifts"),
        ],
        ids,
    )

    by_name = {cat.name: cat for cat in merged}
    assert by_name["Dining out"].id == "cat-dining"
    assert [exp.amount for exp in by_name["Dining out"].expenses] == [Decimal("40")]
    assert by_name["Groceries"].budgeted_amount == Decimal("50")
    dairy = by_name["Groceries"].get_subcategory("sub-dairy")
    assert [exp.amount for exp in dairy.expenses] == [Decimal("12")]
    assert by_name["Groceries"].get_subcategory("sub-produce") is None
    assert by_name["Gifts"].id.startswith("new-")
    assert by_name["Gifts"].budgeted_amount == Decimal("0")
    # Omitted system categories survive
    assert SAVINGS in by_name and CREDIT_CARD_PAYMENTS in by_name


def test_merge_keeps_system_category_name() -> None:
    month = groceries_month()
    savings = category_named(month, SAVINGS)

    merged = transforms.merge_categories(
        month.categories,
        [
            CategoryPayload(
                id=savings.id,
                name="Rainy Day",
                budgeted_amount=Decimal("300"),
                subcategories=[SubCategoryPayload(name="Holiday")],
            )
        ],
        SequentialIdFactory("new"),
    )

    kept = next(cat for cat in merged if cat.id == savings.id)
    assert kept.name == SAVINGS
    assert kept.is_system_category is True
    assert kept.budgeted_amount == Decimal("300")
    assert kept.subcategories == []


def test_update_month_budget_without_changes_is_noop() -> None:
    month = make_month()

    assert transforms.update_month_budget(month) is month


# Month-level


def test_duplicate_resets_expenses_keeps_budgets() -> None:
    """Dining(100, one expense) duplicates as Dining(100, no expenses)"""
    source = groceries_month()

    target = transforms.duplicate_month(source, "2025-07", {"2025-06": source})

    dining = category_named(target, "Dining")
    assert dining.budgeted_amount == Decimal("100")
    assert dining.expenses == []
    assert dining.id != "cat-dining"
    groceries = category_named(target, "Groceries")
    assert [sub.name for sub in groceries.subcategories] == ["Produce", "Dairy"]
    assert all(sub.expenses == [] for sub in groceries.subcategories)
    assert target.incomes == []
    assert target.is_rolled_over is False


def test_duplicate_prefers_existing_predecessor_for_carryover() -> None:
    source = make_month(
        "2025-03",
        categories=system_categories(savings_budget="100"),
        starting_debt="900",
    )
    predecessor = make_month(
        "2025-06",
        categories=system_categories(savings_budget="300", payments_spent=["200"]),
        starting_debt="500",
    )

    target = transforms.duplicate_month(
        source, "2025-07", {"2025-03": source, "2025-06": predecessor}
    )

    assert target.starting_credit_card_debt == Decimal("300")
    assert category_named(target, SAVINGS).budgeted_amount == Decimal("300")


def test_duplicate_falls_back_to_source_for_carryover() -> None:
    source = make_month(
        "2025-03",
        categories=system_categories(savings_budget="100", payments_spent=["400"]),
        starting_debt="900",
    )

    target = transforms.duplicate_month(source, "2025-07", {"2025-03": source})

    assert target.starting_credit_card_debt == Decimal("500")
    assert category_named(target, SAVINGS).budgeted_amount == Decimal("100")


def test_close_and_feedback() -> None:
    month = make_month()

    closed = transforms.close_month(month)
    rated = transforms.record_feedback(closed, MonthEndFeedback.EASY)

    assert closed.is_rolled_over is True
    assert rated.month_end_feedback is MonthEndFeedback.EASY
    assert transforms.record_feedback(rated, MonthEndFeedback.EASY) is rated


def test_apply_budget_plan_replaces_user_categories() -> None:
    month = make_month(
        categories=[
            make_category("Dining", "100", spent=["40"]),
            *system_categories(savings_budget="50", payments_spent=["25"]),
        ]
    )
    new = [make_category("Rent", "1200")]

    after = transforms.apply_budget_plan(
        month, new, {SAVINGS: Decimal("400")}, Decimal("700"), make_income("3000")
    )

    assert [cat.name for cat in after.categories] == ["Rent", SAVINGS, CREDIT_CARD_PAYMENTS]
    assert category_named(after, SAVINGS).budgeted_amount == Decimal("400")
    payments = category_named(after, CREDIT_CARD_PAYMENTS)
    assert [exp.amount for exp in payments.expenses] == [Decimal("25")]
    assert after.starting_credit_card_debt == Decimal("700")
    assert len(after.incomes) == 1
