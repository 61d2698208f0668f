"""
Budget Aggregation Rules - Read-side math over a month

Pure functions used by presentation code and by the mutation operations
that need a figure (carryover, rollover). Nothing here changes state.

System categories use goal semantics instead of spending semantics:
Savings and Credit Card Payments are "met" when enough was put in, and
are never reported as overspent.
"""

from decimal import Decimal

from budget_flow.budget.models import (
    CREDIT_CARD_PAYMENTS,
    SAVINGS,
    ZERO,
    BudgetCategory,
    BudgetMonth,
    CategoryOption,
    MonthEndSummary,
    PlanningContext,
    SubCategory,
)


def get_system_category(month: BudgetMonth, canonical: str) -> BudgetCategory | None:
    """Find a system category by canonical name (never by position)"""
    folded = canonical.casefold()
    for category in month.categories:
        if category.is_system_category and category.name.casefold() == folded:
            return category
    return None


# ========== Per-category rules ==========


def spent(item: BudgetCategory | SubCategory) -> Decimal:
    """
    Total recorded spend

    For a category this includes its subcategories' expenses.
    """
    total = sum((exp.amount for exp in item.expenses), ZERO)
    if isinstance(item, BudgetCategory):
        total += sum((spent(sub) for sub in item.subcategories), ZERO)
    return total


def effective_budget(category: BudgetCategory) -> Decimal:
    """Budget of a category, as the subcategory sum when it has subcategories"""
    if category.subcategories and not category.is_system_category:
        return sum((sub.budgeted_amount for sub in category.subcategories), ZERO)
    return category.budgeted_amount


def remaining(item: BudgetCategory | SubCategory) -> Decimal:
    """Budget left (negative when overspent)"""
    if isinstance(item, BudgetCategory):
        return effective_budget(item) - spent(item)
    return item.budgeted_amount - spent(item)


def is_overspent(item: BudgetCategory | SubCategory) -> bool:
    """True when spend exceeds budget; always False for system categories"""
    if isinstance(item, BudgetCategory) and item.is_system_category:
        return False
    return remaining(item) < 0


def goal_met(category: BudgetCategory) -> bool:
    """
    Progress-toward-goal check for system categories

    Met when a positive goal exists and contributions reached it.
    """
    return category.budgeted_amount > 0 and spent(category) >= category.budgeted_amount


def unspent(item: BudgetCategory | SubCategory) -> Decimal:
    """Positive part of remaining budget for one non-system line"""
    return max(ZERO, remaining(item))


# ========== Month totals ==========


def total_income(month: BudgetMonth) -> Decimal:
    """Sum of income entries"""
    return sum((income.amount for income in month.incomes), ZERO)


def total_budgeted(month: BudgetMonth) -> Decimal:
    """Sum of effective budgets over every category, system ones included"""
    return sum((effective_budget(cat) for cat in month.categories), ZERO)


def unallocated(month: BudgetMonth) -> Decimal:
    """Income not yet given a job (negative when over-allocated)"""
    return total_income(month) - total_budgeted(month)


def operational_budget(month: BudgetMonth) -> Decimal:
    """Budget of non-system categories"""
    return sum(
        (effective_budget(cat) for cat in month.categories if not cat.is_system_category),
        ZERO,
    )


def operational_spending(month: BudgetMonth) -> Decimal:
    """Spend in non-system categories"""
    return sum(
        (spent(cat) for cat in month.categories if not cat.is_system_category),
        ZERO,
    )


def debt_at_end_of_month(month: BudgetMonth) -> Decimal:
    """max(0, starting debt - credit card payments made this month)"""
    payments_category = get_system_category(month, CREDIT_CARD_PAYMENTS)
    payments = spent(payments_category) if payments_category else ZERO
    return max(ZERO, month.starting_credit_card_debt - payments)


def unspent_total(month: BudgetMonth) -> Decimal:
    """
    Sum of positive (budget - spent) over non-system lines

    Lines are subcategories when a category has them, else the category.
    Overspending in one line does not offset savings in another.
    """
    total = ZERO
    for category in month.categories:
        if category.is_system_category:
            continue
        if category.subcategories:
            total += sum((unspent(sub) for sub in category.subcategories), ZERO)
        else:
            total += unspent(category)
    return total


# ========== Read models ==========


def month_end_summary(month: BudgetMonth) -> MonthEndSummary:
    """
    Close-of-month figures

    net_cash_flow = income - actual savings - actual card payments
                    - operational spending
    """
    savings = get_system_category(month, SAVINGS)
    payments = get_system_category(month, CREDIT_CARD_PAYMENTS)

    income = total_income(month)
    actual_savings = spent(savings) if savings else ZERO
    actual_payments = spent(payments) if payments else ZERO
    spending = operational_spending(month)

    return MonthEndSummary(
        month_id=month.id,
        total_income=income,
        planned_savings=savings.budgeted_amount if savings else ZERO,
        actual_savings=actual_savings,
        planned_credit_card_payments=payments.budgeted_amount if payments else ZERO,
        actual_credit_card_payments=actual_payments,
        operational_budget=operational_budget(month),
        operational_spending=spending,
        net_cash_flow=income - actual_savings - actual_payments - spending,
        starting_credit_card_debt=month.starting_credit_card_debt,
        ending_credit_card_debt=debt_at_end_of_month(month),
        unspent_total=unspent_total(month),
        feedback=month.month_end_feedback,
    )


def planning_context(month: BudgetMonth) -> PlanningContext:
    """Source-month figures for the next-month planning assistant"""
    savings = get_system_category(month, SAVINGS)
    return PlanningContext(
        month_id=month.id,
        current_income=total_income(month),
        current_savings_total=spent(savings) if savings else ZERO,
        current_credit_card_debt=debt_at_end_of_month(month),
        previous_month_feedback=month.month_end_feedback,
    )


def category_options(month: BudgetMonth) -> list[CategoryOption]:
    """
    Every valid expense target in the month

    Categories with subcategories are represented by their subcategories
    only, named "Parent > Child".
    """
    options: list[CategoryOption] = []
    for category in month.categories:
        if category.subcategories and not category.is_system_category:
            options.extend(
                CategoryOption(
                    id=sub.id,
                    name=f"{category.name} > {sub.name}",
                    is_subcategory=True,
                )
                for sub in category.subcategories
            )
        else:
            options.append(CategoryOption(id=category.id, name=category.name))
    return options
