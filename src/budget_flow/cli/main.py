"""
BudgetFlow CLI

Command-line interface over a SQLite month store. Every command opens a
session for one user, applies at most one mutation and writes it before
exiting.

Usage:
    budget-flow init --db budget.db
    budget-flow income add --amount 3200 --description Salary
    budget-flow category add --name Dining
    budget-flow category budget --category Dining --amount 150
    budget-flow subcategory add --parent Groceries --name Produce --amount 50
    budget-flow expense add --category "Groceries > Produce" --amount 12.40 --description Market
    budget-flow debt set --amount 1000
    budget-flow month show
    budget-flow month rollover --month 2025-06
    budget-flow month feedback --month 2025-06 --value just_right
    budget-flow month duplicate --from 2025-06 --to 2025-07
"""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from budget_flow.budget.aggregation import (
    category_options,
    debt_at_end_of_month,
    effective_budget,
    is_overspent,
    remaining,
    spent,
    total_budgeted,
    total_income,
    unallocated,
)
from budget_flow.budget.models import BudgetMonth, CategoryOption, MonthEndFeedback
from budget_flow.flow import BudgetFlow
from budget_flow.kernel.dispatch import ImmediateExecutor
from budget_flow.kernel.errors import BudgetFlowError
from budget_flow.kernel.logging import configure_logging
from budget_flow.kernel.persistence import SQLiteMonthRepository

# Configure logging to stderr (avoids polluting stdout for JSON output)
configure_logging(json_output=False, log_level="WARNING")

app = typer.Typer(
    name="budget-flow",
    help="BudgetFlow - Monthly budgeting with carryover between months",
    add_completion=False,
)

# Sub-apps
month_app = typer.Typer(help="Month lifecycle commands")
income_app = typer.Typer(help="Income commands")
expense_app = typer.Typer(help="Expense commands")
category_app = typer.Typer(help="Category commands")
subcategory_app = typer.Typer(help="Subcategory commands")
debt_app = typer.Typer(help="Credit card debt commands")

app.add_typer(month_app, name="month")
app.add_typer(income_app, name="income")
app.add_typer(expense_app, name="expense")
app.add_typer(category_app, name="category")
app.add_typer(subcategory_app, name="subcategory")
app.add_typer(debt_app, name="debt")

DEFAULT_DB = Path(".budget_flow.db")
DEFAULT_USER = "default"

DbOption = Annotated[
    Path,
    typer.Option("--db", envvar="BUDGET_FLOW_DB", help="Database path"),
]
UserOption = Annotated[
    str,
    typer.Option("--user", envvar="BUDGET_FLOW_USER", help="Budget owner"),
]
MonthOption = Annotated[
    Optional[str],
    typer.Option("--month", help="Month id (YYYY-MM); defaults to this month"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]


def open_flow(db: Path, user: str, month: Optional[str] = None) -> BudgetFlow:
    """Open a session on an existing database, writing inline"""
    if not db.exists():
        typer.echo(f"Error: Database not found: {db}", err=True)
        typer.echo(f"Run 'budget-flow init --db {db}' to initialize", err=True)
        raise typer.Exit(1)
    return BudgetFlow(
        user,
        SQLiteMonthRepository(db),
        executor=ImmediateExecutor(),
        current_month_id=month,
    )


@contextmanager
def session(db: Path, user: str, month: Optional[str] = None) -> Iterator[BudgetFlow]:
    """Open a session and turn core errors into a clean exit"""
    try:
        with open_flow(db, user, month) as flow:
            yield flow
    except BudgetFlowError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e


def resolve_target(month: BudgetMonth, target: str) -> CategoryOption:
    """Find an expense target by id or (case-insensitive) display name"""
    options = category_options(month)
    for option in options:
        if option.id == target or option.name.casefold() == target.casefold():
            return option
    typer.echo(f"Error: No category or subcategory matches {target!r}", err=True)
    typer.echo(f"  Options: {', '.join(option.name for option in options)}", err=True)
    raise typer.Exit(1)


def resolve_category_id(month: BudgetMonth, category: str) -> str:
    """Find a top-level category id by id or (case-insensitive) name"""
    for cat in month.categories:
        if cat.id == category or cat.name.casefold() == category.casefold():
            return cat.id
    typer.echo(f"Error: Category not found: {category}", err=True)
    raise typer.Exit(1)


# Initialization command


@app.command()
def init(db: DbOption = DEFAULT_DB, user: UserOption = DEFAULT_USER) -> None:
    """Initialize a new BudgetFlow database"""
    if db.exists():
        typer.echo(f"Error: Database already exists: {db}", err=True)
        raise typer.Exit(1)

    with BudgetFlow(user, SQLiteMonthRepository(db), executor=ImmediateExecutor()) as flow:
        month_id = flow.current_month_id
    typer.echo(f"✓ Initialized BudgetFlow database: {db}")
    typer.echo(f"  Current month: {month_id}")


# Month commands


@month_app.command("show")
def month_show(
    month: MonthOption = None,
    db: DbOption = DEFAULT_DB,
    user: UserOption = DEFAULT_USER,
    json_output: JsonOption = False,
) -> None:
    """Show a month's income, categories and spending"""
    with session(db, user, month) as flow:
        current = flow.current_month

    if json_output:
        typer.echo(json.dumps(current.model_dump(mode="json"), indent=2))
        return

    status = "closed" if current.is_closed() else "open"
    typer.echo(f"\nMonth: {current.id} ({status})")
    typer.echo(f"  Income: {total_income(current)}")
    typer.echo(f"  Budgeted: {total_budgeted(current)}")
    typer.echo(f"  Unallocated: {unallocated(current)}")
    typer.echo(f"  Starting card debt: {current.starting_credit_card_debt}")
    typer.echo(f"  Card debt at month end: {debt_at_end_of_month(current)}")

    typer.echo(f"\n  Categories ({len(current.categories)}):")
    for cat in current.categories:
        marker = " [system]" if cat.is_system_category else ""
        flag = " OVERSPENT" if is_overspent(cat) else ""
        typer.echo(
            f"    {cat.name}{marker}: budget {effective_budget(cat)}, "
            f"spent {spent(cat)}, remaining {remaining(cat)}{flag}"
        )
        for sub in cat.subcategories:
            typer.echo(
                f"      - {sub.name}: budget {sub.budgeted_amount}, "
                f"spent {spent(sub)}, remaining {remaining(sub)}"
            )


@month_app.command("summary")
def month_summary(
    month: MonthOption = None,
    db: DbOption = DEFAULT_DB,
    user: UserOption = DEFAULT_USER,
    json_output: JsonOption = False,
) -> None:
    """Show month-end figures"""
    with session(db, user, month) as flow:
        summary = flow.month_end_summary(flow.current_month_id)

    if json_output:
        typer.echo(json.dumps(summary.model_dump(mode="json"), indent=2))
        return

    typer.echo(f"\nMonth-end summary: {summary.month_id}")
    typer.echo(f"  Income: {summary.total_income}")
    typer.echo(f"  Savings: {summary.actual_savings} of {summary.planned_savings} planned")
    typer.echo(
        f"  Card payments: {summary.actual_credit_card_payments} "
        f"of {summary.planned_credit_card_payments} planned"
    )
    typer.echo(
        f"  Operational spending: {summary.operational_spending} "
        f"of {summary.operational_budget} budgeted"
    )
    typer.echo(f"  Net cash flow: {summary.net_cash_flow}")
    typer.echo(
        f"  Card debt: {summary.starting_credit_card_debt} -> {summary.ending_credit_card_debt}"
    )
    typer.echo(f"  Unspent: {summary.unspent_total}")
    if summary.feedback:
        typer.echo(f"  Feedback: {summary.feedback.value}")


@month_app.command("rollover")
def month_rollover(
    month: MonthOption = None,
    db: DbOption = DEFAULT_DB,
    user: UserOption = DEFAULT_USER,
) -> None:
    """Close a month"""
    with session(db, user, month) as flow:
        result = flow.rollover_unspent_budget(flow.current_month_id)

    if not result.success:
        typer.echo(f"Error: {result.message}", err=True)
        raise typer.Exit(1)
    typer.echo(f"✓ Closed month: {result.month.id}")
    typer.echo(f"  Unspent: {result.unspent_total}")


@month_app.command("duplicate")
def month_duplicate(
    source: Annotated[str, typer.Option("--from", help="Source month id")],
    target: Annotated[str, typer.Option("--to", help="Target month id")],
    db: DbOption = DEFAULT_DB,
    user: UserOption = DEFAULT_USER,
) -> None:
    """Copy a month's categories and budgets into another month"""
    with session(db, user) as flow:
        result = flow.duplicate_month_budget(source, target)

    typer.echo(f"✓ Duplicated {source} into {result.month.id}")
    typer.echo(f"  Starting card debt: {result.month.starting_credit_card_debt}")


@month_app.command("feedback")
def month_feedback(
    value: Annotated[MonthEndFeedback, typer.Option("--value", help="How the budget felt")],
    month: MonthOption = None,
    db: DbOption = DEFAULT_DB,
    user: UserOption = DEFAULT_USER,
) -> None:
    """Record month-end feedback"""
    with session(db, user, month) as flow:
        flow.record_month_end_feedback(flow.current_month_id, value)
        month_id = flow.current_month_id
    typer.echo(f"✓ Recorded feedback for {month_id}: {value.value}")


# Income commands


@income_app.command("add")
def income_add(
    amount: Annotated[str, typer.Option("--amount", help="Amount received")],
    description: Annotated[str, typer.Option("--description", help="Source")],
    month: MonthOption = None,
    db: DbOption = DEFAULT_DB,
    user: UserOption = DEFAULT_USER,
) -> None:
    """Record income"""
    with session(db, user, month) as flow:
        result = flow.add_income(flow.current_month_id, amount, description)

    if not result.changed:
        typer.echo(f"Month {result.month.id} is closed - income not recorded", err=True)
        raise typer.Exit(1)
    typer.echo(f"✓ Recorded income: {result.created_id}")


# Expense commands


@expense_app.command("add")
def expense_add(
    category: Annotated[
        str, typer.Option("--category", help="Category or 'Parent > Sub' name, or id")
    ],
    amount: Annotated[str, typer.Option("--amount", help="Amount spent")],
    description: Annotated[str, typer.Option("--description", help="What it was")],
    month: MonthOption = None,
    db: DbOption = DEFAULT_DB,
    user: UserOption = DEFAULT_USER,
) -> None:
    """Record an expense"""
    with session(db, user, month) as flow:
        target = resolve_target(flow.current_month, category)
        result = flow.add_expense(
            flow.current_month_id,
            target.id,
            amount,
            description,
            is_subcategory=target.is_subcategory,
        )

    if not result.changed:
        typer.echo(f"Month {result.month.id} is closed - expense not recorded", err=True)
        raise typer.Exit(1)
    typer.echo(f"✓ Recorded expense in {target.name}: {result.created_id}")


# Category commands


@category_app.command("add")
def category_add(
    name: Annotated[str, typer.Option("--name", help="Category name")],
    month: MonthOption = None,
    db: DbOption = DEFAULT_DB,
    user: UserOption = DEFAULT_USER,
) -> None:
    """Add a category with a zero budget"""
    with session(db, user, month) as flow:
        result = flow.add_category_to_month(flow.current_month_id, name)

    if not result.changed:
        typer.echo(f"Month {result.month.id} is closed - category not added", err=True)
        raise typer.Exit(1)
    typer.echo(f"✓ Added category: {result.created_id}")


@category_app.command("budget")
def category_budget(
    category: Annotated[str, typer.Option("--category", help="Category name or id")],
    amount: Annotated[str, typer.Option("--amount", help="Budgeted amount")],
    month: MonthOption = None,
    db: DbOption = DEFAULT_DB,
    user: UserOption = DEFAULT_USER,
) -> None:
    """Set a category's budget"""
    with session(db, user, month) as flow:
        category_id = resolve_category_id(flow.current_month, category)
        result = flow.update_category_in_month(
            flow.current_month_id, category_id, budgeted_amount=amount
        )

    updated = result.month.get_category(category_id)
    if not result.changed and (updated is None or updated.budgeted_amount != Decimal(amount)):
        typer.echo("Budget not changed (closed month, or derived from subcategories)", err=True)
        raise typer.Exit(1)
    typer.echo(f"✓ Budget for {updated.name}: {updated.budgeted_amount}")


# Subcategory commands


@subcategory_app.command("add")
def subcategory_add(
    parent: Annotated[str, typer.Option("--parent", help="Parent category name or id")],
    name: Annotated[str, typer.Option("--name", help="Subcategory name")],
    amount: Annotated[str, typer.Option("--amount", help="Budgeted amount")] = "0",
    month: MonthOption = None,
    db: DbOption = DEFAULT_DB,
    user: UserOption = DEFAULT_USER,
) -> None:
    """Add a subcategory under a user category"""
    with session(db, user, month) as flow:
        parent_id = resolve_category_id(flow.current_month, parent)
        result = flow.add_subcategory(flow.current_month_id, parent_id, name, amount)

    if not result.changed:
        typer.echo("Subcategory not added (closed month or system category)", err=True)
        raise typer.Exit(1)
    parent_category = result.month.get_category(parent_id)
    typer.echo(f"✓ Added subcategory: {result.created_id}")
    typer.echo(f"  {parent_category.name} budget: {parent_category.budgeted_amount}")


# Debt commands


@debt_app.command("set")
def debt_set(
    amount: Annotated[str, typer.Option("--amount", help="Starting credit card debt")],
    month: MonthOption = None,
    db: DbOption = DEFAULT_DB,
    user: UserOption = DEFAULT_USER,
) -> None:
    """Set a month's starting credit card debt"""
    with session(db, user, month) as flow:
        result = flow.update_month_budget(
            flow.current_month_id, starting_credit_card_debt=amount
        )
    typer.echo(
        f"✓ Starting card debt for {result.month.id}: "
        f"{result.month.starting_credit_card_debt}"
    )


def main() -> None:
    """Main entry point"""
    app()


if __name__ == "__main__":
    main()
