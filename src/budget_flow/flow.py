"""
BudgetFlow - Main façade class

This is the primary interface to the budgeting core. One BudgetFlow owns
the month store for one user session: it loads every month at start-up,
repairs what the normalizer flags, and then applies mutations as pure
month transforms, writing each changed month behind the caller's back.

Example:
    >>> from budget_flow import BudgetFlow
    >>> from budget_flow.kernel.persistence import SQLiteMonthRepository
    >>> flow = BudgetFlow("alice", SQLiteMonthRepository("budget.db"))
    >>> june = flow.ensure_month_exists("2025-06")
    >>> flow.add_income("2025-06", "3200", "Salary")
    >>> groceries = flow.add_category_to_month("2025-06", "Groceries").created_id
    >>> flow.add_expense("2025-06", groceries, "42.10", "Market")
    >>> result = flow.rollover_unspent_budget("2025-06")
    >>> flow.close()
"""

from collections.abc import Mapping, Sequence
from concurrent.futures import Executor
from datetime import datetime
from decimal import Decimal
from typing import Any

from budget_flow.budget import transforms
from budget_flow.budget.aggregation import (
    category_options,
    debt_at_end_of_month,
    month_end_summary,
    planning_context,
    total_income,
    unspent_total,
)
from budget_flow.budget.factory import (
    create_month,
    new_category,
    new_expense,
    new_income,
    new_subcategory,
    next_month_id,
    previous_month_id,
)
from budget_flow.budget.invariants import (
    find_category,
    find_subcategory,
    parse_month_id,
    validate_budget_amount,
    validate_expense_target,
    validate_name,
    validate_not_reserved_name,
    validate_positive_amount,
)
from budget_flow.budget.models import (
    ZERO,
    BudgetMonth,
    CategoryPayload,
    MonthEndFeedback,
    MonthEndSummary,
    MutationResult,
    RolloverResult,
)
from budget_flow.budget.normalizer import normalize_system_categories
from budget_flow.budget.suggestions import (
    BudgetPlanSuggestion,
    ExpenseSuggestion,
    PlanningRequest,
    SuggestedCategory,
    SuggestionProvider,
    matched_option,
    suggested_amount,
    to_categories,
)
from budget_flow.kernel.dispatch import PersistenceDispatcher
from budget_flow.kernel.errors import (
    MonthNotFound,
    ProviderNotConfigured,
    SubCategoryNotFound,
    ValidationError,
)
from budget_flow.kernel.ids import IdFactory, default_id_factory
from budget_flow.kernel.logging import LogOperation, bind_session, get_logger
from budget_flow.kernel.metrics import (
    months_created_total,
    mutations_total,
    normalizer_repairs_total,
    track_mutation,
)
from budget_flow.kernel.persistence import InMemoryMonthRepository, MonthRepository
from budget_flow.kernel.policy import BudgetPolicy
from budget_flow.kernel.time import RealTimeProvider, TimeProvider, month_id_for

logger = get_logger(__name__)

Amount = Decimal | int | str


class BudgetFlow:
    """
    BudgetFlow main façade

    Provides a unified API for:
    - Month lifecycle (lazy creation, carryover, rollover)
    - Income, expense, category and subcategory mutations
    - Read-side figures (month-end summary, planning context)
    - Assistant suggestions and applying them
    - Month navigation

    Mutations return a MutationResult carrying the new month and the Future
    of its persistence write. Closed months silently ignore income, expense
    and category edits.
    """

    def __init__(
        self,
        user_id: str,
        repository: MonthRepository | None = None,
        *,
        policy: BudgetPolicy | None = None,
        time_provider: TimeProvider | None = None,
        id_factory: IdFactory | None = None,
        executor: Executor | None = None,
        suggestion_provider: SuggestionProvider | None = None,
        current_month_id: str | None = None,
    ) -> None:
        """
        Initialize a session and load the user's months

        Args:
            user_id: Owner of every month in this session
            repository: Persistence collaborator (in-memory if None)
            policy: Budget policy (uses defaults if None)
            time_provider: Clock (uses real time if None)
            id_factory: Entity id source (random UUIDs if None)
            executor: Where writes run (single background thread if None)
            suggestion_provider: Assistant collaborator (optional)
            current_month_id: Initial display month (this month if None)

        Raises:
            PersistenceError: If stored months cannot be read
            InvalidMonthId: If current_month_id is malformed
        """
        self.user_id = user_id
        self.repository = repository or InMemoryMonthRepository()
        self.policy = policy or BudgetPolicy()
        self.time_provider = time_provider or RealTimeProvider()
        self.id_factory = id_factory or default_id_factory
        self.suggestion_provider = suggestion_provider
        self.session_id = bind_session()

        self.dispatcher = PersistenceDispatcher(
            self.repository, user_id, self.policy, executor
        )
        self._months: dict[str, BudgetMonth] = {}
        self._load_months()

        initial = current_month_id or month_id_for(self.time_provider.now())
        parse_month_id(initial)
        self.ensure_month_exists(initial)
        self._current_month_id = initial

    def _load_months(self) -> None:
        """Load stored months, repairing and re-saving malformed ones"""
        stored = self.repository.load_all_months(self.user_id)
        repaired = 0
        for month_id, month in stored.items():
            categories, changed = normalize_system_categories(
                month.categories, self.id_factory.generate
            )
            if changed:
                month = month.model_copy(update={"categories": categories})
                normalizer_repairs_total.inc()
                self.dispatcher.dispatch(month)
                repaired += 1
            self._months[month_id] = month

        logger.info("Months loaded", month_count=len(self._months), repaired=repaired)

    # ========== Month Store ==========

    def ensure_month_exists(self, month_id: str) -> BudgetMonth:
        """
        Return a well-formed month, creating it if needed

        A missing month is built by the month factory and persisted. An
        existing one is re-normalized and persisted only if that changed
        something, so calling this twice writes at most once.

        Raises:
            InvalidMonthId: If month_id is malformed
        """
        parse_month_id(month_id)
        existing = self._months.get(month_id)

        if existing is None:
            month = create_month(
                month_id,
                self._months,
                template=self.policy.default_categories,
                id_factory=self.id_factory,
            )
            self._months[month_id] = month
            months_created_total.inc()
            self.dispatcher.dispatch(month)
            logger.info(
                "Month created",
                month_id=month_id,
                starting_credit_card_debt=str(month.starting_credit_card_debt),
            )
            return month

        categories, changed = normalize_system_categories(
            existing.categories, self.id_factory.generate
        )
        if not changed:
            return existing

        month = existing.model_copy(update={"categories": categories})
        self._months[month_id] = month
        normalizer_repairs_total.inc()
        self.dispatcher.dispatch(month)
        logger.warning("Month repaired by normalizer", month_id=month_id)
        return month

    def get_month(self, month_id: str) -> BudgetMonth | None:
        """Get a month from the store without creating it"""
        return self._months.get(month_id)

    @property
    def months(self) -> dict[str, BudgetMonth]:
        """Snapshot of the store (months are immutable)"""
        return dict(self._months)

    def _require_month(self, month_id: str) -> BudgetMonth:
        month = self._months.get(month_id)
        if month is None:
            raise MonthNotFound(month_id)
        return month

    def _commit(
        self,
        operation: str,
        before: BudgetMonth,
        after: BudgetMonth,
        *,
        normalize: bool = False,
        created_id: str | None = None,
    ) -> MutationResult:
        """Store and persist after, unless the transform was a no-op"""
        if normalize:
            categories, changed = normalize_system_categories(
                after.categories, self.id_factory.generate
            )
            if changed:
                after = after.model_copy(update={"categories": categories})

        if after is before:
            mutations_total.labels(operation=operation, outcome="noop").inc()
            return MutationResult(before, changed=False)

        self._months[after.id] = after
        write = self.dispatcher.dispatch(after)
        mutations_total.labels(operation=operation, outcome="applied").inc()
        return MutationResult(after, changed=True, write=write, created_id=created_id)

    def _closed_noop(self, operation: str, month: BudgetMonth) -> MutationResult:
        logger.info("Month is closed - mutation ignored", operation=operation, month_id=month.id)
        mutations_total.labels(operation=operation, outcome="noop").inc()
        return MutationResult(month, changed=False)

    # ========== Expenses and income ==========

    @track_mutation("add_expense")
    def add_expense(
        self,
        month_id: str,
        target_id: str,
        amount: Amount,
        description: str,
        date: datetime | None = None,
        is_subcategory: bool = False,
    ) -> MutationResult:
        """
        Record an expense against a category or subcategory

        Raises:
            NonPositiveAmount: If amount <= 0
            EmptyName: If description is blank
            CategoryNotFound / SubCategoryNotFound: If the target is unknown
            InvalidExpenseTarget: If the category has subcategories
        """
        with LogOperation(
            logger, "add_expense", month_id=month_id, target_id=target_id, amount=amount
        ):
            value = validate_positive_amount("amount", amount)
            text = validate_name("description", description)
            month = self.ensure_month_exists(month_id)
            if month.is_closed():
                return self._closed_noop("add_expense", month)

            validate_expense_target(month, target_id, is_subcategory)
            expense = new_expense(
                text, value, date or self.time_provider.now(), self.id_factory
            )
            updated = transforms.add_expense(month, target_id, expense, is_subcategory)
            return self._commit("add_expense", month, updated, created_id=expense.id)

    @track_mutation("delete_expense")
    def delete_expense(
        self,
        month_id: str,
        target_id: str,
        expense_id: str,
        is_subcategory: bool = False,
    ) -> MutationResult:
        """Remove an expense; unknown ids are a no-op"""
        with LogOperation(logger, "delete_expense", month_id=month_id, expense_id=expense_id):
            month = self.ensure_month_exists(month_id)
            if month.is_closed():
                return self._closed_noop("delete_expense", month)

            updated = transforms.delete_expense(month, target_id, expense_id, is_subcategory)
            return self._commit("delete_expense", month, updated)

    @track_mutation("add_income")
    def add_income(
        self,
        month_id: str,
        amount: Amount,
        description: str,
        date: datetime | None = None,
    ) -> MutationResult:
        """
        Record income for a month

        Raises:
            NonPositiveAmount: If amount <= 0
            EmptyName: If description is blank
        """
        with LogOperation(logger, "add_income", month_id=month_id, amount=amount):
            value = validate_positive_amount("amount", amount)
            text = validate_name("description", description)
            month = self.ensure_month_exists(month_id)
            if month.is_closed():
                return self._closed_noop("add_income", month)

            income = new_income(text, value, date or self.time_provider.now(), self.id_factory)
            updated = transforms.add_income(month, income)
            return self._commit("add_income", month, updated, created_id=income.id)

    @track_mutation("delete_income")
    def delete_income(self, month_id: str, income_id: str) -> MutationResult:
        """Remove an income entry; unknown ids are a no-op"""
        with LogOperation(logger, "delete_income", month_id=month_id, income_id=income_id):
            month = self.ensure_month_exists(month_id)
            if month.is_closed():
                return self._closed_noop("delete_income", month)

            updated = transforms.delete_income(month, income_id)
            return self._commit("delete_income", month, updated)

    # ========== Categories ==========

    @track_mutation("add_category")
    def add_category_to_month(self, month_id: str, name: str) -> MutationResult:
        """
        Append a zero-budget user category

        Raises:
            EmptyName: If name is blank
            ReservedCategoryName: If name is "Savings" or "Credit Card Payments"
        """
        with LogOperation(logger, "add_category", month_id=month_id, name=name):
            clean_name = validate_name("category name", name)
            validate_not_reserved_name(clean_name)
            month = self.ensure_month_exists(month_id)
            if month.is_closed():
                return self._closed_noop("add_category", month)

            category = new_category(clean_name, id_factory=self.id_factory)
            updated = transforms.add_category(month, category)
            return self._commit(
                "add_category", month, updated, normalize=True, created_id=category.id
            )

    @track_mutation("update_category")
    def update_category_in_month(
        self,
        month_id: str,
        category_id: str,
        *,
        name: str | None = None,
        budgeted_amount: Amount | None = None,
    ) -> MutationResult:
        """
        Rename a category and/or set its budget

        System categories accept only a budget. A category with
        subcategories accepts only a name; its budget is derived.

        Raises:
            CategoryNotFound: If category_id is unknown
            EmptyName / ReservedCategoryName: For a bad new name
            NegativeAmount: If budgeted_amount < 0
        """
        with LogOperation(
            logger, "update_category", month_id=month_id, category_id=category_id
        ):
            clean_name = validate_name("category name", name) if name is not None else None
            budget = (
                validate_budget_amount("budgeted_amount", budgeted_amount)
                if budgeted_amount is not None
                else None
            )
            month = self.ensure_month_exists(month_id)
            if month.is_closed():
                return self._closed_noop("update_category", month)

            category = find_category(month, category_id)
            if clean_name is not None and not category.is_system_category:
                validate_not_reserved_name(clean_name)

            updated = transforms.update_category(
                month, category_id, name=clean_name, budgeted_amount=budget
            )
            return self._commit("update_category", month, updated, normalize=True)

    @track_mutation("delete_category")
    def delete_category_from_month(self, month_id: str, category_id: str) -> MutationResult:
        """Remove a user category with its expenses; system categories are kept"""
        with LogOperation(
            logger, "delete_category", month_id=month_id, category_id=category_id
        ):
            month = self.ensure_month_exists(month_id)
            if month.is_closed():
                return self._closed_noop("delete_category", month)

            updated = transforms.delete_category(month, category_id)
            return self._commit("delete_category", month, updated, normalize=True)

    # ========== Subcategories ==========

    @track_mutation("add_subcategory")
    def add_subcategory(
        self,
        month_id: str,
        parent_category_id: str,
        name: str,
        budgeted_amount: Amount = 0,
    ) -> MutationResult:
        """
        Add a subcategory under a user category

        The parent's budget becomes the sum of its subcategory budgets.
        System parents are left alone.

        Raises:
            CategoryNotFound: If the parent is unknown
            EmptyName: If name is blank
            NegativeAmount: If budgeted_amount < 0
        """
        with LogOperation(
            logger, "add_subcategory", month_id=month_id, parent_category_id=parent_category_id
        ):
            clean_name = validate_name("subcategory name", name)
            budget = validate_budget_amount("budgeted_amount", budgeted_amount)
            month = self.ensure_month_exists(month_id)
            if month.is_closed():
                return self._closed_noop("add_subcategory", month)

            parent = find_category(month, parent_category_id)
            if parent.is_system_category:
                logger.info(
                    "System categories cannot have subcategories",
                    month_id=month_id,
                    category_id=parent.id,
                )
                mutations_total.labels(operation="add_subcategory", outcome="noop").inc()
                return MutationResult(month, changed=False)

            subcategory = new_subcategory(clean_name, budget, id_factory=self.id_factory)
            updated = transforms.add_subcategory(month, parent_category_id, subcategory)
            return self._commit(
                "add_subcategory", month, updated, normalize=True, created_id=subcategory.id
            )

    @track_mutation("update_subcategory")
    def update_subcategory(
        self,
        month_id: str,
        parent_category_id: str,
        subcategory_id: str,
        *,
        name: str | None = None,
        budgeted_amount: Amount | None = None,
    ) -> MutationResult:
        """
        Rename a subcategory and/or set its budget

        Raises:
            CategoryNotFound / SubCategoryNotFound: If either id is unknown,
                or the subcategory is not under parent_category_id
            EmptyName / NegativeAmount: For bad new values
        """
        with LogOperation(
            logger, "update_subcategory", month_id=month_id, subcategory_id=subcategory_id
        ):
            clean_name = validate_name("subcategory name", name) if name is not None else None
            budget = (
                validate_budget_amount("budgeted_amount", budgeted_amount)
                if budgeted_amount is not None
                else None
            )
            month = self.ensure_month_exists(month_id)
            if month.is_closed():
                return self._closed_noop("update_subcategory", month)

            find_category(month, parent_category_id)
            parent, _ = find_subcategory(month, subcategory_id)
            if parent.id != parent_category_id:
                raise SubCategoryNotFound(month_id, subcategory_id)
            updated = transforms.update_subcategory(
                month,
                parent_category_id,
                subcategory_id,
                name=clean_name,
                budgeted_amount=budget,
            )
            return self._commit("update_subcategory", month, updated, normalize=True)

    @track_mutation("delete_subcategory")
    def delete_subcategory(
        self, month_id: str, parent_category_id: str, subcategory_id: str
    ) -> MutationResult:
        """
        Remove a subcategory with its expenses

        Deleting the last one leaves the parent's budget where it was.
        """
        with LogOperation(
            logger, "delete_subcategory", month_id=month_id, subcategory_id=subcategory_id
        ):
            month = self.ensure_month_exists(month_id)
            if month.is_closed():
                return self._closed_noop("delete_subcategory", month)

            updated = transforms.delete_subcategory(month, parent_category_id, subcategory_id)
            return self._commit("delete_subcategory", month, updated, normalize=True)

    # ========== Month-level operations ==========

    @track_mutation("update_month_budget")
    def update_month_budget(
        self,
        month_id: str,
        *,
        starting_credit_card_debt: Amount | None = None,
        categories: Sequence[CategoryPayload | Mapping[str, Any]] | None = None,
    ) -> MutationResult:
        """
        Bulk-replace starting debt and/or the category list

        Submitted categories are merged by id against the stored ones, so
        expenses survive; omitted system categories are kept. Not gated on
        closed months: the caller decides whether a closed month may be
        re-planned.

        Raises:
            NegativeAmount: If debt or a budget is negative
            EmptyName: If a submitted name is blank
        """
        with LogOperation(logger, "update_month_budget", month_id=month_id):
            debt = (
                validate_budget_amount("starting_credit_card_debt", starting_credit_card_debt)
                if starting_credit_card_debt is not None
                else None
            )
            payload = (
                [CategoryPayload.model_validate(item) for item in categories]
                if categories is not None
                else None
            )
            month = self.ensure_month_exists(month_id)

            merged = (
                transforms.merge_categories(month.categories, payload, self.id_factory)
                if payload is not None
                else None
            )
            updated = transforms.update_month_budget(
                month, starting_credit_card_debt=debt, categories=merged
            )
            return self._commit(
                "update_month_budget", month, updated, normalize=merged is not None
            )

    @track_mutation("duplicate_month_budget")
    def duplicate_month_budget(self, source_month_id: str, target_month_id: str) -> MutationResult:
        """
        Build target from source's category layout, without expenses

        Debt and the Savings budget carry over from the target's calendar
        predecessor when it exists, otherwise from source. An existing
        target is replaced. The display month moves to the target.

        Raises:
            InvalidMonthId: If either id is malformed
            MonthNotFound: If source does not exist
        """
        with LogOperation(
            logger,
            "duplicate_month_budget",
            source_month_id=source_month_id,
            target_month_id=target_month_id,
        ):
            parse_month_id(source_month_id)
            parse_month_id(target_month_id)
            source = self._require_month(source_month_id)

            target = transforms.duplicate_month(
                source, target_month_id, self._months, self.id_factory
            )
            if target_month_id not in self._months:
                months_created_total.inc()
            self._months[target_month_id] = target
            write = self.dispatcher.dispatch(target)
            mutations_total.labels(operation="duplicate_month_budget", outcome="applied").inc()
            self._current_month_id = target_month_id
            return MutationResult(target, changed=True, write=write)

    @track_mutation("rollover")
    def rollover_unspent_budget(self, month_id: str) -> RolloverResult:
        """
        Close a month and report its unspent total

        The unspent total is the sum of positive (budget - spent) over user
        categories and subcategories. It is reported only; no budget
        receives it.
        """
        with LogOperation(logger, "rollover", month_id=month_id):
            month = self.ensure_month_exists(month_id)
            unspent = unspent_total(month)

            if month.is_closed():
                mutations_total.labels(operation="rollover", outcome="noop").inc()
                return RolloverResult(
                    success=False,
                    message=f"Month {month_id} has already been rolled over",
                    unspent_total=unspent,
                    month=month,
                )

            result = self._commit("rollover", month, transforms.close_month(month))
            return RolloverResult(
                success=True,
                message=f"Month {month_id} closed with {unspent} unspent",
                unspent_total=unspent,
                month=result.month,
                write=result.write,
            )

    @track_mutation("record_month_end_feedback")
    def record_month_end_feedback(
        self, month_id: str, feedback: MonthEndFeedback | str
    ) -> MutationResult:
        """
        Record how the month's budget felt; allowed on closed months

        Raises:
            ValidationError: If feedback is not a MonthEndFeedback value
        """
        with LogOperation(logger, "record_month_end_feedback", month_id=month_id):
            try:
                value = MonthEndFeedback(feedback)
            except ValueError as e:
                raise ValidationError(f"Unknown month-end feedback: {feedback!r}") from e
            month = self.ensure_month_exists(month_id)
            updated = transforms.record_feedback(month, value)
            return self._commit("record_month_end_feedback", month, updated)

    @track_mutation("apply_ai_budget")
    def apply_ai_generated_budget(
        self,
        target_month_id: str,
        suggested_categories: Sequence[SuggestedCategory | Mapping[str, Any]] | None,
        income: Amount,
        prior_debt: Amount,
        prior_cc_payment: Amount,
    ) -> MutationResult:
        """
        Replace a month's user categories with a suggested layout

        Suggested categories get fresh ids and no expenses. System
        categories stay, taking a suggested budget when one matches their
        name. Starting debt becomes max(0, prior_debt - prior_cc_payment).
        A month with no income gets an expected-income entry when
        income > 0.

        Raises:
            NegativeAmount: If income or a debt figure is negative
        """
        with LogOperation(logger, "apply_ai_budget", month_id=target_month_id, income=income):
            income_value = validate_budget_amount("income", income)
            debt = validate_budget_amount("prior_debt", prior_debt)
            payment = validate_budget_amount("prior_cc_payment", prior_cc_payment)
            suggestions = [
                SuggestedCategory.model_validate(item) for item in suggested_categories or []
            ]
            month = self.ensure_month_exists(target_month_id)

            categories, system_budgets = to_categories(suggestions, self.id_factory)
            expected_income = (
                new_income(
                    self.policy.expected_income_description,
                    income_value,
                    self.time_provider.now(),
                    self.id_factory,
                )
                if not month.incomes and income_value > 0
                else None
            )
            updated = transforms.apply_budget_plan(
                month,
                categories,
                system_budgets,
                max(ZERO, debt - payment),
                expected_income,
            )
            return self._commit("apply_ai_budget", month, updated, normalize=True)

    # ========== Assistant ==========

    def _require_provider(self, operation: str) -> SuggestionProvider:
        if self.suggestion_provider is None:
            raise ProviderNotConfigured(operation)
        return self.suggestion_provider

    def suggest_expense(self, month_id: str, image_data_uri: str) -> ExpenseSuggestion:
        """
        Ask the assistant to read a receipt against this month's targets

        Provider errors propagate; an ai_error payload is returned as-is.
        """
        provider = self._require_provider("suggest_expense")
        month = self.ensure_month_exists(month_id)
        suggestion = provider.categorize_expense(image_data_uri, category_options(month))
        if suggestion.ai_error:
            logger.warning("Expense suggestion failed", month_id=month_id, ai_error=suggestion.ai_error)
        return suggestion

    def apply_expense_suggestion(
        self,
        month_id: str,
        suggestion: ExpenseSuggestion,
        date: datetime | None = None,
    ) -> MutationResult | None:
        """
        Record a suggested expense when it names a real target and amount

        Returns:
            The add_expense result, or None if the suggestion was skipped
        """
        if suggestion.ai_error:
            return None

        month = self.ensure_month_exists(month_id)
        option = matched_option(suggestion, category_options(month))
        amount = suggested_amount(suggestion.suggested_amount)
        if option is None or amount <= 0:
            logger.info(
                "Expense suggestion skipped",
                month_id=month_id,
                matched=option is not None,
            )
            return None

        description = (
            suggestion.suggested_description or ""
        ).strip() or self.policy.suggested_expense_description
        return self.add_expense(
            month_id, option.id, amount, description, date, is_subcategory=option.is_subcategory
        )

    def prepare_next_month(
        self,
        month_id: str,
        user_goals: str,
        statement_data_uris: Sequence[str] | None = None,
    ) -> BudgetPlanSuggestion:
        """Ask the assistant for next month's budget, given this month's figures"""
        provider = self._require_provider("prepare_next_month")
        month = self.ensure_month_exists(month_id)
        context = planning_context(month)
        request = PlanningRequest(
            user_goals=user_goals,
            current_month_id=context.month_id,
            current_income=context.current_income,
            current_savings_total=context.current_savings_total,
            current_credit_card_debt=context.current_credit_card_debt,
            previous_month_feedback=context.previous_month_feedback,
            statement_data_uris=list(statement_data_uris or []),
        )
        plan = provider.prepare_budget(request)
        if plan.ai_error:
            logger.warning("Budget plan failed", month_id=month_id, ai_error=plan.ai_error)
        return plan

    def apply_budget_plan(
        self, source_month_id: str, plan: BudgetPlanSuggestion
    ) -> MutationResult | None:
        """
        Apply a plan to the month after source and move the display there

        Income defaults to the source month's income; the source's debt and
        card payments seed the target's starting debt.

        Returns:
            The apply_ai_generated_budget result, or None for an errored plan
        """
        if plan.ai_error:
            return None

        source = self.ensure_month_exists(source_month_id)
        target_id = next_month_id(source_month_id)
        income = (
            plan.income_basis_for_budget
            if plan.income_basis_for_budget is not None
            else total_income(source)
        )
        payments = source.starting_credit_card_debt - debt_at_end_of_month(source)
        result = self.apply_ai_generated_budget(
            target_id,
            plan.suggested_categories,
            suggested_amount(income),
            source.starting_credit_card_debt,
            payments,
        )
        self._current_month_id = target_id
        return result

    # ========== Read side ==========

    def month_end_summary(self, month_id: str) -> MonthEndSummary:
        """
        Close-of-month figures for an existing month

        Raises:
            MonthNotFound: If the month does not exist
        """
        return month_end_summary(self._require_month(month_id))

    # ========== Navigation ==========

    @property
    def current_month_id(self) -> str:
        return self._current_month_id

    @property
    def current_month(self) -> BudgetMonth:
        return self.ensure_month_exists(self._current_month_id)

    def set_current_month(self, month_id: str) -> BudgetMonth:
        month = self.ensure_month_exists(month_id)
        self._current_month_id = month_id
        return month

    def navigate_to_previous_month(self) -> BudgetMonth:
        return self.set_current_month(previous_month_id(self._current_month_id))

    def navigate_to_next_month(self) -> BudgetMonth:
        return self.set_current_month(next_month_id(self._current_month_id))

    # ========== Lifecycle ==========

    def flush(self, timeout: float | None = None) -> None:
        """Wait for outstanding persistence writes"""
        self.dispatcher.flush(timeout)

    def close(self) -> None:
        """Finish outstanding writes and release the writer"""
        self.dispatcher.close()

    def __enter__(self) -> "BudgetFlow":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
