"""
Custom exceptions for BudgetFlow

Every failure the core reports is scoped to a single operation. Validation
and lookup errors are raised before the month store is touched, so a caller
catching BudgetFlowError can rely on the store being unchanged.

Closed-month mutations are not errors at all - they are silent no-ops.
"""


class BudgetFlowError(Exception):
    """Base exception for all BudgetFlow errors"""

    pass


class ValidationError(BudgetFlowError):
    """
    Raised when mutation input is rejected at the boundary

    Examples: empty names, non-positive amounts, malformed month ids.
    """

    pass


class InvalidMonthId(ValidationError):
    """Raised when a month id is not a zero-padded YYYY-MM string"""

    def __init__(self, month_id: str) -> None:
        self.month_id = month_id
        super().__init__(
            f"Month id {month_id!r} is invalid - expected 'YYYY-MM' with month 01-12"
        )


class NonPositiveAmount(ValidationError):
    """Raised when an expense or income amount is zero or negative"""

    def __init__(self, field: str, amount: str) -> None:
        self.field = field
        self.amount = amount
        super().__init__(f"{field} must be greater than zero, got {amount}")


class NegativeAmount(ValidationError):
    """Raised when a budgeted amount or debt figure is negative"""

    def __init__(self, field: str, amount: str) -> None:
        self.field = field
        self.amount = amount
        super().__init__(f"{field} cannot be negative, got {amount}")


class EmptyName(ValidationError):
    """Raised when a required name or description is blank"""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"{field} must not be empty")


class ReservedCategoryName(ValidationError):
    """Raised when a user category would take a system category's name"""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"Category name {name!r} is reserved for a system category"
        )


class InvalidExpenseTarget(ValidationError):
    """Raised when an expense targets a category that has subcategories"""

    def __init__(self, category_id: str, category_name: str) -> None:
        self.category_id = category_id
        self.category_name = category_name
        super().__init__(
            f"Category {category_name!r} ({category_id}) has subcategories - "
            "expenses must be added to one of its subcategories"
        )


# Lookup errors


class MonthNotFound(BudgetFlowError):
    """Raised when a month that must already exist is missing from the store"""

    def __init__(self, month_id: str) -> None:
        self.month_id = month_id
        super().__init__(f"Month {month_id} not found")


class CategoryNotFound(BudgetFlowError):
    """Raised when a category id does not exist in a month"""

    def __init__(self, month_id: str, category_id: str) -> None:
        self.month_id = month_id
        self.category_id = category_id
        super().__init__(f"Category {category_id} not found in month {month_id}")


class SubCategoryNotFound(BudgetFlowError):
    """Raised when a subcategory id does not exist in a month"""

    def __init__(self, month_id: str, subcategory_id: str) -> None:
        self.month_id = month_id
        self.subcategory_id = subcategory_id
        super().__init__(
            f"Subcategory {subcategory_id} not found in month {month_id}"
        )


# Collaborator errors


class PersistenceError(BudgetFlowError):
    """Raised by repositories when a month cannot be read or written"""

    def __init__(self, user_id: str, month_id: str | None, reason: str) -> None:
        self.user_id = user_id
        self.month_id = month_id
        self.reason = reason
        target = f"month {month_id}" if month_id else "months"
        super().__init__(f"Could not persist {target}: {reason}")


class ProviderNotConfigured(BudgetFlowError):
    """Raised when an assistant operation runs without a suggestion provider"""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(
            f"{operation} needs a suggestion provider, but none was configured"
        )
