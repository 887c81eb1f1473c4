"""
Finance error taxonomy.

WHY: Services raise typed errors; routes map them to HTTP responses without
string matching. Every error carries a machine-readable code and optional
details for the client.
"""


class FinanceError(Exception):
    """Base class for all finance operation errors."""
    status_code = 400
    code = "finance_error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


class ValidationError(FinanceError):
    status_code = 400
    code = "validation_error"


# =============================================================================
# NOT FOUND
# =============================================================================

class NotFoundError(FinanceError):
    status_code = 404
    code = "not_found"


class AccountNotFound(NotFoundError):
    code = "account_not_found"


class SessionNotFound(NotFoundError):
    code = "session_not_found"


class SaleNotFound(NotFoundError):
    code = "sale_not_found"


class ProductNotFound(NotFoundError):
    code = "product_not_found"


class VendorNotFound(NotFoundError):
    code = "vendor_not_found"


class ExpenseCategoryNotFound(NotFoundError):
    code = "expense_category_not_found"


class MovementNotFound(NotFoundError):
    code = "movement_not_found"


class AlertNotFound(NotFoundError):
    code = "alert_not_found"


# =============================================================================
# INVALID STATE
# =============================================================================

class InvalidStateError(FinanceError):
    status_code = 409
    code = "invalid_state"


class SessionNotOpen(InvalidStateError):
    code = "session_not_open"


class SessionAlreadyOpen(InvalidStateError):
    code = "session_already_open"


class AccountClosed(InvalidStateError):
    code = "account_closed"


class SaleNotDraft(InvalidStateError):
    code = "sale_not_draft"


# =============================================================================
# BUSINESS RULES
# =============================================================================

class BusinessRuleError(FinanceError):
    status_code = 422
    code = "business_rule"


class InsufficientBalance(BusinessRuleError):
    code = "insufficient_balance"


class InsufficientPayment(BusinessRuleError):
    code = "insufficient_payment"


class ConstraintViolation(FinanceError):
    status_code = 409
    code = "constraint_violation"


class NonZeroBalance(ConstraintViolation):
    code = "non_zero_balance"


class LastAccountOfType(ConstraintViolation):
    code = "last_account_of_type"
