"""
Exception handling utilities.

Defines the ledger error hierarchy and categorized exception types
for proper error handling by callers.
"""

from decimal import Decimal
from typing import Any

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.orm.exc import StaleDataError


class LedgerError(Exception):
    """
    Base class for all ledger errors.

    Attributes:
        code: Stable machine-readable error code
        details: Structured context for rendering a user-facing message
    """

    code = "ledger_error"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Serialize error for API responses."""
        return {
            "code": self.code,
            "message": self.message,
            "details": {
                key: str(value) if isinstance(value, Decimal) else value
                for key, value in self.details.items()
            },
        }


class InvalidAmount(LedgerError):
    """Amount is not a positive (or non-negative) monetary value."""

    code = "invalid_amount"

    def __init__(self, amount: Any, reason: str = "Amount must be positive") -> None:
        super().__init__(reason, amount=amount)


class InvalidCategory(LedgerError):
    """Income category is not one of direct, level, roi, bonus."""

    code = "invalid_category"

    def __init__(self, category: Any) -> None:
        super().__init__(f"Invalid income category: {category}", category=category)


class InsufficientBalance(LedgerError):
    """Requested amount exceeds the available balance."""

    code = "insufficient_balance"

    def __init__(self, requested: Decimal, available: Decimal) -> None:
        super().__init__(
            "Insufficient available balance",
            requested=requested,
            available=available,
        )


class WithdrawalNotEligible(LedgerError):
    """Withdrawal eligibility check failed."""

    code = "withdrawal_not_eligible"

    def __init__(self, eligibility: Any) -> None:
        super().__init__(
            f"Withdrawal not eligible: {eligibility.reason}",
            **eligibility.to_dict(),
        )
        self.eligibility = eligibility


class InvalidTransition(LedgerError):
    """Illegal state machine move."""

    code = "invalid_transition"

    def __init__(self, entity: str, current: str, target: str) -> None:
        super().__init__(
            f"Cannot move {entity} from {current} to {target}",
            entity=entity,
            current=current,
            target=target,
        )


class InvalidLevelSequence(LedgerError):
    """Plan level commissions are not sequential from 1."""

    code = "invalid_level_sequence"

    def __init__(self, levels: list[int], reason: str | None = None) -> None:
        super().__init__(
            reason or "Commission levels must be sequential starting from 1",
            levels=levels,
        )


class CorruptGraph(LedgerError):
    """Sponsor chain contains a cycle or exceeds the depth bound."""

    code = "corrupt_graph"

    def __init__(self, user_id: int, reason: str, **details: Any) -> None:
        super().__init__(
            f"Corrupt referral graph at user {user_id}: {reason}",
            user_id=user_id,
            **details,
        )


class NotFound(LedgerError):
    """Entity lookup miss."""

    code = "not_found"

    def __init__(self, entity: str, **lookup: Any) -> None:
        super().__init__(f"{entity} not found", entity=entity, **lookup)


class AccessDenied(LedgerError):
    """Principal is not allowed to perform the action."""

    code = "access_denied"

    def __init__(self, action: str, user_id: int | None = None) -> None:
        super().__init__(
            f"Not allowed to {action}", action=action, user_id=user_id
        )


class InvalidRequest(LedgerError):
    """Request payload failed validation (missing reason, bad details)."""

    code = "invalid_request"


class InvalidSettingValue(LedgerError):
    """Setting value does not satisfy its declared type or rules."""

    code = "invalid_setting_value"

    def __init__(self, category: str, key: str, reason: str) -> None:
        super().__init__(
            f"Invalid value for {category}.{key}: {reason}",
            category=category,
            key=key,
        )


class StorageUnavailable(LedgerError):
    """Persistence layer failed transiently; caller may retry."""

    code = "storage_unavailable"

    def __init__(self, operation: str, error: str) -> None:
        super().__init__(
            f"Storage unavailable during {operation}",
            operation=operation,
            error=error,
        )


# Exception categories based on handling strategy

# Business-rule violations - must propagate to caller, never retried
BUSINESS_ERRORS = (
    InvalidAmount,
    InvalidCategory,
    InsufficientBalance,
    WithdrawalNotEligible,
    InvalidTransition,
    InvalidLevelSequence,
    NotFound,
    AccessDenied,
    InvalidRequest,
    InvalidSettingValue,
)

# Data integrity problems - must be logged and investigated
INTEGRITY_ERRORS = (
    CorruptGraph,
)

# Storage-level errors translated to StorageUnavailable at the service boundary
TRANSIENT_STORAGE_ERRORS = (
    OperationalError,
    InterfaceError,
    StaleDataError,
)


def is_business_error(exc: Exception) -> bool:
    """
    Check if exception is a business-rule violation.

    Args:
        exc: Exception to check

    Returns:
        True if exception is a business error
    """
    return isinstance(exc, BUSINESS_ERRORS)


def is_transient(exc: Exception) -> bool:
    """
    Check if exception may succeed on retry.

    Args:
        exc: Exception to check

    Returns:
        True if caller may retry with backoff
    """
    if isinstance(exc, (StorageUnavailable, *TRANSIENT_STORAGE_ERRORS)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated
