"""
Error hierarchy for TalentPay.

Every error raised by the order, settlement and wallet services derives
from CommerceError so that callers (the HTTP layer, the CLI) can map them
to user-visible responses in one place.
"""

from decimal import Decimal
from typing import List, Optional


class CommerceError(Exception):
    """Base exception for all TalentPay service errors."""

    code = "commerce_error"


class NotFoundError(CommerceError):
    """A referenced record does not exist."""

    code = "not_found"


class OrderNotFoundError(NotFoundError):
    """Order not found."""

    code = "order_not_found"


class ProfileNotFoundError(NotFoundError):
    """User profile not found."""

    code = "profile_not_found"


class WithdrawalNotFoundError(NotFoundError):
    """Withdrawal not found."""

    code = "withdrawal_not_found"


class ApplicationNotFoundError(NotFoundError):
    """Talent has not applied to the campaign."""

    code = "application_not_found"


class UnauthorizedError(CommerceError):
    """Actor is not allowed to perform the operation."""

    code = "unauthorized"


class ValidationError(CommerceError, ValueError):
    """Input failed validation (bad amount, missing bank field, ...)."""

    code = "validation_error"


class ChargeVerificationError(ValidationError):
    """A top-up's card charge could not be confirmed with the provider."""

    code = "charge_not_verified"

    def __init__(self, charge_reference: str, reason: str, error_code: Optional[str] = None):
        self.charge_reference = charge_reference
        self.reason = reason
        self.error_code = error_code
        super().__init__(f"Charge {charge_reference} could not be verified: {reason}")


class DuplicateOrderError(CommerceError):
    """An order already exists for this campaign and talent."""

    code = "duplicate_order"


class ApplicationNotPendingError(CommerceError):
    """The talent's application was already approved or rejected."""

    code = "application_not_pending"


class StorageConflictError(CommerceError):
    """A conditional write kept losing to concurrent writers."""

    code = "storage_conflict"


class InvalidTransition(CommerceError):
    """Requested order status change is not an allowed edge."""

    code = "invalid_transition"

    def __init__(
        self,
        order_id: str,
        from_status: Optional[str],
        to_status: str,
        reason: Optional[str] = None,
    ):
        self.order_id = order_id
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        message = f"Cannot transition order {order_id} from {from_status} to {to_status}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class InsufficientBalance(CommerceError):
    """Wallet balance or earnings too low for the requested amount."""

    code = "insufficient_balance"

    def __init__(self, user_id: str, required: Decimal, available: Decimal, field: str = "wallet_balance"):
        self.user_id = user_id
        self.required = required
        self.available = available
        self.field = field
        self.shortfall = max(required - available, Decimal("0.00"))
        super().__init__(
            f"Insufficient {field.replace('_', ' ')} for {user_id}: "
            f"required {required}, available {available}, shortfall {self.shortfall}"
        )


class ProviderError(CommerceError):
    """External payout provider call failed.

    ``retryable`` distinguishes transient failures (network, timeouts, 5xx)
    from terminal ones (bad bank details, rejected by the provider).
    """

    code = "provider_error"

    def __init__(self, message: str, retryable: bool = False, status_code: Optional[int] = None):
        self.retryable = retryable
        self.status_code = status_code
        super().__init__(message)


class LedgerWriteFailure(CommerceError):
    """A multi-step ledger operation failed part way through.

    When ``rolled_back`` is True every effect already applied was undone and
    the caller observes the prior state. When False, ``pending_compensations``
    lists the undo steps that could not be applied and need operator follow-up.
    """

    code = "ledger_write_failure"

    def __init__(
        self,
        operation: str,
        subject_id: str,
        rolled_back: bool,
        pending_compensations: Optional[List[str]] = None,
        message: Optional[str] = None,
    ):
        self.operation = operation
        self.subject_id = subject_id
        self.rolled_back = rolled_back
        self.pending_compensations = list(pending_compensations or [])
        if message is None:
            if rolled_back:
                message = f"{operation} failed for {subject_id}; all changes were rolled back"
            else:
                message = (
                    f"{operation} failed for {subject_id}; "
                    f"{len(self.pending_compensations)} step(s) need manual reconciliation"
                )
        super().__init__(message)
