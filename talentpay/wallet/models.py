"""
Wallet data models.

Profile carries the two stored balance fields (founder wallet balance and
talent total earnings). Withdrawal tracks a talent's request to move
earnings to a bank account through the payout provider.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from talentpay.pricing import ZERO, to_money
from talentpay.utils import format_datetime, parse_datetime, utc_now

BALANCE_FIELDS = ("wallet_balance", "total_earnings")


class ProfileRole(Enum):
    """Marketplace role of a profile."""

    FOUNDER = "founder"
    TALENT = "talent"
    ADMIN = "admin"


class WithdrawalStatus(Enum):
    """Withdrawal lifecycle status.

    ``approved`` means the payout provider accepted the transfer but the
    ledger entries are not yet recorded.
    """

    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    REJECTED = "rejected"


VALID_WITHDRAWAL_TRANSITIONS = {
    WithdrawalStatus.PENDING: {WithdrawalStatus.APPROVED, WithdrawalStatus.REJECTED},
    WithdrawalStatus.APPROVED: {WithdrawalStatus.PAID},
    WithdrawalStatus.PAID: set(),
    WithdrawalStatus.REJECTED: set(),
}


@dataclass
class Profile:
    """A marketplace user with stored balances.

    Balance fields are only changed through conditional increments in the
    storage layer, never by writing back a previously fetched value.
    """

    id: str
    role: str
    name: str = ""
    status: str = "active"
    wallet_balance: Decimal = ZERO
    total_earnings: Decimal = ZERO
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if isinstance(self.role, ProfileRole):
            self.role = self.role.value
        valid_roles = {r.value for r in ProfileRole}
        if self.role not in valid_roles:
            raise ValueError(f"Invalid role: {self.role}. Must be one of {valid_roles}")
        self.wallet_balance = to_money(self.wallet_balance)
        self.total_earnings = to_money(self.total_earnings)

    def balance(self, field_name: str) -> Decimal:
        if field_name not in BALANCE_FIELDS:
            raise ValueError(f"Unknown balance field: {field_name}")
        return getattr(self, field_name)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "role": self.role,
            "name": self.name,
            "status": self.status,
            "wallet_balance": str(self.wallet_balance),
            "total_earnings": str(self.total_earnings),
            "created_at": format_datetime(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Profile":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            role=data["role"],
            name=data.get("name") or "",
            status=data.get("status") or "active",
            wallet_balance=to_money(str(data.get("wallet_balance") or "0")),
            total_earnings=to_money(str(data.get("total_earnings") or "0")),
            created_at=parse_datetime(data.get("created_at")) or utc_now(),
        )


@dataclass(frozen=True)
class BankDetails:
    """Destination bank account for a withdrawal."""

    bank_name: str
    bank_code: str
    account_number: str
    account_holder: str

    def missing_fields(self) -> list:
        return [
            name
            for name in ("bank_name", "bank_code", "account_number", "account_holder")
            if not (getattr(self, name) or "").strip()
        ]

    @property
    def masked_account_number(self) -> str:
        digits = self.account_number or ""
        if len(digits) <= 4:
            return "*" * len(digits)
        return "*" * (len(digits) - 4) + digits[-4:]


@dataclass
class Withdrawal:
    """A talent's request to pay out earnings.

    Attributes:
        id: Unique identifier, also used as the provider idempotency reference
        user_id: Talent requesting the withdrawal
        amount: Requested gross amount (earnings drop by this much)
        admin_fee: Platform fee deducted from the gross
        bank_*/account_*: Destination bank account
        status: pending, approved, paid or rejected
        chip_payout_id: Provider reference once accepted
        chip_status: Raw provider status
        chip_error_message: Provider failure reason
    """

    id: str
    user_id: str
    amount: Decimal
    admin_fee: Decimal
    bank_name: str
    bank_code: str
    account_number: str
    account_holder: str
    status: str = "pending"
    requested_at: datetime = field(default_factory=utc_now)
    processed_at: Optional[datetime] = None
    chip_payout_id: Optional[str] = None
    chip_status: Optional[str] = None
    chip_error_message: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.status, WithdrawalStatus):
            self.status = self.status.value
        valid_statuses = {s.value for s in WithdrawalStatus}
        if self.status not in valid_statuses:
            raise ValueError(f"Invalid withdrawal status: {self.status}. Must be one of {valid_statuses}")
        self.amount = to_money(self.amount)
        self.admin_fee = to_money(self.admin_fee)
        if self.amount <= ZERO:
            raise ValueError("Withdrawal amount must be positive")
        if self.admin_fee < ZERO or self.admin_fee >= self.amount:
            raise ValueError("Withdrawal admin_fee must be non-negative and below the amount")

    @property
    def net_amount(self) -> Decimal:
        return self.amount - self.admin_fee

    @property
    def bank_details(self) -> BankDetails:
        return BankDetails(
            bank_name=self.bank_name,
            bank_code=self.bank_code,
            account_number=self.account_number,
            account_holder=self.account_holder,
        )

    def can_transition_to(self, new_status: WithdrawalStatus) -> bool:
        current = WithdrawalStatus(self.status)
        return new_status in VALID_WITHDRAWAL_TRANSITIONS.get(current, set())

    def is_terminal(self) -> bool:
        return self.status in (WithdrawalStatus.PAID.value, WithdrawalStatus.REJECTED.value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "amount": str(self.amount),
            "admin_fee": str(self.admin_fee),
            "bank_name": self.bank_name,
            "bank_code": self.bank_code,
            "account_number": self.account_number,
            "account_holder": self.account_holder,
            "status": self.status,
            "requested_at": format_datetime(self.requested_at),
            "processed_at": format_datetime(self.processed_at),
            "chip_payout_id": self.chip_payout_id,
            "chip_status": self.chip_status,
            "chip_error_message": self.chip_error_message,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Withdrawal":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            amount=to_money(str(data["amount"])),
            admin_fee=to_money(str(data.get("admin_fee") or "0")),
            bank_name=data.get("bank_name") or "",
            bank_code=data.get("bank_code") or "",
            account_number=data.get("account_number") or "",
            account_holder=data.get("account_holder") or "",
            status=data.get("status", "pending"),
            requested_at=parse_datetime(data.get("requested_at")) or utc_now(),
            processed_at=parse_datetime(data.get("processed_at")),
            chip_payout_id=data.get("chip_payout_id"),
            chip_status=data.get("chip_status"),
            chip_error_message=data.get("chip_error_message"),
        )
