"""
Ledger data models.

Transactions and earnings are append-only money-movement facts. Neither
is updated once written; a failed multi-step operation removes the
records it created as part of its own rollback and nothing else does.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from talentpay.pricing import ZERO, to_money
from talentpay.utils import format_datetime, new_id, parse_datetime, utc_now


class TransactionType(Enum):
    """Direction of a transaction relative to the user's balance."""

    CREDIT = "credit"
    DEBIT = "debit"


class TransactionCategory(Enum):
    """What a transaction is for.

    Set when the transaction is created; never inferred from the description.
    """

    TALENT_PAYMENT = "talent_payment"
    ADMIN_FEE = "admin_fee"
    WALLET_TOPUP = "wallet_topup"
    CAMPAIGN_PAYOUT = "campaign_payout"
    WITHDRAWAL = "withdrawal"


class EarningStatus(Enum):
    """Earning lifecycle status."""

    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


@dataclass
class Transaction:
    """A single credit or debit against one user's balance.

    Attributes:
        id: Unique identifier (UUID)
        user_id: Profile the money moved for
        type: credit or debit
        amount: Positive amount
        category: Explicit transaction category
        description: Human-readable label shown in statements
        related_order_id: Order this transaction settles, if any
        related_withdrawal_id: Withdrawal this transaction settles, if any
        external_reference: Payment gateway reference (top-ups)
        created_at: When the transaction was recorded
    """

    id: str
    user_id: str
    type: str
    amount: Decimal
    category: str
    description: str = ""
    related_order_id: Optional[str] = None
    related_withdrawal_id: Optional[str] = None
    external_reference: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if isinstance(self.type, TransactionType):
            self.type = self.type.value
        if isinstance(self.category, TransactionCategory):
            self.category = self.category.value

        valid_types = {t.value for t in TransactionType}
        if self.type not in valid_types:
            raise ValueError(f"Invalid transaction type: {self.type}. Must be one of {valid_types}")
        valid_categories = {c.value for c in TransactionCategory}
        if self.category not in valid_categories:
            raise ValueError(
                f"Invalid transaction category: {self.category}. Must be one of {valid_categories}"
            )

        self.amount = to_money(self.amount)
        if self.amount <= ZERO:
            raise ValueError("Transaction amount must be positive")
        if not self.user_id:
            raise ValueError("Transaction user_id is required")

    @classmethod
    def credit(cls, user_id: str, amount: Decimal, category: TransactionCategory, description: str, **kwargs) -> "Transaction":
        return cls(
            id=new_id(),
            user_id=user_id,
            type=TransactionType.CREDIT,
            amount=amount,
            category=category,
            description=description,
            **kwargs,
        )

    @classmethod
    def debit(cls, user_id: str, amount: Decimal, category: TransactionCategory, description: str, **kwargs) -> "Transaction":
        return cls(
            id=new_id(),
            user_id=user_id,
            type=TransactionType.DEBIT,
            amount=amount,
            category=category,
            description=description,
            **kwargs,
        )

    @property
    def is_credit(self) -> bool:
        return self.type == TransactionType.CREDIT.value

    @property
    def signed_amount(self) -> Decimal:
        """Amount as it affects the user's balance."""
        return self.amount if self.is_credit else -self.amount

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "amount": str(self.amount),
            "category": self.category,
            "description": self.description,
            "related_order_id": self.related_order_id,
            "related_withdrawal_id": self.related_withdrawal_id,
            "external_reference": self.external_reference,
            "created_at": format_datetime(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            type=data["type"],
            amount=to_money(str(data["amount"])),
            category=data["category"],
            description=data.get("description") or "",
            related_order_id=data.get("related_order_id"),
            related_withdrawal_id=data.get("related_withdrawal_id"),
            external_reference=data.get("external_reference"),
            created_at=parse_datetime(data.get("created_at")) or utc_now(),
        )


@dataclass
class Earning:
    """Money owed or paid to a talent for one order.

    At most one non-cancelled earning exists per order, and its amount
    equals the order's payout.
    """

    id: str
    talent_id: str
    order_id: str
    amount: Decimal
    campaign_title: str = ""
    status: str = "pending"
    earned_at: datetime = field(default_factory=utc_now)
    paid_at: Optional[datetime] = None

    def __post_init__(self):
        if isinstance(self.status, EarningStatus):
            self.status = self.status.value
        valid_statuses = {s.value for s in EarningStatus}
        if self.status not in valid_statuses:
            raise ValueError(f"Invalid earning status: {self.status}. Must be one of {valid_statuses}")
        self.amount = to_money(self.amount)
        if self.amount <= ZERO:
            raise ValueError("Earning amount must be positive")
        if self.status == EarningStatus.PAID.value and self.paid_at is None:
            raise ValueError("Paid earnings require paid_at")

    @property
    def is_active(self) -> bool:
        return self.status != EarningStatus.CANCELLED.value

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "talent_id": self.talent_id,
            "order_id": self.order_id,
            "campaign_title": self.campaign_title,
            "amount": str(self.amount),
            "status": self.status,
            "earned_at": format_datetime(self.earned_at),
            "paid_at": format_datetime(self.paid_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Earning":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            talent_id=data["talent_id"],
            order_id=data["order_id"],
            amount=to_money(str(data["amount"])),
            campaign_title=data.get("campaign_title") or "",
            status=data.get("status", "pending"),
            earned_at=parse_datetime(data.get("earned_at")) or utc_now(),
            paid_at=parse_datetime(data.get("paid_at")),
        )
