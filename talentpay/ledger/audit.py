"""
Ledger audit.

The stored balance fields on profiles are the live source of truth; the
transaction log is the audit trail. These checks recompute balances from
the log so operators can spot drift between the two.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from talentpay.config import CommerceConfig
from talentpay.errors import ProfileNotFoundError
from talentpay.ledger.models import TransactionCategory
from talentpay.pricing import ZERO
from talentpay.wallet.models import ProfileRole

if TYPE_CHECKING:
    from talentpay.storage.base import CommerceStorage

logger = logging.getLogger(__name__)


@dataclass
class PlatformFeeReport:
    """Platform account totals compared against fees implied by the ledger."""

    platform_balance: Decimal
    settlement_fees: Decimal
    withdrawal_fees: Decimal
    expected_fees: Decimal

    @property
    def total_fees(self) -> Decimal:
        return self.settlement_fees + self.withdrawal_fees

    @property
    def consistent(self) -> bool:
        return self.platform_balance == self.total_fees == self.expected_fees

    def to_dict(self) -> dict:
        return {
            "platform_balance": str(self.platform_balance),
            "settlement_fees": str(self.settlement_fees),
            "withdrawal_fees": str(self.withdrawal_fees),
            "expected_fees": str(self.expected_fees),
            "consistent": self.consistent,
        }


class LedgerAudit:
    """Recompute balances from the transaction log."""

    def __init__(self, storage: "CommerceStorage", config: Optional[CommerceConfig] = None):
        self.storage = storage
        self.config = config or CommerceConfig()

    def derived_balance(self, user_id: str) -> Decimal:
        """Sum of credits minus debits for a user."""
        total = ZERO
        for txn in self.storage.list_transactions(user_id=user_id, limit=100_000):
            total += txn.signed_amount
        return total

    def platform_fee_report(self) -> PlatformFeeReport:
        """Compare the platform account against fees expected from settlements and withdrawals.

        Expected fees are recomputed from the counterpart records: campaign
        payout debits carry payout + fee, and paid withdrawals carry their
        admin_fee.
        """
        platform_id = self.config.platform_account_id
        settlement_fees = ZERO
        withdrawal_fees = ZERO
        platform_balance = ZERO
        for txn in self.storage.list_transactions(user_id=platform_id, limit=100_000):
            platform_balance += txn.signed_amount
            if txn.category != TransactionCategory.ADMIN_FEE.value:
                continue
            if txn.related_withdrawal_id:
                withdrawal_fees += txn.amount
            else:
                settlement_fees += txn.amount

        expected = ZERO
        for order in self.storage.list_orders(status="completed", limit=100_000):
            payouts = self.storage.list_transactions(
                related_order_id=order.id, category=TransactionCategory.TALENT_PAYMENT
            )
            charges = self.storage.list_transactions(
                related_order_id=order.id, category=TransactionCategory.CAMPAIGN_PAYOUT
            )
            expected += sum((c.amount for c in charges), ZERO) - sum((p.amount for p in payouts), ZERO)
        for withdrawal in self.storage.list_withdrawals(status="paid", limit=100_000):
            expected += withdrawal.admin_fee

        report = PlatformFeeReport(
            platform_balance=platform_balance,
            settlement_fees=settlement_fees,
            withdrawal_fees=withdrawal_fees,
            expected_fees=expected,
        )
        if not report.consistent:
            logger.warning(f"Platform fee mismatch | {report.to_dict()}")
        return report

    def balance_drift(self, user_id: str) -> Decimal:
        """Stored balance minus the balance derived from the log.

        Founders are checked on wallet_balance, talents on total_earnings.
        Zero means the two agree.
        """
        profile = self.storage.get_profile(user_id)
        if profile is None:
            raise ProfileNotFoundError(f"Profile {user_id} not found")
        field = "total_earnings" if profile.role == ProfileRole.TALENT.value else "wallet_balance"
        drift = profile.balance(field) - self.derived_balance(user_id)
        if drift != ZERO:
            logger.warning(f"Balance drift | user={user_id} | field={field} | drift={drift}")
        return drift
