"""
Review settlement.

Approving a review completes the order and moves money between three
parties in one unit:

    talent   +payout          (talent_payment)
    founder  -(payout + fee)  (campaign_payout)
    platform +fee             (admin_fee)

together with the talent's paid Earning, the talent's total_earnings
increment and the founder's wallet_balance decrement. Either all of it
is recorded or none of it is.

Rejecting a review sends the order back to ``delivered`` for a revision
and asks media storage to delete the uploaded files.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, List, Optional

from talentpay.config import CommerceConfig
from talentpay.errors import (
    InsufficientBalance,
    InvalidTransition,
    OrderNotFoundError,
    ProfileNotFoundError,
    UnauthorizedError,
)
from talentpay.ledger.models import Earning, EarningStatus, Transaction, TransactionCategory
from talentpay.ledger.unit import LedgerUnit
from talentpay.notifications import NotificationType, notify
from talentpay.orders.models import Order, OrderStateTransition, OrderStatus
from talentpay.pricing import ZERO, SettlementQuote, quote_settlement
from talentpay.utils import new_id, utc_now

if TYPE_CHECKING:
    from talentpay.media import MediaStorage
    from talentpay.notifications import NotificationDispatcher
    from talentpay.storage.base import CommerceStorage

logger = logging.getLogger(__name__)


@dataclass
class SettlementResult:
    """Records written by an approved review."""

    order: Order
    earning: Earning
    quote: SettlementQuote
    transactions: List[Transaction] = field(default_factory=list)


@dataclass
class RejectionResult:
    """Outcome of a rejected review.

    ``failed_media`` lists URLs whose deletion failed; the order is already
    back in ``delivered`` and those files need cleanup.
    """

    order: Order
    deleted_media: List[str] = field(default_factory=list)
    failed_media: List[str] = field(default_factory=list)


class SettlementService:
    """Approve or reject submitted reviews."""

    def __init__(
        self,
        storage: "CommerceStorage",
        config: Optional[CommerceConfig] = None,
        media: Optional["MediaStorage"] = None,
        notifier: Optional["NotificationDispatcher"] = None,
    ):
        self.storage = storage
        self.config = config or CommerceConfig()
        self.media = media
        self.notifier = notifier

    def _fee_percent(self) -> str:
        return f"{self.config.admin_fee_rate * 100:.0f}"

    def _load_for_review(self, order_id: str, founder_id: str, target: OrderStatus) -> Order:
        order = self.storage.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(f"Order {order_id} not found")
        if founder_id != order.founder_id:
            raise UnauthorizedError("Only the campaign founder can review this submission")
        if order.status != OrderStatus.REVIEW_SUBMITTED.value:
            raise InvalidTransition(order_id, order.status, target.value, reason="no review awaiting approval")
        return order

    def quote(self, order_id: str, founder_id: str) -> SettlementQuote:
        """Settlement split for an order, shown to its founder before approval.

        Raises:
            OrderNotFoundError: If the order does not exist
            UnauthorizedError: If caller is not the order's founder
        """
        order = self.storage.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(f"Order {order_id} not found")
        if founder_id != order.founder_id:
            raise UnauthorizedError("Only the campaign founder can view the settlement quote")
        return quote_settlement(order.payout, self.config.admin_fee_rate)

    def approve_review(self, order_id: str, founder_id: str) -> SettlementResult:
        """Approve a submitted review and settle payment.

        Raises:
            OrderNotFoundError: If the order does not exist
            UnauthorizedError: If caller is not the order's founder
            InvalidTransition: If the order is not review_submitted, or a
                concurrent approve/reject won the race
            InsufficientBalance: If the founder cannot cover payout + fee
            LedgerWriteFailure: If a write failed; rolled_back says whether
                the prior state was fully restored
        """
        order = self._load_for_review(order_id, founder_id, OrderStatus.COMPLETED)

        if any(e.is_active for e in self.storage.list_earnings(order_id=order.id)):
            raise InvalidTransition(
                order.id, order.status, OrderStatus.COMPLETED.value, reason="order already has an earning"
            )

        quote = quote_settlement(order.payout, self.config.admin_fee_rate)

        founder = self.storage.get_profile(order.founder_id)
        if founder is None:
            raise ProfileNotFoundError(f"Profile {order.founder_id} not found")
        if self.storage.get_profile(order.talent_id) is None:
            raise ProfileNotFoundError(f"Profile {order.talent_id} not found")
        if founder.wallet_balance < quote.founder_charge:
            raise InsufficientBalance(
                order.founder_id, required=quote.founder_charge, available=founder.wallet_balance
            )

        now = utc_now()
        title = order.campaign_title or order.campaign_id
        pct = self._fee_percent()

        completed = replace(
            order,
            status=OrderStatus.COMPLETED.value,
            version=order.version + 1,
            updated_at=now,
            completed_at=now,
        )
        earning = Earning(
            id=new_id(),
            talent_id=order.talent_id,
            order_id=order.id,
            amount=quote.payout,
            campaign_title=order.campaign_title,
            status=EarningStatus.PAID,
            earned_at=now,
            paid_at=now,
        )
        transactions = [
            Transaction.credit(
                order.talent_id,
                quote.payout,
                TransactionCategory.TALENT_PAYMENT,
                f"Payment Received - {title}",
                related_order_id=order.id,
                created_at=now,
            ),
            Transaction.debit(
                order.founder_id,
                quote.founder_charge,
                TransactionCategory.CAMPAIGN_PAYOUT,
                f"Campaign Payout - {title} (includes {pct}% admin fee)",
                related_order_id=order.id,
                created_at=now,
            ),
        ]
        if quote.admin_fee > ZERO:
            transactions.append(
                Transaction.credit(
                    self.config.platform_account_id,
                    quote.admin_fee,
                    TransactionCategory.ADMIN_FEE,
                    f"Admin Fee ({pct}%) - {title}",
                    related_order_id=order.id,
                    created_at=now,
                )
            )

        with LedgerUnit(self.storage, self.config, "approve_review", order.id) as unit:
            unit.update_order(order, completed)
            unit.add_earning(earning)
            for txn in transactions:
                unit.add_transaction(txn)
            unit.adjust_balance(order.talent_id, "total_earnings", quote.payout)
            unit.adjust_balance(order.founder_id, "wallet_balance", -quote.founder_charge, floor=ZERO)
            unit.add_order_transition(
                OrderStateTransition.record(
                    order.id,
                    order.status,
                    completed.status,
                    founder_id,
                    payout=str(quote.payout),
                    admin_fee=str(quote.admin_fee),
                )
            )

        logger.info(
            f"Approved review for order {order.id} | talent={order.talent_id} | "
            f"payout={quote.payout} | fee={quote.admin_fee} | charged={quote.founder_charge}"
        )
        notify(
            self.notifier,
            order.talent_id,
            "Payment Received",
            f"Your review for {title} was approved. RM{quote.payout} has been added to your earnings.",
            NotificationType.PAYMENT,
            related_entity_id=order.id,
            related_entity_type="order",
        )
        return SettlementResult(order=completed, earning=earning, quote=quote, transactions=transactions)

    def reject_review(self, order_id: str, founder_id: str, reason: Optional[str] = None) -> RejectionResult:
        """Send a submitted review back for revision.

        The order returns to ``delivered`` with its submission cleared, then
        one delete request is issued per uploaded media item. Deletion
        failures are reported in the result and do not undo the rejection.

        Raises:
            OrderNotFoundError: If the order does not exist
            UnauthorizedError: If caller is not the order's founder
            InvalidTransition: If the order is not review_submitted
        """
        order = self._load_for_review(order_id, founder_id, OrderStatus.DELIVERED)
        media = list(order.review_submission.media) if order.review_submission else []

        reverted = replace(
            order,
            status=OrderStatus.DELIVERED.value,
            version=order.version + 1,
            updated_at=utc_now(),
            review_submission=None,
        )
        with LedgerUnit(self.storage, self.config, "reject_review", order.id) as unit:
            unit.update_order(order, reverted)
            unit.add_order_transition(
                OrderStateTransition.record(
                    order.id,
                    order.status,
                    reverted.status,
                    founder_id,
                    reason=reason,
                    media_count=len(media),
                )
            )

        result = RejectionResult(order=reverted)
        for item in media:
            if self.media is None:
                logger.warning(f"No media storage configured; cannot delete {item.url}")
                result.failed_media.append(item.url)
                continue
            try:
                self.media.delete(item.url)
                result.deleted_media.append(item.url)
            except Exception as e:
                logger.warning(f"Review media delete failed | order={order.id} | url={item.url} | error={e}")
                result.failed_media.append(item.url)

        logger.info(
            f"Rejected review for order {order.id} | deleted={len(result.deleted_media)} | "
            f"failed={len(result.failed_media)}"
        )
        message = f"Your review for {order.campaign_title or order.campaign_id} needs changes."
        if reason:
            message = f"{message} Feedback: {reason}"
        notify(
            self.notifier,
            order.talent_id,
            "Revision Requested",
            message,
            NotificationType.REVIEW,
            related_entity_id=order.id,
            related_entity_type="order",
        )
        return result
