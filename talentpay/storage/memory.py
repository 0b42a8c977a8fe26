"""
In-memory storage for TalentPay.

Records are deep-copied on the way in and out so callers can never mutate
stored state without going through a storage call. A single re-entrant
lock makes every conditional write atomic across threads.
"""

import copy
import threading
from decimal import Decimal
from typing import Dict, List, Optional

from talentpay.errors import DuplicateOrderError, InsufficientBalance, ProfileNotFoundError
from talentpay.ledger.models import Earning, EarningStatus, Transaction, TransactionCategory
from talentpay.orders.models import ApplicationStatus, CampaignApplication, Order, OrderStateTransition, OrderStatus
from talentpay.pricing import to_money
from talentpay.utils import utc_now
from talentpay.wallet.models import BALANCE_FIELDS, Profile, Withdrawal, WithdrawalStatus


def _value(status) -> Optional[str]:
    return status.value if hasattr(status, "value") else status


class InMemoryCommerceStorage:
    """In-memory storage for testing and local development."""

    def __init__(self):
        """Initialize empty storage."""
        self._lock = threading.RLock()
        self._orders: Dict[str, Order] = {}
        self._applications: Dict[str, CampaignApplication] = {}
        self._transitions: Dict[str, OrderStateTransition] = {}
        self._transactions: Dict[str, Transaction] = {}
        self._earnings: Dict[str, Earning] = {}
        self._withdrawals: Dict[str, Withdrawal] = {}
        self._profiles: Dict[str, Profile] = {}

    # === Orders ===

    def save_order(self, order: Order) -> str:
        """Insert a new order."""
        with self._lock:
            for existing in self._orders.values():
                if (
                    existing.id != order.id
                    and existing.campaign_id == order.campaign_id
                    and existing.talent_id == order.talent_id
                ):
                    raise DuplicateOrderError(
                        f"Order already exists for campaign {order.campaign_id} and talent {order.talent_id}"
                    )
            self._orders[order.id] = copy.deepcopy(order)
            return order.id

    def delete_order(self, order_id: str) -> bool:
        with self._lock:
            return self._orders.pop(order_id, None) is not None

    def get_order(self, order_id: str) -> Optional[Order]:
        """Get an order by ID."""
        with self._lock:
            order = self._orders.get(order_id)
            return copy.deepcopy(order) if order else None

    def find_order(self, campaign_id: str, talent_id: str) -> Optional[Order]:
        """Get the order for a campaign and talent."""
        with self._lock:
            for order in self._orders.values():
                if order.campaign_id == campaign_id and order.talent_id == talent_id:
                    return copy.deepcopy(order)
            return None

    def list_orders(
        self,
        founder_id: Optional[str] = None,
        talent_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Order]:
        """List orders with optional filters."""
        with self._lock:
            orders = list(self._orders.values())

        if founder_id is not None:
            orders = [o for o in orders if o.founder_id == founder_id]
        if talent_id is not None:
            orders = [o for o in orders if o.talent_id == talent_id]
        if status is not None:
            orders = [o for o in orders if o.status == _value(status)]

        orders.sort(key=lambda o: o.created_at or utc_now(), reverse=True)
        return [copy.deepcopy(o) for o in orders[offset : offset + limit]]

    def compare_and_set_order(self, order: Order, expected_status: str, expected_version: int) -> bool:
        """Replace an order only if status and version still match."""
        with self._lock:
            current = self._orders.get(order.id)
            if current is None:
                return False
            if current.status != _value(expected_status) or current.version != expected_version:
                return False
            self._orders[order.id] = copy.deepcopy(order)
            return True

    # === Campaign applications ===

    def save_application(self, application: CampaignApplication) -> str:
        with self._lock:
            self._applications[application.id] = copy.deepcopy(application)
            return application.id

    def get_application(self, campaign_id: str, talent_id: str) -> Optional[CampaignApplication]:
        with self._lock:
            for application in self._applications.values():
                if application.campaign_id == campaign_id and application.talent_id == talent_id:
                    return copy.deepcopy(application)
            return None

    def update_application_status(
        self,
        application_id: str,
        status: ApplicationStatus,
        expected_status: ApplicationStatus,
    ) -> bool:
        """Change the status only if it still matches ``expected_status``."""
        with self._lock:
            current = self._applications.get(application_id)
            if current is None or current.status != _value(expected_status):
                return False
            current.status = _value(status)
            return True

    # === Order transitions ===

    def save_order_transition(self, transition: OrderStateTransition) -> str:
        with self._lock:
            self._transitions[transition.id] = copy.deepcopy(transition)
            return transition.id

    def delete_order_transition(self, transition_id: str) -> bool:
        with self._lock:
            return self._transitions.pop(transition_id, None) is not None

    def get_order_transitions(self, order_id: str) -> List[OrderStateTransition]:
        with self._lock:
            transitions = [t for t in self._transitions.values() if t.order_id == order_id]
        transitions.sort(key=lambda t: t.created_at)
        return [copy.deepcopy(t) for t in transitions]

    # === Transactions ===

    def save_transaction(self, transaction: Transaction) -> str:
        with self._lock:
            self._transactions[transaction.id] = copy.deepcopy(transaction)
            return transaction.id

    def delete_transaction(self, transaction_id: str) -> bool:
        with self._lock:
            return self._transactions.pop(transaction_id, None) is not None

    def list_transactions(
        self,
        user_id: Optional[str] = None,
        category: Optional[TransactionCategory] = None,
        related_order_id: Optional[str] = None,
        related_withdrawal_id: Optional[str] = None,
        external_reference: Optional[str] = None,
        limit: int = 1000,
    ) -> List[Transaction]:
        """List transactions with optional filters."""
        with self._lock:
            txns = list(self._transactions.values())

        if user_id is not None:
            txns = [t for t in txns if t.user_id == user_id]
        if category is not None:
            txns = [t for t in txns if t.category == _value(category)]
        if related_order_id is not None:
            txns = [t for t in txns if t.related_order_id == related_order_id]
        if related_withdrawal_id is not None:
            txns = [t for t in txns if t.related_withdrawal_id == related_withdrawal_id]
        if external_reference is not None:
            txns = [t for t in txns if t.external_reference == external_reference]

        txns.sort(key=lambda t: t.created_at)
        return [copy.deepcopy(t) for t in txns[:limit]]

    # === Earnings ===

    def save_earning(self, earning: Earning) -> str:
        with self._lock:
            self._earnings[earning.id] = copy.deepcopy(earning)
            return earning.id

    def delete_earning(self, earning_id: str) -> bool:
        with self._lock:
            return self._earnings.pop(earning_id, None) is not None

    def list_earnings(
        self,
        talent_id: Optional[str] = None,
        order_id: Optional[str] = None,
        status: Optional[EarningStatus] = None,
    ) -> List[Earning]:
        with self._lock:
            earnings = list(self._earnings.values())

        if talent_id is not None:
            earnings = [e for e in earnings if e.talent_id == talent_id]
        if order_id is not None:
            earnings = [e for e in earnings if e.order_id == order_id]
        if status is not None:
            earnings = [e for e in earnings if e.status == _value(status)]

        earnings.sort(key=lambda e: e.earned_at, reverse=True)
        return [copy.deepcopy(e) for e in earnings]

    # === Withdrawals ===

    def save_withdrawal(self, withdrawal: Withdrawal) -> str:
        with self._lock:
            self._withdrawals[withdrawal.id] = copy.deepcopy(withdrawal)
            return withdrawal.id

    def get_withdrawal(self, withdrawal_id: str) -> Optional[Withdrawal]:
        with self._lock:
            withdrawal = self._withdrawals.get(withdrawal_id)
            return copy.deepcopy(withdrawal) if withdrawal else None

    def update_withdrawal(self, withdrawal: Withdrawal, expected_status: str) -> bool:
        with self._lock:
            current = self._withdrawals.get(withdrawal.id)
            if current is None or current.status != _value(expected_status):
                return False
            self._withdrawals[withdrawal.id] = copy.deepcopy(withdrawal)
            return True

    def list_withdrawals(
        self,
        user_id: Optional[str] = None,
        status: Optional[WithdrawalStatus] = None,
        limit: int = 100,
    ) -> List[Withdrawal]:
        with self._lock:
            withdrawals = list(self._withdrawals.values())

        if user_id is not None:
            withdrawals = [w for w in withdrawals if w.user_id == user_id]
        if status is not None:
            withdrawals = [w for w in withdrawals if w.status == _value(status)]

        withdrawals.sort(key=lambda w: w.requested_at, reverse=True)
        return [copy.deepcopy(w) for w in withdrawals[:limit]]

    # === Profiles ===

    def save_profile(self, profile: Profile) -> str:
        with self._lock:
            self._profiles[profile.id] = copy.deepcopy(profile)
            return profile.id

    def get_profile(self, user_id: str) -> Optional[Profile]:
        with self._lock:
            profile = self._profiles.get(user_id)
            return copy.deepcopy(profile) if profile else None

    def adjust_balance(
        self,
        user_id: str,
        field: str,
        delta: Decimal,
        floor: Optional[Decimal] = None,
    ) -> Decimal:
        """Add ``delta`` to a balance field under the storage lock."""
        if field not in BALANCE_FIELDS:
            raise ValueError(f"Unknown balance field: {field}")
        delta = to_money(delta)
        with self._lock:
            profile = self._profiles.get(user_id)
            if profile is None:
                raise ProfileNotFoundError(f"Profile {user_id} not found")
            current = getattr(profile, field)
            updated = current + delta
            if floor is not None and updated < floor:
                raise InsufficientBalance(user_id, required=-delta, available=current - floor, field=field)
            setattr(profile, field, updated)
            return updated
