"""
Supabase storage for TalentPay.

Conditional writes are expressed as ``update(...).eq(...)`` filters: an
update that matches no row returned no data and therefore lost the race.
"""

import logging
from decimal import Decimal
from typing import List, Optional

from supabase import Client

from talentpay.errors import (
    DuplicateOrderError,
    InsufficientBalance,
    ProfileNotFoundError,
    StorageConflictError,
)
from talentpay.ledger.models import Earning, EarningStatus, Transaction, TransactionCategory
from talentpay.orders.models import ApplicationStatus, CampaignApplication, Order, OrderStateTransition, OrderStatus
from talentpay.pricing import to_money
from talentpay.wallet.models import BALANCE_FIELDS, Profile, Withdrawal, WithdrawalStatus

logger = logging.getLogger(__name__)

# =============================================================================
# Table Names
# =============================================================================

ORDERS_TABLE = "orders"
APPLICATIONS_TABLE = "campaign_applications"
ORDER_TRANSITIONS_TABLE = "order_state_transitions"
TRANSACTIONS_TABLE = "transactions"
EARNINGS_TABLE = "earnings"
WITHDRAWALS_TABLE = "withdrawals"
PROFILES_TABLE = "profiles"

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"


def _value(status) -> Optional[str]:
    return status.value if hasattr(status, "value") else status


class SupabaseCommerceStorage:
    """Supabase-backed storage."""

    def __init__(self, client: Client, max_attempts: int = 5):
        self.client = client
        self.max_attempts = max_attempts

    # =========================================================================
    # Orders
    # =========================================================================

    def save_order(self, order: Order) -> str:
        if self.find_order(order.campaign_id, order.talent_id):
            raise DuplicateOrderError(
                f"Order already exists for campaign {order.campaign_id} and talent {order.talent_id}"
            )
        try:
            self.client.table(ORDERS_TABLE).insert(order.to_dict()).execute()
        except Exception as e:
            if UNIQUE_VIOLATION in str(e):
                raise DuplicateOrderError(
                    f"Order already exists for campaign {order.campaign_id} and talent {order.talent_id}"
                ) from e
            raise
        return order.id

    def delete_order(self, order_id: str) -> bool:
        result = self.client.table(ORDERS_TABLE).delete().eq("id", order_id).execute()
        return len(result.data) > 0

    def get_order(self, order_id: str) -> Optional[Order]:
        result = self.client.table(ORDERS_TABLE).select("*").eq("id", order_id).execute()
        return Order.from_dict(result.data[0]) if result.data else None

    def find_order(self, campaign_id: str, talent_id: str) -> Optional[Order]:
        result = (
            self.client.table(ORDERS_TABLE)
            .select("*")
            .eq("campaign_id", campaign_id)
            .eq("talent_id", talent_id)
            .limit(1)
            .execute()
        )
        return Order.from_dict(result.data[0]) if result.data else None

    def list_orders(
        self,
        founder_id: Optional[str] = None,
        talent_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Order]:
        query = self.client.table(ORDERS_TABLE).select("*")
        if founder_id is not None:
            query = query.eq("founder_id", founder_id)
        if talent_id is not None:
            query = query.eq("talent_id", talent_id)
        if status is not None:
            query = query.eq("status", _value(status))
        query = query.order("created_at", desc=True).range(offset, offset + limit - 1)
        result = query.execute()
        return [Order.from_dict(row) for row in result.data]

    def compare_and_set_order(self, order: Order, expected_status: str, expected_version: int) -> bool:
        data = order.to_dict()
        data.pop("id")
        result = (
            self.client.table(ORDERS_TABLE)
            .update(data)
            .eq("id", order.id)
            .eq("status", _value(expected_status))
            .eq("version", expected_version)
            .execute()
        )
        return bool(result.data)

    # =========================================================================
    # Campaign applications
    # =========================================================================

    def save_application(self, application: CampaignApplication) -> str:
        self.client.table(APPLICATIONS_TABLE).upsert(application.to_dict()).execute()
        return application.id

    def get_application(self, campaign_id: str, talent_id: str) -> Optional[CampaignApplication]:
        result = (
            self.client.table(APPLICATIONS_TABLE)
            .select("*")
            .eq("campaign_id", campaign_id)
            .eq("talent_id", talent_id)
            .limit(1)
            .execute()
        )
        return CampaignApplication.from_dict(result.data[0]) if result.data else None

    def update_application_status(
        self,
        application_id: str,
        status: ApplicationStatus,
        expected_status: ApplicationStatus,
    ) -> bool:
        result = (
            self.client.table(APPLICATIONS_TABLE)
            .update({"status": _value(status)})
            .eq("id", application_id)
            .eq("status", _value(expected_status))
            .execute()
        )
        return bool(result.data)

    # =========================================================================
    # Order transitions
    # =========================================================================

    def save_order_transition(self, transition: OrderStateTransition) -> str:
        self.client.table(ORDER_TRANSITIONS_TABLE).insert(transition.to_dict()).execute()
        return transition.id

    def delete_order_transition(self, transition_id: str) -> bool:
        result = self.client.table(ORDER_TRANSITIONS_TABLE).delete().eq("id", transition_id).execute()
        return len(result.data) > 0

    def get_order_transitions(self, order_id: str) -> List[OrderStateTransition]:
        result = (
            self.client.table(ORDER_TRANSITIONS_TABLE)
            .select("*")
            .eq("order_id", order_id)
            .order("created_at")
            .execute()
        )
        return [OrderStateTransition.from_dict(row) for row in result.data]

    # =========================================================================
    # Transactions
    # =========================================================================

    def save_transaction(self, transaction: Transaction) -> str:
        self.client.table(TRANSACTIONS_TABLE).insert(transaction.to_dict()).execute()
        return transaction.id

    def delete_transaction(self, transaction_id: str) -> bool:
        result = self.client.table(TRANSACTIONS_TABLE).delete().eq("id", transaction_id).execute()
        return len(result.data) > 0

    def list_transactions(
        self,
        user_id: Optional[str] = None,
        category: Optional[TransactionCategory] = None,
        related_order_id: Optional[str] = None,
        related_withdrawal_id: Optional[str] = None,
        external_reference: Optional[str] = None,
        limit: int = 1000,
    ) -> List[Transaction]:
        query = self.client.table(TRANSACTIONS_TABLE).select("*")
        if user_id is not None:
            query = query.eq("user_id", user_id)
        if category is not None:
            query = query.eq("category", _value(category))
        if related_order_id is not None:
            query = query.eq("related_order_id", related_order_id)
        if related_withdrawal_id is not None:
            query = query.eq("related_withdrawal_id", related_withdrawal_id)
        if external_reference is not None:
            query = query.eq("external_reference", external_reference)
        result = query.order("created_at").limit(limit).execute()
        return [Transaction.from_dict(row) for row in result.data]

    # =========================================================================
    # Earnings
    # =========================================================================

    def save_earning(self, earning: Earning) -> str:
        self.client.table(EARNINGS_TABLE).insert(earning.to_dict()).execute()
        return earning.id

    def delete_earning(self, earning_id: str) -> bool:
        result = self.client.table(EARNINGS_TABLE).delete().eq("id", earning_id).execute()
        return len(result.data) > 0

    def list_earnings(
        self,
        talent_id: Optional[str] = None,
        order_id: Optional[str] = None,
        status: Optional[EarningStatus] = None,
    ) -> List[Earning]:
        query = self.client.table(EARNINGS_TABLE).select("*")
        if talent_id is not None:
            query = query.eq("talent_id", talent_id)
        if order_id is not None:
            query = query.eq("order_id", order_id)
        if status is not None:
            query = query.eq("status", _value(status))
        result = query.order("earned_at", desc=True).execute()
        return [Earning.from_dict(row) for row in result.data]

    # =========================================================================
    # Withdrawals
    # =========================================================================

    def save_withdrawal(self, withdrawal: Withdrawal) -> str:
        self.client.table(WITHDRAWALS_TABLE).insert(withdrawal.to_dict()).execute()
        return withdrawal.id

    def get_withdrawal(self, withdrawal_id: str) -> Optional[Withdrawal]:
        result = self.client.table(WITHDRAWALS_TABLE).select("*").eq("id", withdrawal_id).execute()
        return Withdrawal.from_dict(result.data[0]) if result.data else None

    def update_withdrawal(self, withdrawal: Withdrawal, expected_status: str) -> bool:
        data = withdrawal.to_dict()
        data.pop("id")
        result = (
            self.client.table(WITHDRAWALS_TABLE)
            .update(data)
            .eq("id", withdrawal.id)
            .eq("status", _value(expected_status))
            .execute()
        )
        return bool(result.data)

    def list_withdrawals(
        self,
        user_id: Optional[str] = None,
        status: Optional[WithdrawalStatus] = None,
        limit: int = 100,
    ) -> List[Withdrawal]:
        query = self.client.table(WITHDRAWALS_TABLE).select("*")
        if user_id is not None:
            query = query.eq("user_id", user_id)
        if status is not None:
            query = query.eq("status", _value(status))
        result = query.order("requested_at", desc=True).limit(limit).execute()
        return [Withdrawal.from_dict(row) for row in result.data]

    # =========================================================================
    # Profiles
    # =========================================================================

    def save_profile(self, profile: Profile) -> str:
        self.client.table(PROFILES_TABLE).upsert(profile.to_dict()).execute()
        return profile.id

    def get_profile(self, user_id: str) -> Optional[Profile]:
        result = self.client.table(PROFILES_TABLE).select("*").eq("id", user_id).execute()
        return Profile.from_dict(result.data[0]) if result.data else None

    def adjust_balance(
        self,
        user_id: str,
        field: str,
        delta: Decimal,
        floor: Optional[Decimal] = None,
    ) -> Decimal:
        """Read-modify-write guarded by the previously read value.

        The update only matches while the stored value is unchanged; a
        concurrent writer makes it match nothing and the loop re-reads.
        """
        if field not in BALANCE_FIELDS:
            raise ValueError(f"Unknown balance field: {field}")
        delta = to_money(delta)

        for attempt in range(1, self.max_attempts + 1):
            result = self.client.table(PROFILES_TABLE).select(f"id, {field}").eq("id", user_id).execute()
            if not result.data:
                raise ProfileNotFoundError(f"Profile {user_id} not found")

            current = to_money(str(result.data[0].get(field) or "0"))
            updated = current + delta
            if floor is not None and updated < floor:
                raise InsufficientBalance(user_id, required=-delta, available=current - floor, field=field)

            result = (
                self.client.table(PROFILES_TABLE)
                .update({field: str(updated)})
                .eq("id", user_id)
                .eq(field, str(current))
                .execute()
            )
            if result.data:
                return updated

            logger.info(f"Balance update conflict | user={user_id} | field={field} | attempt={attempt}")

        raise StorageConflictError(
            f"Could not update {field} for {user_id} after {self.max_attempts} attempts"
        )
