"""
Storage protocol for TalentPay.

Services only talk to storage through this protocol. Two backends ship:
an in-memory store for tests and local development, and a Supabase store.

Every write that races with other requests is conditional:
``compare_and_set_order``, ``update_application_status`` and
``update_withdrawal`` check the expected status (and version), and
``adjust_balance`` applies a delta to the current stored value rather
than writing back a fetched one.
"""

from decimal import Decimal
from typing import List, Optional, Protocol

from talentpay.ledger.models import Earning, EarningStatus, Transaction, TransactionCategory
from talentpay.orders.models import ApplicationStatus, CampaignApplication, Order, OrderStateTransition, OrderStatus
from talentpay.wallet.models import Profile, Withdrawal, WithdrawalStatus


class CommerceStorage(Protocol):
    """Protocol for TalentPay persistence backends."""

    # Orders
    def save_order(self, order: Order) -> str:
        """Insert a new order. Raises DuplicateOrderError for a repeated (campaign, talent)."""
        ...

    def delete_order(self, order_id: str) -> bool:
        """Remove an order inserted by a rolled-back operation."""
        ...

    def get_order(self, order_id: str) -> Optional[Order]:
        """Get an order by ID."""
        ...

    def find_order(self, campaign_id: str, talent_id: str) -> Optional[Order]:
        """Get the order for a campaign and talent, if any."""
        ...

    def list_orders(
        self,
        founder_id: Optional[str] = None,
        talent_id: Optional[str] = None,
        status: Optional[OrderStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Order]:
        """List orders with optional filters, newest first."""
        ...

    def compare_and_set_order(self, order: Order, expected_status: str, expected_version: int) -> bool:
        """Replace an order only if its stored status and version match.

        Returns True if the write was applied.
        """
        ...

    # Campaign applications
    def save_application(self, application: CampaignApplication) -> str:
        """Insert or replace an application."""
        ...

    def get_application(self, campaign_id: str, talent_id: str) -> Optional[CampaignApplication]:
        """Get a talent's application to a campaign, if any."""
        ...

    def update_application_status(
        self,
        application_id: str,
        status: ApplicationStatus,
        expected_status: ApplicationStatus,
    ) -> bool:
        """Change an application's status only if it is still ``expected_status``."""
        ...

    # Order transitions (audit log)
    def save_order_transition(self, transition: OrderStateTransition) -> str:
        """Save a state transition record. Returns the transition ID."""
        ...

    def delete_order_transition(self, transition_id: str) -> bool:
        """Remove a transition record written by a rolled-back operation."""
        ...

    def get_order_transitions(self, order_id: str) -> List[OrderStateTransition]:
        """Get all state transitions for an order, oldest first."""
        ...

    # Transactions
    def save_transaction(self, transaction: Transaction) -> str:
        """Append a transaction. Returns the transaction ID."""
        ...

    def delete_transaction(self, transaction_id: str) -> bool:
        """Remove a transaction written by a rolled-back operation."""
        ...

    def list_transactions(
        self,
        user_id: Optional[str] = None,
        category: Optional[TransactionCategory] = None,
        related_order_id: Optional[str] = None,
        related_withdrawal_id: Optional[str] = None,
        external_reference: Optional[str] = None,
        limit: int = 1000,
    ) -> List[Transaction]:
        """List transactions with optional filters, oldest first."""
        ...

    # Earnings
    def save_earning(self, earning: Earning) -> str:
        """Save an earning. Returns the earning ID."""
        ...

    def delete_earning(self, earning_id: str) -> bool:
        """Remove an earning written by a rolled-back operation."""
        ...

    def list_earnings(
        self,
        talent_id: Optional[str] = None,
        order_id: Optional[str] = None,
        status: Optional[EarningStatus] = None,
    ) -> List[Earning]:
        """List earnings with optional filters."""
        ...

    # Withdrawals
    def save_withdrawal(self, withdrawal: Withdrawal) -> str:
        """Insert a withdrawal. Returns the withdrawal ID."""
        ...

    def get_withdrawal(self, withdrawal_id: str) -> Optional[Withdrawal]:
        """Get a withdrawal by ID."""
        ...

    def update_withdrawal(self, withdrawal: Withdrawal, expected_status: str) -> bool:
        """Replace a withdrawal only if its stored status matches."""
        ...

    def list_withdrawals(
        self,
        user_id: Optional[str] = None,
        status: Optional[WithdrawalStatus] = None,
        limit: int = 100,
    ) -> List[Withdrawal]:
        """List withdrawals with optional filters, newest first."""
        ...

    # Profiles
    def save_profile(self, profile: Profile) -> str:
        """Insert or replace a profile."""
        ...

    def get_profile(self, user_id: str) -> Optional[Profile]:
        """Get a profile by user ID."""
        ...

    def adjust_balance(
        self,
        user_id: str,
        field: str,
        delta: Decimal,
        floor: Optional[Decimal] = None,
    ) -> Decimal:
        """Atomically add ``delta`` to a balance field and return the new value.

        Raises:
            ProfileNotFoundError: If the profile does not exist
            InsufficientBalance: If the result would fall below ``floor``
            StorageConflictError: If the update kept losing to concurrent writers
        """
        ...
