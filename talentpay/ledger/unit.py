"""
All-or-nothing ledger writes.

A LedgerUnit wraps a multi-record operation (settlement, top-up,
withdrawal reservation). Each write it performs registers an undo
closure; if the block raises, the undos run newest-first so the caller
observes the state from before the operation started.

Usage:
    with LedgerUnit(storage, config, "approve_review", order.id) as unit:
        unit.update_order(order, completed)
        unit.add_transaction(credit)
        unit.adjust_balance(talent_id, "total_earnings", payout)

If an undo cannot be applied after bounded retries the unit raises
LedgerWriteFailure(rolled_back=False) listing the outstanding steps, and
logs at CRITICAL for operator follow-up.
"""

import logging
from dataclasses import replace
from decimal import Decimal
from typing import TYPE_CHECKING, Callable, List, Optional, Tuple

from talentpay.config import CommerceConfig
from talentpay.errors import (
    ApplicationNotPendingError,
    CommerceError,
    InvalidTransition,
    LedgerWriteFailure,
    StorageConflictError,
)

if TYPE_CHECKING:
    from talentpay.ledger.models import Earning, Transaction
    from talentpay.orders.models import ApplicationStatus, CampaignApplication, Order, OrderStateTransition
    from talentpay.storage.base import CommerceStorage
    from talentpay.wallet.models import Withdrawal

logger = logging.getLogger(__name__)


class CompensationFailed(Exception):
    """An undo step reported that it could not restore prior state."""


class LedgerUnit:
    """Context manager that tracks writes and undoes them on failure."""

    def __init__(
        self,
        storage: "CommerceStorage",
        config: Optional[CommerceConfig] = None,
        operation: str = "ledger_write",
        subject_id: str = "",
    ):
        self.storage = storage
        self.config = config or CommerceConfig()
        self.operation = operation
        self.subject_id = subject_id
        self._undo: List[Tuple[str, Callable[[], None]]] = []
        self.committed = False

    def __enter__(self) -> "LedgerUnit":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc is None:
            self.committed = True
            self._undo.clear()
            return False

        log_exc = exc if isinstance(exc, CommerceError) else repr(exc)
        logger.warning(
            f"{self.operation} failed, rolling back {len(self._undo)} step(s) | "
            f"subject={self.subject_id} | error={log_exc}"
        )
        pending = self.rollback()
        if pending:
            logger.critical(
                f"{self.operation} rollback incomplete | subject={self.subject_id} | "
                f"pending={pending}"
            )
            raise LedgerWriteFailure(
                self.operation,
                self.subject_id,
                rolled_back=False,
                pending_compensations=pending,
            ) from exc

        if isinstance(exc, CommerceError):
            return False
        raise LedgerWriteFailure(self.operation, self.subject_id, rolled_back=True) from exc

    def rollback(self) -> List[str]:
        """Run registered undo steps newest-first.

        Returns the names of steps that still failed after retries.
        """
        pending = []
        while self._undo:
            name, undo = self._undo.pop()
            if not self._run_with_retries(name, undo):
                pending.append(name)
        return pending

    def _run_with_retries(self, name: str, action: Callable[[], None]) -> bool:
        attempts = self.config.compensation_max_attempts
        for attempt in range(1, attempts + 1):
            try:
                action()
                return True
            except Exception as e:
                logger.error(
                    f"Undo step failed | operation={self.operation} | step={name} | "
                    f"attempt={attempt}/{attempts} | error={e!r}"
                )
        return False

    # =========================================================================
    # Tracked writes
    # =========================================================================

    def add_order(self, order: "Order") -> None:
        self.storage.save_order(order)
        self._undo.append((f"delete_order:{order.id}", lambda: self.storage.delete_order(order.id)))

    def update_application_status(
        self,
        application: "CampaignApplication",
        status: "ApplicationStatus",
    ) -> None:
        """Move an application on from its current status.

        Raises:
            ApplicationNotPendingError: If another writer changed it first
        """
        previous = application.status
        if not self.storage.update_application_status(application.id, status, previous):
            raise ApplicationNotPendingError(f"Application {application.id} is no longer {previous}")

        def _undo() -> None:
            if not self.storage.update_application_status(application.id, previous, status):
                raise CompensationFailed(f"application {application.id} changed after {self.operation}")

        self._undo.append((f"restore_application:{application.id}", _undo))

    def update_order(self, previous: "Order", updated: "Order") -> "Order":
        """Compare-and-set an order from ``previous`` to ``updated``.

        Raises:
            InvalidTransition: If another writer changed the order first
        """
        if updated.version != previous.version + 1:
            raise ValueError("Updated order must carry the next version")
        applied = self.storage.compare_and_set_order(updated, previous.status, previous.version)
        if not applied:
            raise InvalidTransition(
                previous.id,
                previous.status,
                updated.status,
                reason="order was modified concurrently",
            )

        def _undo() -> None:
            restored = replace(previous, version=updated.version + 1)
            if not self.storage.compare_and_set_order(restored, updated.status, updated.version):
                raise CompensationFailed(f"order {previous.id} changed after {self.operation}")

        self._undo.append((f"restore_order:{previous.id}", _undo))
        return updated

    def add_order_transition(self, transition: "OrderStateTransition") -> None:
        self.storage.save_order_transition(transition)
        self._undo.append(
            (
                f"delete_order_transition:{transition.id}",
                lambda: self.storage.delete_order_transition(transition.id),
            )
        )

    def add_transaction(self, transaction: "Transaction") -> None:
        self.storage.save_transaction(transaction)
        self._undo.append(
            (
                f"delete_transaction:{transaction.id}",
                lambda: self.storage.delete_transaction(transaction.id),
            )
        )

    def add_earning(self, earning: "Earning") -> None:
        self.storage.save_earning(earning)
        self._undo.append(
            (f"delete_earning:{earning.id}", lambda: self.storage.delete_earning(earning.id))
        )

    def adjust_balance(
        self,
        user_id: str,
        field: str,
        delta: Decimal,
        floor: Optional[Decimal] = None,
    ) -> Decimal:
        """Apply a balance delta; the undo applies the inverse with no floor."""
        new_value = self.storage.adjust_balance(user_id, field, delta, floor=floor)
        self._undo.append(
            (
                f"adjust_balance:{user_id}:{field}:{-delta}",
                lambda: self.storage.adjust_balance(user_id, field, -delta),
            )
        )
        return new_value

    def update_withdrawal(self, previous: "Withdrawal", updated: "Withdrawal") -> "Withdrawal":
        if not self.storage.update_withdrawal(updated, previous.status):
            raise StorageConflictError(f"Withdrawal {previous.id} is no longer {previous.status}")

        def _undo() -> None:
            if not self.storage.update_withdrawal(previous, updated.status):
                raise CompensationFailed(f"withdrawal {previous.id} changed after {self.operation}")

        self._undo.append((f"restore_withdrawal:{previous.id}", _undo))
        return updated
