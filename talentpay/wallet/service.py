"""
Wallet service.

Top-ups (founder, inbound) credit the founder's wallet with no fee, once
the provider confirms the card charge behind them.
Withdrawals (talent, outbound) go through the payout provider; the
platform keeps 10% of the gross amount and the bank receives the rest.

Withdrawal flow:
    1. Reserve the gross amount from total_earnings (conditional decrement)
    2. Record the withdrawal as pending
    3. Submit to the provider, retrying transient errors with backoff
    4a. Provider failed: release the reservation, mark rejected
    4b. Provider paid: mark approved, write the talent debit and platform
        fee credit, mark paid. These writes are retried forward and never
        undo the reservation, because the money has already left.
"""

import logging
import time
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import TYPE_CHECKING, Callable, List, Optional

from talentpay.config import CommerceConfig
from talentpay.errors import (
    ChargeVerificationError,
    CommerceError,
    InsufficientBalance,
    LedgerWriteFailure,
    ProfileNotFoundError,
    ProviderError,
    StorageConflictError,
    UnauthorizedError,
    ValidationError,
    WithdrawalNotFoundError,
)
from talentpay.ledger.models import Transaction, TransactionCategory
from talentpay.ledger.unit import LedgerUnit
from talentpay.notifications import NotificationType, notify
from talentpay.pii import redact_pii
from talentpay.pricing import ZERO, MoneyLike, WithdrawalQuote, quote_withdrawal, to_money
from talentpay.utils import new_id, utc_now
from talentpay.wallet.models import BankDetails, Profile, ProfileRole, Withdrawal, WithdrawalStatus

if TYPE_CHECKING:
    from talentpay.notifications import NotificationDispatcher
    from talentpay.payouts.provider import ChargeVerifier, PayoutProvider, PayoutResult
    from talentpay.storage.base import CommerceStorage

logger = logging.getLogger(__name__)


@dataclass
class WalletBalance:
    """Stored balances for a profile."""

    user_id: str
    wallet_balance: Decimal
    total_earnings: Decimal


@dataclass
class BalanceCheck:
    """Result of a pre-flight balance check."""

    user_id: str
    required: Decimal
    available: Decimal

    @property
    def sufficient(self) -> bool:
        return self.available >= self.required

    @property
    def shortfall(self) -> Decimal:
        return max(self.required - self.available, ZERO)


@dataclass
class TopUpResult:
    """Outcome of a top-up.

    ``duplicate`` is True when the charge reference was already credited
    and nothing new was written.
    """

    transaction: Transaction
    wallet_balance: Decimal
    duplicate: bool = False


class WalletService:
    """Service for wallet top-ups, balance checks and withdrawals."""

    def __init__(
        self,
        storage: "CommerceStorage",
        config: Optional[CommerceConfig] = None,
        payout_provider: Optional["PayoutProvider"] = None,
        notifier: Optional["NotificationDispatcher"] = None,
        sleep: Callable[[float], None] = time.sleep,
        charge_verifier: Optional["ChargeVerifier"] = None,
    ):
        self.storage = storage
        self.config = config or CommerceConfig()
        self.payout_provider = payout_provider
        self.charge_verifier = charge_verifier
        self.notifier = notifier
        self._sleep = sleep

    # =========================================================================
    # Balances
    # =========================================================================

    def _get_profile(self, user_id: str) -> Profile:
        profile = self.storage.get_profile(user_id)
        if profile is None:
            raise ProfileNotFoundError(f"Profile {user_id} not found")
        return profile

    def get_balance(self, user_id: str) -> WalletBalance:
        profile = self._get_profile(user_id)
        return WalletBalance(
            user_id=user_id,
            wallet_balance=profile.wallet_balance,
            total_earnings=profile.total_earnings,
        )

    def check_sufficient_balance(self, founder_id: str, amount: MoneyLike) -> BalanceCheck:
        """Check whether a founder's wallet covers ``amount``.

        Used before approving reviews and by clients before committing to
        a campaign; pass the founder charge (payout + fee).
        """
        required = to_money(amount)
        profile = self._get_profile(founder_id)
        return BalanceCheck(user_id=founder_id, required=required, available=profile.wallet_balance)

    def list_transactions(self, user_id: str, limit: int = 100) -> List[Transaction]:
        """Statement for a user, newest first."""
        txns = self.storage.list_transactions(user_id=user_id)
        txns.sort(key=lambda t: t.created_at, reverse=True)
        return txns[:limit]

    # =========================================================================
    # Top-up
    # =========================================================================

    def top_up(self, founder_id: str, amount: MoneyLike, charge_reference: str) -> TopUpResult:
        """Credit a founder's wallet for a completed card charge.

        The charge is confirmed with the provider (paid, same amount and
        currency, made by this founder) before anything is written.
        Idempotent per ``charge_reference``: replaying the same charge
        returns the original transaction.

        Raises:
            ValidationError: If amount is not positive or the reference is missing
            UnauthorizedError: If the profile is not a founder
            ChargeVerificationError: If the provider does not confirm the charge
            ProviderError: If no verifier is configured or the provider is unreachable
        """
        amount = to_money(amount)
        if amount <= ZERO:
            raise ValidationError("Top-up amount must be positive")
        if not charge_reference:
            raise ValidationError("charge_reference is required")

        profile = self._get_profile(founder_id)
        if profile.role != ProfileRole.FOUNDER.value:
            raise UnauthorizedError("Only founders can top up a wallet")

        existing = self.storage.list_transactions(
            category=TransactionCategory.WALLET_TOPUP, external_reference=charge_reference
        )
        if existing:
            txn = existing[0]
            if txn.user_id != founder_id or txn.amount != amount:
                raise ValidationError(f"Charge {charge_reference} was already applied to a different top-up")
            logger.info(f"Duplicate top-up ignored | founder={founder_id} | charge={charge_reference}")
            return TopUpResult(transaction=txn, wallet_balance=profile.wallet_balance, duplicate=True)

        self._verify_charge(founder_id, amount, charge_reference)

        txn = Transaction.credit(
            founder_id,
            amount,
            TransactionCategory.WALLET_TOPUP,
            "Wallet Top Up - Credit Card",
            external_reference=charge_reference,
        )
        with LedgerUnit(self.storage, self.config, "top_up", charge_reference) as unit:
            unit.add_transaction(txn)
            balance = unit.adjust_balance(founder_id, "wallet_balance", amount)

        logger.info(f"Wallet top-up | founder={founder_id} | amount={amount} | balance={balance}")
        notify(
            self.notifier,
            founder_id,
            "Wallet Topped Up",
            f"RM{amount} was added to your wallet.",
            NotificationType.PAYMENT,
            related_entity_id=txn.id,
            related_entity_type="transaction",
        )
        return TopUpResult(transaction=txn, wallet_balance=balance)

    def _verify_charge(self, founder_id: str, amount: Decimal, charge_reference: str) -> None:
        if self.charge_verifier is None:
            raise ProviderError("No charge verifier configured", retryable=False)

        result = self.charge_verifier.verify_charge(
            charge_reference,
            expected_amount=amount,
            expected_currency=self.config.currency,
            expected_payer=founder_id,
        )
        if not result.success:
            logger.warning(
                f"Top-up charge rejected | founder={founder_id} | charge={charge_reference} | "
                f"code={result.error_code} | error={result.error}"
            )
            raise ChargeVerificationError(
                charge_reference, result.error or "not confirmed", error_code=result.error_code
            )

    # =========================================================================
    # Withdrawals
    # =========================================================================

    def get_withdrawal(self, withdrawal_id: str, user_id: Optional[str] = None) -> Withdrawal:
        withdrawal = self.storage.get_withdrawal(withdrawal_id)
        if withdrawal is None:
            raise WithdrawalNotFoundError(f"Withdrawal {withdrawal_id} not found")
        if user_id is not None and withdrawal.user_id != user_id:
            raise UnauthorizedError("Cannot view another user's withdrawal")
        return withdrawal

    def list_withdrawals(
        self,
        user_id: str,
        status: Optional[WithdrawalStatus] = None,
        limit: int = 100,
    ) -> List[Withdrawal]:
        return self.storage.list_withdrawals(user_id=user_id, status=status, limit=limit)

    def request_withdrawal(self, talent_id: str, amount: MoneyLike, bank_details: BankDetails) -> Withdrawal:
        """Pay out earnings to a bank account.

        Returns the paid withdrawal.

        Raises:
            ValidationError: If amount is not positive or a bank field is missing
            InsufficientBalance: If amount exceeds total earnings (nothing is recorded)
            ProviderError: If the provider failed; the withdrawal is recorded as rejected
            LedgerWriteFailure: If the provider paid but the ledger could not be
                written; the withdrawal stays approved for reconciliation
        """
        quote = quote_withdrawal(amount, self.config.admin_fee_rate)
        missing = bank_details.missing_fields()
        if missing:
            raise ValidationError(f"Missing bank details: {', '.join(missing)}")

        profile = self._get_profile(talent_id)
        if profile.role != ProfileRole.TALENT.value:
            raise UnauthorizedError("Only talents can withdraw earnings")
        if quote.amount > profile.total_earnings:
            raise InsufficientBalance(
                talent_id, required=quote.amount, available=profile.total_earnings, field="total_earnings"
            )
        if self.payout_provider is None:
            raise ProviderError("No payout provider configured", retryable=False)

        withdrawal = Withdrawal(
            id=new_id(),
            user_id=talent_id,
            amount=quote.amount,
            admin_fee=quote.admin_fee,
            bank_name=bank_details.bank_name,
            bank_code=bank_details.bank_code,
            account_number=bank_details.account_number,
            account_holder=bank_details.account_holder,
            status=WithdrawalStatus.PENDING,
        )

        saved = False
        try:
            with LedgerUnit(self.storage, self.config, "withdrawal_reservation", withdrawal.id) as unit:
                unit.adjust_balance(talent_id, "total_earnings", -quote.amount, floor=ZERO)
                self.storage.save_withdrawal(withdrawal)
                saved = True
                logger.info(
                    f"Withdrawal requested {withdrawal.id} | talent={talent_id} | amount={quote.amount} | "
                    f"fee={quote.admin_fee} | account={bank_details.masked_account_number}"
                )
                result = self._submit_with_retries(withdrawal, quote)
        except CommerceError as e:
            if saved:
                self._mark_rejected(withdrawal, str(e))
            raise

        paid = self._record_payout(withdrawal, quote, result)
        notify(
            self.notifier,
            talent_id,
            "Withdrawal Processed",
            f"RM{quote.net_amount} is on its way to your {bank_details.bank_name} account.",
            NotificationType.WITHDRAWAL,
            related_entity_id=withdrawal.id,
            related_entity_type="withdrawal",
        )
        return paid

    def _submit_with_retries(self, withdrawal: Withdrawal, quote: WithdrawalQuote) -> "PayoutResult":
        attempts = self.config.payout_max_attempts
        for attempt in range(1, attempts + 1):
            try:
                return self.payout_provider.submit_payout(
                    quote.net_amount,
                    self.config.currency,
                    withdrawal.bank_details,
                    withdrawal.id,
                )
            except ProviderError as e:
                if not e.retryable or attempt == attempts:
                    logger.warning(
                        f"Payout failed | withdrawal={withdrawal.id} | attempt={attempt}/{attempts} | "
                        f"retryable={e.retryable} | error={redact_pii(str(e))}"
                    )
                    raise
                delay = self.config.payout_backoff_seconds * (2 ** (attempt - 1))
                logger.info(
                    f"Retrying payout | withdrawal={withdrawal.id} | attempt={attempt}/{attempts} | "
                    f"delay={delay}s"
                )
                self._sleep(delay)
        raise ProviderError("Payout was not attempted", retryable=False)

    def _mark_rejected(self, withdrawal: Withdrawal, message: str) -> None:
        rejected = replace(
            withdrawal,
            status=WithdrawalStatus.REJECTED.value,
            chip_error_message=message,
            processed_at=utc_now(),
        )
        try:
            if not self.storage.update_withdrawal(rejected, WithdrawalStatus.PENDING.value):
                logger.error(f"Withdrawal {withdrawal.id} was not pending when marking rejected")
        except Exception as e:
            logger.critical(f"Could not mark withdrawal {withdrawal.id} rejected | error={e!r}")
            return
        notify(
            self.notifier,
            withdrawal.user_id,
            "Withdrawal Failed",
            "Your withdrawal could not be processed and your earnings were not deducted.",
            NotificationType.WITHDRAWAL,
            related_entity_id=withdrawal.id,
            related_entity_type="withdrawal",
        )

    def _record_payout(self, withdrawal: Withdrawal, quote: WithdrawalQuote, result: "PayoutResult") -> Withdrawal:
        """Write the ledger for a payout the provider already made.

        Every step checks what is already recorded, so a retry picks up
        where the previous attempt stopped.
        """
        attempts = self.config.compensation_max_attempts
        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            try:
                return self._write_payout_ledger(withdrawal, quote, result)
            except Exception as e:
                last_error = e
                logger.error(
                    f"Payout ledger write failed | withdrawal={withdrawal.id} | "
                    f"attempt={attempt}/{attempts} | error={e!r}"
                )

        logger.critical(
            f"Withdrawal {withdrawal.id} paid by provider ({result.external_id}) but ledger not recorded"
        )
        raise LedgerWriteFailure(
            "record_withdrawal",
            withdrawal.id,
            rolled_back=False,
            pending_compensations=[f"record_withdrawal_ledger:{withdrawal.id}"],
            message=(
                f"Withdrawal {withdrawal.id} was paid by the provider but its ledger entries "
                f"could not be recorded"
            ),
        ) from last_error

    def _write_payout_ledger(self, withdrawal: Withdrawal, quote: WithdrawalQuote, result: "PayoutResult") -> Withdrawal:
        current = self.storage.get_withdrawal(withdrawal.id)
        if current is None:
            raise WithdrawalNotFoundError(f"Withdrawal {withdrawal.id} not found")

        if current.status == WithdrawalStatus.PENDING.value:
            approved = replace(
                current,
                status=WithdrawalStatus.APPROVED.value,
                chip_payout_id=result.external_id,
                chip_status=result.raw_status or result.status,
            )
            if not self.storage.update_withdrawal(approved, WithdrawalStatus.PENDING.value):
                raise StorageConflictError(f"Withdrawal {withdrawal.id} changed while recording payout")
            current = approved
        elif current.status == WithdrawalStatus.PAID.value:
            return current
        elif current.status != WithdrawalStatus.APPROVED.value:
            raise StorageConflictError(f"Withdrawal {withdrawal.id} is {current.status}, cannot record payout")

        recorded = {
            t.category
            for t in self.storage.list_transactions(related_withdrawal_id=withdrawal.id)
        }
        if TransactionCategory.WITHDRAWAL.value not in recorded:
            self.storage.save_transaction(
                Transaction.debit(
                    withdrawal.user_id,
                    quote.amount,
                    TransactionCategory.WITHDRAWAL,
                    f"Withdrawal - {withdrawal.bank_name} {withdrawal.bank_details.masked_account_number}",
                    related_withdrawal_id=withdrawal.id,
                    external_reference=result.external_id,
                )
            )
        if quote.admin_fee > ZERO and TransactionCategory.ADMIN_FEE.value not in recorded:
            pct = f"{self.config.admin_fee_rate * 100:.0f}"
            self.storage.save_transaction(
                Transaction.credit(
                    self.config.platform_account_id,
                    quote.admin_fee,
                    TransactionCategory.ADMIN_FEE,
                    f"Withdrawal Admin Fee ({pct}%) - {withdrawal.id}",
                    related_withdrawal_id=withdrawal.id,
                )
            )

        paid = replace(current, status=WithdrawalStatus.PAID.value, processed_at=utc_now())
        if not self.storage.update_withdrawal(paid, WithdrawalStatus.APPROVED.value):
            raise StorageConflictError(f"Withdrawal {withdrawal.id} changed while marking paid")

        logger.info(
            f"Withdrawal paid {withdrawal.id} | chip_id={result.external_id} | "
            f"amount={quote.amount} | net={quote.net_amount}"
        )
        return paid
