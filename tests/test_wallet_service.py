"""Tests for wallet top-ups, balance checks and withdrawals."""

from decimal import Decimal

import pytest

from talentpay.errors import (
    ChargeVerificationError,
    InsufficientBalance,
    LedgerWriteFailure,
    ProfileNotFoundError,
    ProviderError,
    UnauthorizedError,
    ValidationError,
    WithdrawalNotFoundError,
)
from talentpay.ledger.audit import LedgerAudit
from talentpay.payouts.provider import ChargeVerification, PayoutResult
from talentpay.wallet.models import BankDetails, Profile, WithdrawalStatus
from talentpay.wallet.service import WalletService


@pytest.fixture
def earning_talent(storage, talent):
    """Talent with RM100.00 of withdrawable earnings."""
    storage.adjust_balance(talent.id, "total_earnings", Decimal("100.00"))
    return storage.get_profile(talent.id)


class TestBalances:
    """Tests for balance queries."""

    def test_get_balance(self, wallet_service, founder):
        balance = wallet_service.get_balance(founder.id)

        assert balance.wallet_balance == Decimal("110.00")
        assert balance.total_earnings == Decimal("0.00")

    def test_missing_profile(self, wallet_service):
        with pytest.raises(ProfileNotFoundError):
            wallet_service.get_balance("ghost")

    def test_check_sufficient_balance(self, wallet_service, founder):
        ok = wallet_service.check_sufficient_balance(founder.id, Decimal("110.00"))
        short = wallet_service.check_sufficient_balance(founder.id, "150")

        assert ok.sufficient
        assert ok.shortfall == Decimal("0.00")
        assert not short.sufficient
        assert short.shortfall == Decimal("40.00")


class TestTopUp:
    """Tests for wallet top-ups."""

    def test_top_up_credits_wallet(self, wallet_service, storage, founder, notifier):
        result = wallet_service.top_up(founder.id, Decimal("200.00"), "ch_001")

        assert not result.duplicate
        assert result.wallet_balance == Decimal("310.00")
        assert result.transaction.category == "wallet_topup"
        assert result.transaction.description == "Wallet Top Up - Credit Card"
        assert result.transaction.external_reference == "ch_001"
        assert storage.get_profile(founder.id).wallet_balance == Decimal("310.00")
        assert "Wallet Topped Up" in notifier.titles_for(founder.id)

    def test_replayed_charge_is_idempotent(self, wallet_service, storage, founder):
        first = wallet_service.top_up(founder.id, Decimal("200.00"), "ch_001")
        second = wallet_service.top_up(founder.id, Decimal("200.00"), "ch_001")

        assert second.duplicate
        assert second.transaction.id == first.transaction.id
        assert storage.get_profile(founder.id).wallet_balance == Decimal("310.00")
        assert len(storage.list_transactions(user_id=founder.id)) == 1

    def test_reused_reference_with_other_amount(self, wallet_service, founder):
        wallet_service.top_up(founder.id, Decimal("200.00"), "ch_001")

        with pytest.raises(ValidationError):
            wallet_service.top_up(founder.id, Decimal("50.00"), "ch_001")

    @pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-10"), 10.5])
    def test_invalid_amounts(self, wallet_service, founder, amount):
        with pytest.raises(ValidationError):
            wallet_service.top_up(founder.id, amount, "ch_bad")

    def test_talent_cannot_top_up(self, wallet_service, talent):
        with pytest.raises(UnauthorizedError):
            wallet_service.top_up(talent.id, Decimal("10"), "ch_002")

    def test_failed_write_rolls_back(self, flaky_storage, storage, config, founder, charges):
        service = WalletService(storage=flaky_storage, config=config, charge_verifier=charges)
        flaky_storage.fail("adjust_balance")

        with pytest.raises(LedgerWriteFailure):
            service.top_up(founder.id, Decimal("50.00"), "ch_003")

        assert storage.list_transactions(user_id=founder.id) == []
        assert storage.get_profile(founder.id).wallet_balance == Decimal("110.00")

    def test_charge_is_verified_against_founder_and_amount(self, wallet_service, founder, charges):
        wallet_service.top_up(founder.id, Decimal("200.00"), "ch_001")

        assert charges.calls == ["ch_001"]

    @pytest.mark.parametrize(
        "error_code",
        ["CHARGE_NOT_FOUND", "CHARGE_NOT_PAID", "PAYER_MISMATCH", "AMOUNT_MISMATCH"],
    )
    def test_unconfirmed_charge_credits_nothing(self, wallet_service, storage, founder, charges, error_code):
        charges.outcomes["made-up-ref"] = ChargeVerification(
            success=False, charge_reference="made-up-ref", error="nope", error_code=error_code
        )

        with pytest.raises(ChargeVerificationError) as exc_info:
            wallet_service.top_up(founder.id, Decimal("1000000.00"), "made-up-ref")

        assert exc_info.value.error_code == error_code
        assert storage.list_transactions(user_id=founder.id) == []
        assert storage.get_profile(founder.id).wallet_balance == Decimal("110.00")

    def test_unreachable_provider_credits_nothing(self, wallet_service, storage, founder, charges):
        charges.outcomes["ch_010"] = ProviderError("CHIP request timed out", retryable=True)

        with pytest.raises(ProviderError):
            wallet_service.top_up(founder.id, Decimal("50.00"), "ch_010")

        assert storage.get_profile(founder.id).wallet_balance == Decimal("110.00")

    def test_top_up_requires_a_verifier(self, storage, config, founder):
        service = WalletService(storage=storage, config=config)

        with pytest.raises(ProviderError, match="charge verifier"):
            service.top_up(founder.id, Decimal("50.00"), "ch_011")

        assert storage.get_profile(founder.id).wallet_balance == Decimal("110.00")

    def test_replay_is_not_verified_again(self, wallet_service, founder, charges):
        wallet_service.top_up(founder.id, Decimal("200.00"), "ch_001")
        wallet_service.top_up(founder.id, Decimal("200.00"), "ch_001")

        assert charges.calls == ["ch_001"]

    def test_statement_newest_first(self, wallet_service, founder):
        wallet_service.top_up(founder.id, Decimal("10.00"), "ch_a")
        wallet_service.top_up(founder.id, Decimal("20.00"), "ch_b")

        statement = wallet_service.list_transactions(founder.id)
        assert [t.external_reference for t in statement] == ["ch_b", "ch_a"]


class TestWithdrawal:
    """Tests for withdrawing earnings."""

    def test_rm50_withdrawal(self, wallet_service, storage, config, provider, earning_talent, bank, notifier):
        withdrawal = wallet_service.request_withdrawal(earning_talent.id, Decimal("50.00"), bank)

        assert withdrawal.status == "paid"
        assert withdrawal.amount == Decimal("50.00")
        assert withdrawal.admin_fee == Decimal("5.00")
        assert withdrawal.chip_payout_id == "chip-1"
        assert withdrawal.processed_at is not None

        # Bank receives the net amount
        assert len(provider.calls) == 1
        assert provider.calls[0]["amount"] == Decimal("45.00")
        assert provider.calls[0]["currency"] == "MYR"
        assert provider.calls[0]["reference"] == withdrawal.id

        assert storage.get_profile(earning_talent.id).total_earnings == Decimal("50.00")

        txns = storage.list_transactions(related_withdrawal_id=withdrawal.id)
        debit = [t for t in txns if t.user_id == earning_talent.id][0]
        fee = [t for t in txns if t.user_id == config.platform_account_id][0]
        assert debit.type == "debit"
        assert debit.category == "withdrawal"
        assert debit.amount == Decimal("50.00")
        assert debit.external_reference == "chip-1"
        assert "5678" in debit.description
        assert "114012345678" not in debit.description
        assert fee.type == "credit"
        assert fee.category == "admin_fee"
        assert fee.amount == Decimal("5.00")

        assert "Withdrawal Processed" in notifier.titles_for(earning_talent.id)

    def test_platform_fees_reconcile(self, wallet_service, storage, config, earning_talent, bank):
        wallet_service.request_withdrawal(earning_talent.id, Decimal("50.00"), bank)

        report = LedgerAudit(storage, config).platform_fee_report()
        assert report.withdrawal_fees == Decimal("5.00")
        assert report.consistent

    def test_insufficient_earnings_records_nothing(self, wallet_service, storage, provider, talent, bank):
        storage.adjust_balance(talent.id, "total_earnings", Decimal("30.00"))

        with pytest.raises(InsufficientBalance) as exc_info:
            wallet_service.request_withdrawal(talent.id, Decimal("50.00"), bank)

        assert exc_info.value.field == "total_earnings"
        assert exc_info.value.shortfall == Decimal("20.00")
        assert storage.list_withdrawals(user_id=talent.id) == []
        assert storage.list_transactions(user_id=talent.id) == []
        assert storage.get_profile(talent.id).total_earnings == Decimal("30.00")
        assert provider.calls == []

    def test_missing_bank_field(self, wallet_service, earning_talent, provider):
        bank = BankDetails(bank_name="Maybank", bank_code="MBB", account_number="", account_holder="F")

        with pytest.raises(ValidationError, match="account_number"):
            wallet_service.request_withdrawal(earning_talent.id, Decimal("10"), bank)
        assert provider.calls == []

    def test_founder_cannot_withdraw(self, wallet_service, founder, bank):
        with pytest.raises(UnauthorizedError):
            wallet_service.request_withdrawal(founder.id, Decimal("10"), bank)

    def test_no_provider_configured(self, storage, config, earning_talent, bank):
        service = WalletService(storage=storage, config=config)

        with pytest.raises(ProviderError):
            service.request_withdrawal(earning_talent.id, Decimal("10"), bank)
        assert storage.list_withdrawals(user_id=earning_talent.id) == []

    def test_terminal_provider_error_rejects(self, wallet_service, storage, provider, sleeps, earning_talent, bank, notifier):
        provider.script = [ProviderError("Invalid bank account", retryable=False, status_code=400)]

        with pytest.raises(ProviderError):
            wallet_service.request_withdrawal(earning_talent.id, Decimal("50.00"), bank)

        withdrawals = storage.list_withdrawals(user_id=earning_talent.id)
        assert len(withdrawals) == 1
        assert withdrawals[0].status == "rejected"
        assert "Invalid bank account" in withdrawals[0].chip_error_message
        assert storage.get_profile(earning_talent.id).total_earnings == Decimal("100.00")
        assert storage.list_transactions(user_id=earning_talent.id) == []
        assert len(provider.calls) == 1
        assert sleeps == []
        assert "Withdrawal Failed" in notifier.titles_for(earning_talent.id)

    def test_transient_errors_retried_with_backoff(self, wallet_service, storage, provider, sleeps, earning_talent, bank):
        provider.script = [
            ProviderError("timeout", retryable=True),
            ProviderError("502", retryable=True, status_code=502),
        ]

        withdrawal = wallet_service.request_withdrawal(earning_talent.id, Decimal("50.00"), bank)

        assert withdrawal.status == "paid"
        assert withdrawal.chip_payout_id == "chip-3"
        assert len(provider.calls) == 3
        assert {c["reference"] for c in provider.calls} == {withdrawal.id}
        assert sleeps == [0.5, 1.0]

    def test_transient_errors_exhausted(self, wallet_service, storage, provider, sleeps, earning_talent, bank):
        provider.script = [ProviderError("timeout", retryable=True)] * 3

        with pytest.raises(ProviderError):
            wallet_service.request_withdrawal(earning_talent.id, Decimal("50.00"), bank)

        assert len(provider.calls) == 3
        assert sleeps == [0.5, 1.0]
        assert storage.list_withdrawals(user_id=earning_talent.id)[0].status == "rejected"
        assert storage.get_profile(earning_talent.id).total_earnings == Decimal("100.00")

    def test_ledger_failure_after_payout_keeps_reservation(
        self, flaky_storage, storage, config, provider, earning_talent, bank
    ):
        service = WalletService(storage=flaky_storage, config=config, payout_provider=provider, sleep=lambda s: None)
        flaky_storage.fail("save_transaction", on_call=1, times=config.compensation_max_attempts)

        with pytest.raises(LedgerWriteFailure) as exc_info:
            service.request_withdrawal(earning_talent.id, Decimal("50.00"), bank)

        assert not exc_info.value.rolled_back
        withdrawal = storage.list_withdrawals(user_id=earning_talent.id)[0]
        assert withdrawal.status == WithdrawalStatus.APPROVED.value
        assert withdrawal.chip_payout_id == "chip-1"
        # Money left through the provider, so earnings stay reduced
        assert storage.get_profile(earning_talent.id).total_earnings == Decimal("50.00")

    def test_ledger_write_retried_without_duplicates(self, flaky_storage, storage, config, provider, earning_talent, bank):
        service = WalletService(storage=flaky_storage, config=config, payout_provider=provider, sleep=lambda s: None)
        flaky_storage.fail("save_transaction", on_call=1)

        withdrawal = service.request_withdrawal(earning_talent.id, Decimal("50.00"), bank)

        assert withdrawal.status == "paid"
        txns = storage.list_transactions(related_withdrawal_id=withdrawal.id)
        assert sorted(t.category for t in txns) == ["admin_fee", "withdrawal"]
        assert len(provider.calls) == 1

    def test_get_and_list_withdrawals(self, wallet_service, earning_talent, bank, founder):
        withdrawal = wallet_service.request_withdrawal(earning_talent.id, Decimal("20.00"), bank)

        assert wallet_service.get_withdrawal(withdrawal.id, earning_talent.id).id == withdrawal.id
        assert [w.id for w in wallet_service.list_withdrawals(earning_talent.id, WithdrawalStatus.PAID)] == [withdrawal.id]
        with pytest.raises(UnauthorizedError):
            wallet_service.get_withdrawal(withdrawal.id, founder.id)
        with pytest.raises(WithdrawalNotFoundError):
            wallet_service.get_withdrawal("missing")

    def test_talent_balance_matches_ledger_after_settle_and_withdraw(
        self, settlement_service, wallet_service, storage, config, reviewed_order, founder, talent, bank
    ):
        settlement_service.approve_review(reviewed_order.id, founder.id)
        wallet_service.request_withdrawal(talent.id, Decimal("50.00"), bank)

        audit = LedgerAudit(storage, config)
        assert storage.get_profile(talent.id).total_earnings == Decimal("50.00")
        assert audit.balance_drift(talent.id) == Decimal("0.00")
        report = audit.platform_fee_report()
        assert report.platform_balance == Decimal("15.00")
        assert report.consistent


class TestAlternateProviderResult:
    def test_raw_status_recorded(self, wallet_service, storage, provider, earning_talent, bank):
        provider.script = [PayoutResult(external_id="po_77", status="successful", raw_status="successful")]

        withdrawal = wallet_service.request_withdrawal(earning_talent.id, Decimal("10.00"), bank)

        assert withdrawal.chip_payout_id == "po_77"
        assert withdrawal.chip_status == "successful"

    def test_profile_lookup_uses_stored_role(self, wallet_service, storage, bank):
        storage.save_profile(Profile(id="admin-1", role="admin", total_earnings=Decimal("10")))
        with pytest.raises(UnauthorizedError):
            wallet_service.request_withdrawal("admin-1", Decimal("5"), bank)
