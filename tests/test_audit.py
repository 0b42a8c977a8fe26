"""Tests for ledger audit checks."""

from decimal import Decimal

from talentpay.ledger.audit import LedgerAudit
from talentpay.ledger.models import Transaction, TransactionCategory


class TestBalanceDrift:
    def test_derived_balance_sums_signed_amounts(self, storage, config, wallet_service, founder):
        wallet_service.top_up(founder.id, Decimal("40.00"), "ch_1")
        storage.save_transaction(
            Transaction.debit(founder.id, Decimal("15.00"), TransactionCategory.CAMPAIGN_PAYOUT, "Campaign Payout - X")
        )

        assert LedgerAudit(storage, config).derived_balance(founder.id) == Decimal("25.00")

    def test_founder_drift_against_wallet_balance(self, storage, config, founder):
        # Seeded balance with no transactions behind it
        drift = LedgerAudit(storage, config).balance_drift(founder.id)
        assert drift == Decimal("110.00")

    def test_no_drift_after_settlement(self, storage, config, settlement_service, reviewed_order, founder, talent):
        storage.save_transaction(
            Transaction.credit(founder.id, Decimal("110.00"), TransactionCategory.WALLET_TOPUP, "Opening balance")
        )
        settlement_service.approve_review(reviewed_order.id, founder.id)

        audit = LedgerAudit(storage, config)
        assert audit.balance_drift(founder.id) == Decimal("0.00")
        assert audit.balance_drift(talent.id) == Decimal("0.00")


class TestPlatformFeeReport:
    def test_empty_ledger_is_consistent(self, storage, config):
        report = LedgerAudit(storage, config).platform_fee_report()

        assert report.total_fees == Decimal("0.00")
        assert report.consistent

    def test_stray_platform_credit_flagged(self, storage, config):
        storage.save_transaction(
            Transaction.credit(config.platform_account_id, Decimal("3.00"), TransactionCategory.ADMIN_FEE, "Manual")
        )

        report = LedgerAudit(storage, config).platform_fee_report()

        assert report.platform_balance == Decimal("3.00")
        assert report.expected_fees == Decimal("0.00")
        assert not report.consistent
        assert report.to_dict()["consistent"] is False
