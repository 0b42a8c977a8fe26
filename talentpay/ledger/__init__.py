"""Ledger primitives for TalentPay.

Models:
- Transaction: A credit or debit against one user's balance
- TransactionCategory: Explicit transaction category
- Earning: Money owed or paid to a talent for one order

Helpers:
- LedgerUnit: All-or-nothing multi-record writes with rollback
- LedgerAudit: Recompute balances from the transaction log
"""

from talentpay.ledger.audit import LedgerAudit, PlatformFeeReport
from talentpay.ledger.models import (
    Earning,
    EarningStatus,
    Transaction,
    TransactionCategory,
    TransactionType,
)
from talentpay.ledger.unit import LedgerUnit

__all__ = [
    "Transaction",
    "TransactionType",
    "TransactionCategory",
    "Earning",
    "EarningStatus",
    "LedgerUnit",
    "LedgerAudit",
    "PlatformFeeReport",
]
