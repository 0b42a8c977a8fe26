"""Wallet subsystem for TalentPay.

Models:
- Profile: Marketplace user with stored wallet balance and total earnings
- Withdrawal: A talent's payout request
- BankDetails: Destination account for a withdrawal

Service:
- WalletService: Top-ups, balance checks and withdrawals
"""

from talentpay.wallet.models import (
    BALANCE_FIELDS,
    VALID_WITHDRAWAL_TRANSITIONS,
    BankDetails,
    Profile,
    ProfileRole,
    Withdrawal,
    WithdrawalStatus,
)
from talentpay.wallet.service import BalanceCheck, TopUpResult, WalletBalance, WalletService

__all__ = [
    # Models
    "Profile",
    "ProfileRole",
    "BankDetails",
    "Withdrawal",
    "WithdrawalStatus",
    "VALID_WITHDRAWAL_TRANSITIONS",
    "BALANCE_FIELDS",
    # Service
    "WalletService",
    "WalletBalance",
    "BalanceCheck",
    "TopUpResult",
]
