"""
TalentPay - order lifecycle, settlement ledger and payouts for a talent marketplace.

Subpackages:
- orders: Order state machine (OrderService)
- settlement: Review approval/rejection (SettlementService)
- wallet: Top-ups and withdrawals (WalletService)
- ledger: Transactions, earnings, all-or-nothing writes and audit
- payouts: External payout providers (CHIP)
- storage: In-memory and Supabase persistence
"""

from talentpay.pricing import price, quote_settlement, quote_withdrawal

__version__ = "0.1.0"

__all__ = [
    "price",
    "quote_settlement",
    "quote_withdrawal",
    "__version__",
]
