"""Configuration for TalentPay services."""

import os
from dataclasses import dataclass
from decimal import Decimal

# Ledger account that receives the 10% admin fee on settlements and withdrawals.
DEFAULT_PLATFORM_ACCOUNT_ID = "00000000-0000-0000-0000-000000000001"


@dataclass
class CommerceConfig:
    """Tunable settings shared by the order, settlement and wallet services."""

    platform_account_id: str = DEFAULT_PLATFORM_ACCOUNT_ID
    currency: str = "MYR"
    admin_fee_rate: Decimal = Decimal("0.10")

    # Payout provider retries (transient errors only)
    payout_max_attempts: int = 3
    payout_backoff_seconds: float = 0.5

    # Undo steps and post-payout ledger writes
    compensation_max_attempts: int = 3

    # Conditional balance updates against a remote store
    balance_update_max_attempts: int = 5

    review_media_bucket: str = "review-submissions"

    def __post_init__(self):
        self.admin_fee_rate = Decimal(str(self.admin_fee_rate))
        if not Decimal("0") <= self.admin_fee_rate < Decimal("1"):
            raise ValueError("admin_fee_rate must be between 0 and 1")
        if not self.platform_account_id:
            raise ValueError("platform_account_id is required")
        if self.payout_max_attempts < 1:
            raise ValueError("payout_max_attempts must be at least 1")
        if self.compensation_max_attempts < 1:
            raise ValueError("compensation_max_attempts must be at least 1")
        if self.balance_update_max_attempts < 1:
            raise ValueError("balance_update_max_attempts must be at least 1")

    @classmethod
    def from_env(cls) -> "CommerceConfig":
        """Build a config from TALENTPAY_* environment variables."""
        defaults = cls()
        return cls(
            platform_account_id=os.environ.get(
                "TALENTPAY_PLATFORM_ACCOUNT_ID", defaults.platform_account_id
            ),
            currency=os.environ.get("TALENTPAY_CURRENCY", defaults.currency),
            admin_fee_rate=Decimal(
                os.environ.get("TALENTPAY_ADMIN_FEE_RATE", str(defaults.admin_fee_rate))
            ),
            payout_max_attempts=int(
                os.environ.get("TALENTPAY_PAYOUT_MAX_ATTEMPTS", defaults.payout_max_attempts)
            ),
            payout_backoff_seconds=float(
                os.environ.get("TALENTPAY_PAYOUT_BACKOFF_SECONDS", defaults.payout_backoff_seconds)
            ),
            compensation_max_attempts=int(
                os.environ.get(
                    "TALENTPAY_COMPENSATION_MAX_ATTEMPTS", defaults.compensation_max_attempts
                )
            ),
            balance_update_max_attempts=int(
                os.environ.get(
                    "TALENTPAY_BALANCE_UPDATE_MAX_ATTEMPTS", defaults.balance_update_max_attempts
                )
            ),
            review_media_bucket=os.environ.get(
                "TALENTPAY_REVIEW_MEDIA_BUCKET", defaults.review_media_bucket
            ),
        )
