"""Payment provider integrations for TalentPay payouts and top-ups."""

from talentpay.payouts.chip import (
    DEFAULT_CHIP_ENDPOINT,
    DEFAULT_CHIP_PURCHASES_ENDPOINT,
    ChipChargeVerifier,
    ChipPayoutProvider,
)
from talentpay.payouts.provider import ChargeVerification, ChargeVerifier, PayoutProvider, PayoutResult

__all__ = [
    "PayoutProvider",
    "PayoutResult",
    "ChargeVerifier",
    "ChargeVerification",
    "ChipPayoutProvider",
    "ChipChargeVerifier",
    "DEFAULT_CHIP_ENDPOINT",
    "DEFAULT_CHIP_PURCHASES_ENDPOINT",
]
