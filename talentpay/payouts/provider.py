"""Payment provider interfaces.

Two directions of money movement go through the provider: outbound
payouts to a talent's bank account, and inbound card charges that fund
a founder's wallet. Charges are only ever looked up, never created here.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Protocol

from talentpay.wallet.models import BankDetails


@dataclass(frozen=True)
class PayoutResult:
    """Provider response for an accepted payout."""

    external_id: str
    status: str
    raw_status: Optional[str] = None


@dataclass(frozen=True)
class ChargeVerification:
    """Result of looking up an inbound charge.

    ``success`` is True only when the charge is paid and matches the
    expected amount, currency and payer. Otherwise ``error_code`` names
    the first check that failed.
    """

    success: bool
    charge_reference: str
    status: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    payer_reference: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


class PayoutProvider(Protocol):
    """An external service that moves money to a bank account.

    Implementations raise ProviderError with ``retryable`` set for
    transient failures (network, timeouts) and unset for terminal ones.
    ``reference`` is the caller's idempotency key for the payout.
    """

    def submit_payout(
        self,
        amount: Decimal,
        currency: str,
        bank: BankDetails,
        reference: str,
    ) -> PayoutResult:
        ...


class ChargeVerifier(Protocol):
    """Confirms that a card charge really completed before it is credited.

    A charge that does not check out is reported through
    ``ChargeVerification.success``; ProviderError is reserved for failing
    to reach the provider at all.
    """

    def verify_charge(
        self,
        charge_reference: str,
        expected_amount: Decimal,
        expected_currency: str,
        expected_payer: str,
    ) -> ChargeVerification:
        ...
