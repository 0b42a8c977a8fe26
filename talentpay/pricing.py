"""
Campaign pricing and fee math.

``price`` is the only place a campaign price is derived. Order payouts,
settlement charges and the client-facing price table all read from it,
so a pre-flight wallet check and the authoritative charge always agree.

Money is held as ``Decimal`` quantized to two places with ROUND_HALF_UP.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Dict, List, Tuple, Union

from talentpay.errors import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
DEFAULT_ADMIN_FEE_RATE = Decimal("0.10")

RATE_LEVELS = (1, 2, 3)
DURATIONS = ("30sec", "1min", "3min")

PRICE_TABLE: Dict[Tuple[int, str], Decimal] = {
    (1, "30sec"): Decimal("50.00"),
    (1, "1min"): Decimal("80.00"),
    (1, "3min"): Decimal("150.00"),
    (2, "30sec"): Decimal("100.00"),
    (2, "1min"): Decimal("160.00"),
    (2, "3min"): Decimal("300.00"),
    (3, "30sec"): Decimal("200.00"),
    (3, "1min"): Decimal("320.00"),
    (3, "3min"): Decimal("600.00"),
}

MoneyLike = Union[Decimal, str, int]


def to_money(value: MoneyLike) -> Decimal:
    """Convert a value to a two-place Decimal.

    Floats are rejected: binary rounding would make two callers disagree
    on the same amount.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValidationError(f"Money amounts must be Decimal, str or int, got {type(value).__name__}")
    try:
        amount = Decimal(str(value)) if not isinstance(value, Decimal) else value
    except InvalidOperation as e:
        raise ValidationError(f"Invalid money amount: {value!r}") from e
    if not amount.is_finite():
        raise ValidationError(f"Invalid money amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def admin_fee(amount: MoneyLike, rate: Decimal = DEFAULT_ADMIN_FEE_RATE) -> Decimal:
    """Platform fee on an amount."""
    return to_money(to_money(amount) * rate)


def price(rate_level: int, duration: str) -> Decimal:
    """Price of a campaign slot for a talent rate level and video duration.

    Raises:
        ValidationError: If rate_level or duration is outside the table
    """
    if isinstance(rate_level, bool) or not isinstance(rate_level, int):
        raise ValidationError(f"rate_level must be one of {RATE_LEVELS}, got {rate_level!r}")
    if rate_level not in RATE_LEVELS:
        raise ValidationError(f"rate_level must be one of {RATE_LEVELS}, got {rate_level}")
    if duration not in DURATIONS:
        raise ValidationError(f"duration must be one of {DURATIONS}, got {duration!r}")
    return PRICE_TABLE[(rate_level, duration)]


def price_table() -> List[dict]:
    """All price points, ordered by rate level then duration."""
    return [
        {"rate_level": level, "duration": duration, "price": price(level, duration)}
        for level in RATE_LEVELS
        for duration in DURATIONS
    ]


@dataclass(frozen=True)
class SettlementQuote:
    """Money split when a review is approved.

    The founder pays payout + fee; the talent receives the payout; the
    platform keeps the fee.
    """

    payout: Decimal
    admin_fee: Decimal
    founder_charge: Decimal


@dataclass(frozen=True)
class WithdrawalQuote:
    """Money split for a talent withdrawal.

    The fee comes out of the gross amount: earnings drop by ``amount`` and
    the bank receives ``net_amount``.
    """

    amount: Decimal
    admin_fee: Decimal
    net_amount: Decimal


def quote_settlement(payout: MoneyLike, rate: Decimal = DEFAULT_ADMIN_FEE_RATE) -> SettlementQuote:
    """Compute the settlement split from a single payout value."""
    talent_payment = to_money(payout)
    if talent_payment <= ZERO:
        raise ValidationError("Payout must be positive")
    fee = admin_fee(talent_payment, rate)
    return SettlementQuote(
        payout=talent_payment,
        admin_fee=fee,
        founder_charge=talent_payment + fee,
    )


def quote_withdrawal(amount: MoneyLike, rate: Decimal = DEFAULT_ADMIN_FEE_RATE) -> WithdrawalQuote:
    """Compute the withdrawal split for a gross amount."""
    gross = to_money(amount)
    if gross <= ZERO:
        raise ValidationError("Withdrawal amount must be positive")
    fee = admin_fee(gross, rate)
    return WithdrawalQuote(amount=gross, admin_fee=fee, net_amount=gross - fee)
