"""Pricing routes for TalentPay.

Read-only access to the campaign price table and settlement quotes.
"""

from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel

from talentpay.pricing import price, price_table, quote_settlement, quote_withdrawal

from ..logging_config import get_logger
from ..rate_limit import READ_LIMIT, limiter
from ..services import Config

logger = get_logger("talentpay.routes.pricing")
router = APIRouter(prefix="/pricing", tags=["pricing"])


# =============================================================================
# Request/Response Models
# =============================================================================

Duration = Literal["30sec", "1min", "3min"]


class PricePoint(BaseModel):
    """One entry of the price table."""

    rate_level: int
    duration: Duration
    price: Decimal


class PriceTableResponse(BaseModel):
    """Full price table."""

    currency: str
    admin_fee_rate: Decimal
    prices: list[PricePoint]


class SettlementQuoteResponse(BaseModel):
    """What a founder is charged when a review is approved."""

    rate_level: int
    duration: Duration
    payout: Decimal
    admin_fee: Decimal
    founder_charge: Decimal


class WithdrawalQuoteResponse(BaseModel):
    """What a talent receives for a withdrawal."""

    amount: Decimal
    admin_fee: Decimal
    net_amount: Decimal


# =============================================================================
# Routes
# =============================================================================


@router.get("", response_model=PriceTableResponse)
@limiter.limit(READ_LIMIT)
async def get_price_table(request: Request, config: Config):
    """Get campaign prices for every rate level and duration."""
    logger.info("GET /pricing")
    return PriceTableResponse(
        currency=config.currency,
        admin_fee_rate=config.admin_fee_rate,
        prices=[PricePoint(**row) for row in price_table()],
    )


@router.get("/quote", response_model=SettlementQuoteResponse)
@limiter.limit(READ_LIMIT)
async def get_settlement_quote(
    request: Request,
    config: Config,
    rate_level: int = Query(..., ge=1, le=3),
    duration: Duration = Query(...),
):
    """Quote the talent payout and founder charge for a campaign slot."""
    logger.info(f"GET /pricing/quote | rate_level={rate_level} | duration={duration}")
    quote = quote_settlement(price(rate_level, duration), config.admin_fee_rate)
    return SettlementQuoteResponse(
        rate_level=rate_level,
        duration=duration,
        payout=quote.payout,
        admin_fee=quote.admin_fee,
        founder_charge=quote.founder_charge,
    )


@router.get("/withdrawal-quote", response_model=WithdrawalQuoteResponse)
@limiter.limit(READ_LIMIT)
async def get_withdrawal_quote(
    request: Request,
    config: Config,
    amount: Decimal = Query(..., gt=0),
):
    """Quote the fee and net amount for a withdrawal."""
    logger.info(f"GET /pricing/withdrawal-quote | amount={amount}")
    quote = quote_withdrawal(amount, config.admin_fee_rate)
    return WithdrawalQuoteResponse(amount=quote.amount, admin_fee=quote.admin_fee, net_amount=quote.net_amount)
