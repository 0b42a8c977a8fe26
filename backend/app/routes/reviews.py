"""Review settlement routes for TalentPay.

A founder approves a submitted review (paying the talent) or rejects it
(sending the order back to delivered for a new submission).
"""

import asyncio
from decimal import Decimal

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from ..auth import CurrentUser
from ..logging_config import get_logger
from ..rate_limit import MONEY_LIMIT, READ_LIMIT, WRITE_LIMIT, limiter
from ..services import SettlementServiceDep
from .orders import OrderResponse

logger = get_logger("talentpay.routes.reviews")
router = APIRouter(prefix="/orders/{order_id}/review", tags=["orders", "reviews"])


# =============================================================================
# Request/Response Models
# =============================================================================


class ReviewQuoteResponse(BaseModel):
    """Money split applied if the review is approved."""

    order_id: str
    payout: Decimal
    admin_fee: Decimal
    founder_charge: Decimal


class ApproveResponse(BaseModel):
    """Result of approving a review."""

    order: OrderResponse
    earning_id: str
    payout: Decimal
    admin_fee: Decimal
    founder_charge: Decimal
    transaction_ids: list[str]


class RejectRequest(BaseModel):
    reason: str | None = Field(None, max_length=1000)


class RejectResponse(BaseModel):
    """Result of rejecting a review.

    ``failed_media`` lists uploads that could not be deleted.
    """

    order: OrderResponse
    deleted_media: list[str]
    failed_media: list[str]


# =============================================================================
# Routes
# =============================================================================


@router.get("/quote", response_model=ReviewQuoteResponse)
@limiter.limit(READ_LIMIT)
async def get_review_quote(
    request: Request,
    order_id: str,
    auth: CurrentUser,
    service: SettlementServiceDep,
):
    """Show the order's founder what approving its review will charge."""
    logger.info(f"GET /orders/{order_id}/review/quote | {auth.user_id}")
    quote = await asyncio.to_thread(service.quote, order_id, auth.user_id)
    return ReviewQuoteResponse(
        order_id=order_id,
        payout=quote.payout,
        admin_fee=quote.admin_fee,
        founder_charge=quote.founder_charge,
    )


@router.post("/approve", response_model=ApproveResponse)
@limiter.limit(MONEY_LIMIT)
async def approve_review(
    request: Request,
    order_id: str,
    auth: CurrentUser,
    service: SettlementServiceDep,
):
    """
    Approve the submitted review and settle payment.

    Charges the founder payout plus the admin fee, credits the talent's
    earnings and the platform's fee account, and completes the order.
    Responds 402 with the shortfall when the founder's wallet is too low.
    """
    log_prefix = f"{auth.user_id}"
    logger.info(f"POST /orders/{order_id}/review/approve | {log_prefix}")

    result = await asyncio.to_thread(service.approve_review, order_id, auth.user_id)
    logger.info(
        f"Review approved | order={order_id} | charge={result.quote.founder_charge} | {log_prefix}"
    )
    return ApproveResponse(
        order=OrderResponse.from_order(result.order),
        earning_id=result.earning.id,
        payout=result.quote.payout,
        admin_fee=result.quote.admin_fee,
        founder_charge=result.quote.founder_charge,
        transaction_ids=[t.id for t in result.transactions],
    )


@router.post("/reject", response_model=RejectResponse)
@limiter.limit(WRITE_LIMIT)
async def reject_review(
    request: Request,
    order_id: str,
    auth: CurrentUser,
    service: SettlementServiceDep,
    body: RejectRequest | None = None,
):
    """Reject the submitted review and ask the talent for a new one."""
    log_prefix = f"{auth.user_id}"
    logger.info(f"POST /orders/{order_id}/review/reject | {log_prefix}")

    reason = body.reason if body else None
    result = await asyncio.to_thread(service.reject_review, order_id, auth.user_id, reason)
    if result.failed_media:
        logger.warning(
            f"Review media cleanup incomplete | order={order_id} | failed={len(result.failed_media)}"
        )
    return RejectResponse(
        order=OrderResponse.from_order(result.order),
        deleted_media=result.deleted_media,
        failed_media=result.failed_media,
    )
