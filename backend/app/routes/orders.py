"""Order routes for TalentPay.

Endpoints for creating orders from approved applications and moving
them through shipment, delivery and review submission. Approval and
rejection of reviews live in the reviews router.
"""

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import Any, Literal

from fastapi import APIRouter, HTTPException, Query, Request, status
from pydantic import BaseModel, Field

from talentpay.orders.models import Campaign, Order, OrderStatus

from ..auth import CurrentUser
from ..database import Database, get_campaign
from ..logging_config import get_logger
from ..rate_limit import READ_LIMIT, WRITE_LIMIT, limiter
from ..services import OrderServiceDep

logger = get_logger("talentpay.routes.orders")
router = APIRouter(prefix="/orders", tags=["orders"])


# =============================================================================
# Request/Response Models
# =============================================================================

OrderStatusName = Literal["pending_shipment", "shipped", "delivered", "review_submitted", "completed"]


class OrderCreate(BaseModel):
    """Approve a talent's application, creating the order."""

    campaign_id: str = Field(..., min_length=1)
    talent_id: str = Field(..., min_length=1)


class ReviewMediaItem(BaseModel):
    url: str = Field(..., min_length=1)
    type: Literal["image", "video"]


class TransitionRequest(BaseModel):
    """Request to move an order to a new status.

    Fields used depend on the target status:
      shipped: tracking_number, courier, address
      review_submitted: media, notes
    """

    status: OrderStatusName
    tracking_number: str | None = None
    courier: str | None = None
    address: str | None = None
    media: list[ReviewMediaItem] = Field(default_factory=list)
    notes: str | None = Field(None, max_length=2000)

    def payload(self) -> dict[str, Any]:
        return {
            "tracking_number": self.tracking_number,
            "courier": self.courier,
            "address": self.address,
            "media": [m.model_dump() for m in self.media],
            "notes": self.notes,
        }


class DeliveryInfoResponse(BaseModel):
    tracking_number: str
    courier: str
    address: str | None = None


class OrderResponse(BaseModel):
    """Order details response."""

    id: str
    campaign_id: str
    talent_id: str
    founder_id: str
    payout: Decimal
    status: OrderStatusName
    version: int
    campaign_title: str
    delivery_info: DeliveryInfoResponse | None = None
    review_media: list[ReviewMediaItem] | None = None
    review_submitted_at: datetime | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime
    delivered_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(**order.to_dict())


class OrderListResponse(BaseModel):
    """Paginated list of orders."""

    orders: list[OrderResponse]
    limit: int
    offset: int


class TransitionResponse(BaseModel):
    id: str
    order_id: str
    from_status: str | None = None
    to_status: str
    actor_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


# =============================================================================
# Routes
# =============================================================================


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(WRITE_LIMIT)
async def create_order(
    request: Request,
    body: OrderCreate,
    auth: CurrentUser,
    db: Database,
    service: OrderServiceDep,
):
    """
    Create an order for an approved application.

    The payout is fixed from the campaign's rate level and duration.
    Only the campaign's founder may approve.
    """
    log_prefix = f"{auth.user_id}"
    logger.info(f"POST /orders | campaign={body.campaign_id} | talent={body.talent_id} | {log_prefix}")

    row = await get_campaign(db, body.campaign_id)
    if not row:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Campaign not found",
        )
    try:
        campaign = Campaign.from_dict(row)
    except (KeyError, ValueError) as e:
        logger.error(f"Invalid campaign record {body.campaign_id} | {e}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Campaign is missing pricing details",
        )

    order = await asyncio.to_thread(service.create_order, campaign, body.talent_id, auth.user_id)
    return OrderResponse.from_order(order)


@router.get("", response_model=OrderListResponse)
@limiter.limit(READ_LIMIT)
async def list_orders(
    request: Request,
    auth: CurrentUser,
    service: OrderServiceDep,
    status_filter: OrderStatusName | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    """List the caller's orders (as founder or talent, by token role)."""
    log_prefix = f"{auth.user_id}"
    logger.info(f"GET /orders | status={status_filter} | {log_prefix}")

    order_status = OrderStatus(status_filter) if status_filter else None
    if auth.is_talent:
        orders = await asyncio.to_thread(
            service.list_orders_for_talent, auth.user_id, order_status, limit, offset
        )
    else:
        orders = await asyncio.to_thread(
            service.list_orders_for_founder, auth.user_id, order_status, limit, offset
        )
    return OrderListResponse(
        orders=[OrderResponse.from_order(o) for o in orders],
        limit=limit,
        offset=offset,
    )


@router.get("/{order_id}", response_model=OrderResponse)
@limiter.limit(READ_LIMIT)
async def get_order(
    request: Request,
    order_id: str,
    auth: CurrentUser,
    service: OrderServiceDep,
):
    """Get an order visible to the caller."""
    logger.info(f"GET /orders/{order_id} | {auth.user_id}")
    order = await asyncio.to_thread(service.get_order_for, order_id, auth.user_id)
    return OrderResponse.from_order(order)


@router.get("/{order_id}/transitions", response_model=list[TransitionResponse])
@limiter.limit(READ_LIMIT)
async def get_order_transitions(
    request: Request,
    order_id: str,
    auth: CurrentUser,
    service: OrderServiceDep,
):
    """Get the status history of an order, oldest first."""
    logger.info(f"GET /orders/{order_id}/transitions | {auth.user_id}")
    await asyncio.to_thread(service.get_order_for, order_id, auth.user_id)
    transitions = await asyncio.to_thread(service.get_transitions, order_id)
    return [TransitionResponse(**t.to_dict()) for t in transitions]


@router.post("/{order_id}/transition", response_model=OrderResponse)
@limiter.limit(WRITE_LIMIT)
async def transition_order(
    request: Request,
    order_id: str,
    body: TransitionRequest,
    auth: CurrentUser,
    service: OrderServiceDep,
):
    """
    Move an order to a new status.

    - shipped: founder only, requires tracking_number and courier
    - delivered: any participant
    - review_submitted: talent only, requires at least one media item

    Completing an order or sending it back for revision goes through
    the review endpoints.
    """
    log_prefix = f"{auth.user_id}"
    logger.info(f"POST /orders/{order_id}/transition | status={body.status} | {log_prefix}")

    if body.status == OrderStatus.DELIVERED.value:
        await asyncio.to_thread(service.get_order_for, order_id, auth.user_id)

    order = await asyncio.to_thread(
        service.transition, order_id, body.status, body.payload(), auth.user_id
    )
    logger.info(f"Order {order_id} -> {order.status} | version={order.version} | {log_prefix}")
    return OrderResponse.from_order(order)
