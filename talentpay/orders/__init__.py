"""Order lifecycle for TalentPay.

Models:
- Order: One campaign fulfilment by one talent
- OrderStatus: Order lifecycle status
- OrderStateTransition: Audit log entry for status changes
- Campaign: Campaign data consumed at order creation
- CampaignApplication: A talent's application, approved when the order is created

Service:
- OrderService: Order operations (create, ship, deliver, submit review)
"""

from talentpay.orders.models import (
    VALID_ORDER_TRANSITIONS,
    ApplicationStatus,
    Campaign,
    CampaignApplication,
    DeliveryInfo,
    MediaType,
    Order,
    OrderStateTransition,
    OrderStatus,
    ReviewMedia,
    ReviewSubmission,
)
from talentpay.orders.service import SETTLEMENT_EDGES, OrderService

__all__ = [
    # Models
    "Order",
    "OrderStatus",
    "OrderStateTransition",
    "VALID_ORDER_TRANSITIONS",
    "Campaign",
    "CampaignApplication",
    "ApplicationStatus",
    "DeliveryInfo",
    "MediaType",
    "ReviewMedia",
    "ReviewSubmission",
    # Service
    "OrderService",
    "SETTLEMENT_EDGES",
]
