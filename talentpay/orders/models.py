"""
Order data models.

An Order links one campaign, one talent and the campaign's founder, and
moves through a fixed lifecycle:

    pending_shipment -> shipped -> delivered -> review_submitted -> completed

with a single back-edge ``review_submitted -> delivered`` when the founder
asks for a revision.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from talentpay.pricing import DURATIONS, RATE_LEVELS, ZERO, to_money
from talentpay.utils import format_datetime, new_id, parse_datetime, utc_now


class OrderStatus(Enum):
    """Order lifecycle status."""

    PENDING_SHIPMENT = "pending_shipment"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    REVIEW_SUBMITTED = "review_submitted"
    COMPLETED = "completed"


VALID_ORDER_TRANSITIONS = {
    OrderStatus.PENDING_SHIPMENT: {OrderStatus.SHIPPED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.REVIEW_SUBMITTED},
    OrderStatus.REVIEW_SUBMITTED: {OrderStatus.COMPLETED, OrderStatus.DELIVERED},
    OrderStatus.COMPLETED: set(),
}

# Statuses in which an order may carry a review submission
REVIEW_STATUSES = {OrderStatus.REVIEW_SUBMITTED.value, OrderStatus.COMPLETED.value}


class MediaType(Enum):
    """Kind of review media."""

    IMAGE = "image"
    VIDEO = "video"


@dataclass(frozen=True)
class DeliveryInfo:
    """Shipment details recorded by the founder."""

    tracking_number: str
    courier: str
    address: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tracking_number": self.tracking_number,
            "courier": self.courier,
            "address": self.address,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeliveryInfo":
        return cls(
            tracking_number=data.get("tracking_number") or "",
            courier=data.get("courier") or "",
            address=data.get("address"),
        )


@dataclass(frozen=True)
class ReviewMedia:
    """One uploaded review image or video."""

    url: str
    media_type: str

    def __post_init__(self):
        if isinstance(self.media_type, MediaType):
            object.__setattr__(self, "media_type", self.media_type.value)
        valid_types = {t.value for t in MediaType}
        if self.media_type not in valid_types:
            raise ValueError(f"Invalid media type: {self.media_type}. Must be one of {valid_types}")
        if not self.url:
            raise ValueError("Review media url is required")

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "type": self.media_type}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReviewMedia":
        return cls(url=data["url"], media_type=data.get("type") or data.get("media_type"))


@dataclass(frozen=True)
class ReviewSubmission:
    """A talent's review upload for an order."""

    media: List[ReviewMedia]
    submitted_at: datetime = field(default_factory=utc_now)
    notes: Optional[str] = None

    def __post_init__(self):
        if not self.media:
            raise ValueError("Review submission requires at least one media item")


@dataclass
class Campaign:
    """Campaign data consumed by order creation.

    Campaigns are owned outside this package; only the fields needed to fix
    an order's payout are modelled here.
    """

    id: str
    founder_id: str
    title: str
    rate_level: int
    duration: str
    status: str = "active"
    price: Optional[Decimal] = None

    def __post_init__(self):
        if self.rate_level not in RATE_LEVELS:
            raise ValueError(f"Invalid rate_level: {self.rate_level}. Must be one of {RATE_LEVELS}")
        if self.duration not in DURATIONS:
            raise ValueError(f"Invalid duration: {self.duration}. Must be one of {DURATIONS}")
        if self.price is not None:
            self.price = to_money(self.price)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Campaign":
        raw_price = data.get("price")
        return cls(
            id=data["id"],
            founder_id=data["founder_id"],
            title=data.get("title") or "",
            rate_level=int(data["rate_level"]),
            duration=data["duration"],
            status=data.get("status") or "active",
            price=to_money(str(raw_price)) if raw_price is not None else None,
        )


class ApplicationStatus(Enum):
    """Status of a talent's application to a campaign."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass
class CampaignApplication:
    """A talent's application to a campaign.

    Approving a pending application is what creates the order.
    """

    id: str
    campaign_id: str
    talent_id: str
    status: str = "pending"
    applied_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if isinstance(self.status, ApplicationStatus):
            self.status = self.status.value
        valid = {s.value for s in ApplicationStatus}
        if self.status not in valid:
            raise ValueError(f"Invalid application status: {self.status}. Must be one of {valid}")

    @property
    def is_pending(self) -> bool:
        return self.status == ApplicationStatus.PENDING.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "talent_id": self.talent_id,
            "status": self.status,
            "applied_at": format_datetime(self.applied_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CampaignApplication":
        return cls(
            id=data["id"],
            campaign_id=data["campaign_id"],
            talent_id=data["talent_id"],
            status=data.get("status") or ApplicationStatus.PENDING.value,
            applied_at=parse_datetime(data.get("applied_at")) or utc_now(),
        )


@dataclass
class Order:
    """A campaign fulfilment by one talent.

    Attributes:
        id: Unique identifier (UUID)
        campaign_id: Campaign being fulfilled
        talent_id: Talent fulfilling it
        founder_id: Campaign owner who pays for it
        payout: Talent payment, fixed from the campaign price at creation
        status: Current lifecycle status
        version: Incremented on every write; used for compare-and-set
        campaign_title: Denormalized for earnings and statements
        delivery_info: Shipment details, set when shipped
        review_submission: Review media, set while review_submitted/completed
    """

    id: str
    campaign_id: str
    talent_id: str
    founder_id: str
    payout: Decimal
    status: str = "pending_shipment"
    version: int = 1
    campaign_title: str = ""
    delivery_info: Optional[DeliveryInfo] = None
    review_submission: Optional[ReviewSubmission] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    delivered_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def __post_init__(self):
        if isinstance(self.status, OrderStatus):
            self.status = self.status.value
        valid_statuses = {s.value for s in OrderStatus}
        if self.status not in valid_statuses:
            raise ValueError(f"Invalid status: {self.status}. Must be one of {valid_statuses}")

        self.payout = to_money(self.payout)
        if self.payout <= ZERO:
            raise ValueError("Payout must be positive")
        if self.version < 1:
            raise ValueError("Version must be at least 1")

        if self.review_submission is not None and self.status not in REVIEW_STATUSES:
            raise ValueError(
                f"Review submission is only allowed in {sorted(REVIEW_STATUSES)}, not {self.status}"
            )

    def can_transition_to(self, new_status: OrderStatus) -> bool:
        """Check if transition to new status is valid."""
        current = OrderStatus(self.status)
        return new_status in VALID_ORDER_TRANSITIONS.get(current, set())

    def is_terminal(self) -> bool:
        """Check if order is in a terminal state."""
        return self.status == OrderStatus.COMPLETED.value

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        review = self.review_submission
        return {
            "id": self.id,
            "campaign_id": self.campaign_id,
            "talent_id": self.talent_id,
            "founder_id": self.founder_id,
            "payout": str(self.payout),
            "status": self.status,
            "version": self.version,
            "campaign_title": self.campaign_title,
            "delivery_info": self.delivery_info.to_dict() if self.delivery_info else None,
            "review_media": [m.to_dict() for m in review.media] if review else None,
            "review_submitted_at": format_datetime(review.submitted_at) if review else None,
            "notes": review.notes if review else None,
            "created_at": format_datetime(self.created_at),
            "updated_at": format_datetime(self.updated_at),
            "delivered_at": format_datetime(self.delivered_at),
            "completed_at": format_datetime(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        """Create from dictionary."""
        delivery = data.get("delivery_info")
        review = None
        if data.get("review_media"):
            review = ReviewSubmission(
                media=[ReviewMedia.from_dict(m) for m in data["review_media"]],
                submitted_at=parse_datetime(data.get("review_submitted_at")) or utc_now(),
                notes=data.get("notes"),
            )
        return cls(
            id=data["id"],
            campaign_id=data["campaign_id"],
            talent_id=data["talent_id"],
            founder_id=data["founder_id"],
            payout=to_money(str(data["payout"])),
            status=data.get("status", "pending_shipment"),
            version=int(data.get("version") or 1),
            campaign_title=data.get("campaign_title") or "",
            delivery_info=DeliveryInfo.from_dict(delivery) if delivery else None,
            review_submission=review,
            created_at=parse_datetime(data.get("created_at")) or utc_now(),
            updated_at=parse_datetime(data.get("updated_at")) or utc_now(),
            delivered_at=parse_datetime(data.get("delivered_at")),
            completed_at=parse_datetime(data.get("completed_at")),
        )


@dataclass
class OrderStateTransition:
    """Audit log entry for order status changes.

    ``from_status`` is None for the creation entry.
    """

    id: str
    order_id: str
    from_status: Optional[str]
    to_status: str
    actor_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utc_now)

    @classmethod
    def record(cls, order_id: str, from_status: Optional[str], to_status: str, actor_id: Optional[str] = None, **metadata) -> "OrderStateTransition":
        return cls(
            id=new_id(),
            order_id=order_id,
            from_status=from_status,
            to_status=to_status,
            actor_id=actor_id,
            metadata=metadata,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "order_id": self.order_id,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "actor_id": self.actor_id,
            "metadata": self.metadata,
            "created_at": format_datetime(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderStateTransition":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            order_id=data["order_id"],
            from_status=data.get("from_status"),
            to_status=data["to_status"],
            actor_id=data.get("actor_id"),
            metadata=data.get("metadata") or {},
            created_at=parse_datetime(data.get("created_at")) or utc_now(),
        )
