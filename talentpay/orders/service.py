"""
Order service.

Owns every order status change except the settlement edges
(``review_submitted -> completed`` and the revision back-edge), which
go through SettlementService so their ledger effects stay atomic with
the status change.
"""

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Union

from talentpay.config import CommerceConfig
from talentpay.errors import (
    ApplicationNotFoundError,
    ApplicationNotPendingError,
    CommerceError,
    DuplicateOrderError,
    InvalidTransition,
    OrderNotFoundError,
    ProfileNotFoundError,
    UnauthorizedError,
    ValidationError,
)
from talentpay.ledger.unit import LedgerUnit
from talentpay.notifications import NotificationType, notify
from talentpay.orders.models import (
    ApplicationStatus,
    Campaign,
    DeliveryInfo,
    MediaType,
    Order,
    OrderStateTransition,
    OrderStatus,
    ReviewMedia,
    ReviewSubmission,
)
from talentpay.pricing import price
from talentpay.utils import new_id, utc_now
from talentpay.wallet.models import ProfileRole

if TYPE_CHECKING:
    from talentpay.notifications import NotificationDispatcher
    from talentpay.storage.base import CommerceStorage

logger = logging.getLogger(__name__)

# Edges only the settlement workflow may take
SETTLEMENT_EDGES = {
    (OrderStatus.REVIEW_SUBMITTED, OrderStatus.COMPLETED),
    (OrderStatus.REVIEW_SUBMITTED, OrderStatus.DELIVERED),
}

MediaInput = Union[ReviewMedia, Dict[str, Any]]


class OrderService:
    """Service for order lifecycle operations.

    Usage:
        service = OrderService(storage=InMemoryCommerceStorage())
        order = service.create_order(campaign, talent_id="talent-1")
        service.ship_order(order.id, founder_id, tracking_number="MY123", courier="J&T")
    """

    def __init__(
        self,
        storage: "CommerceStorage",
        config: Optional[CommerceConfig] = None,
        notifier: Optional["NotificationDispatcher"] = None,
    ):
        self.storage = storage
        self.config = config or CommerceConfig()
        self.notifier = notifier

    # =========================================================================
    # Creation and queries
    # =========================================================================

    def create_order(
        self,
        campaign: Campaign,
        talent_id: str,
        actor_id: Optional[str] = None,
        order_id: Optional[str] = None,
    ) -> Order:
        """Approve a talent's pending application and create its order.

        The application is marked approved in the same unit as the order
        insert. The payout is fixed here from the pricing table and never
        changes.

        Args:
            campaign: Campaign the talent applied to
            talent_id: Applicant being approved
            actor_id: Founder approving the application (defaults to campaign owner)
            order_id: Optional explicit order ID

        Raises:
            UnauthorizedError: If actor is not the campaign founder
            ValidationError: If the campaign's stored price disagrees with the table,
                or the profile is not a talent
            ProfileNotFoundError: If the talent has no profile
            DuplicateOrderError: If an order already exists for this campaign and talent
            ApplicationNotFoundError: If the talent never applied to the campaign
            ApplicationNotPendingError: If the application was already decided
        """
        if actor_id is not None and actor_id != campaign.founder_id:
            raise UnauthorizedError("Only the campaign founder can approve applications")
        if not talent_id:
            raise ValidationError("talent_id is required")

        payout = price(campaign.rate_level, campaign.duration)
        if campaign.price is not None and campaign.price != payout:
            raise ValidationError(
                f"Campaign {campaign.id} price {campaign.price} does not match "
                f"rate level {campaign.rate_level} / {campaign.duration} price {payout}"
            )

        talent = self.storage.get_profile(talent_id)
        if talent is None:
            raise ProfileNotFoundError(f"Talent {talent_id} not found")
        if talent.role != ProfileRole.TALENT.value:
            raise ValidationError(f"Profile {talent_id} is not a talent")
        if self.storage.find_order(campaign.id, talent_id) is not None:
            raise DuplicateOrderError(
                f"Order already exists for campaign {campaign.id} and talent {talent_id}"
            )
        application = self.storage.get_application(campaign.id, talent_id)
        if application is None:
            raise ApplicationNotFoundError(f"Talent {talent_id} has not applied to campaign {campaign.id}")
        if not application.is_pending:
            raise ApplicationNotPendingError(
                f"Application of talent {talent_id} to campaign {campaign.id} is already {application.status}"
            )

        now = utc_now()
        order = Order(
            id=order_id or new_id(),
            campaign_id=campaign.id,
            talent_id=talent_id,
            founder_id=campaign.founder_id,
            payout=payout,
            status=OrderStatus.PENDING_SHIPMENT,
            campaign_title=campaign.title,
            created_at=now,
            updated_at=now,
        )
        with LedgerUnit(self.storage, self.config, "create_order", order.id) as unit:
            unit.update_application_status(application, ApplicationStatus.APPROVED)
            unit.add_order(order)
            unit.add_order_transition(
                OrderStateTransition.record(
                    order.id, None, order.status, actor_id or campaign.founder_id, payout=str(payout)
                )
            )

        logger.info(
            f"Created order {order.id} | campaign={campaign.id} | talent={talent_id} | payout={payout}"
        )
        notify(
            self.notifier,
            talent_id,
            "Application Approved",
            f"You have been approved for {campaign.title}. Your product will be shipped soon.",
            NotificationType.ORDER,
            related_entity_id=order.id,
            related_entity_type="order",
        )
        return order

    def get_order(self, order_id: str) -> Order:
        """Get an order by ID.

        Raises:
            OrderNotFoundError: If the order does not exist
        """
        order = self.storage.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(f"Order {order_id} not found")
        return order

    def get_order_for(self, order_id: str, user_id: str) -> Order:
        """Get an order visible to a participant."""
        order = self.get_order(order_id)
        if user_id not in (order.founder_id, order.talent_id):
            raise UnauthorizedError("Only the founder or talent can view this order")
        return order

    def list_orders_for_founder(
        self,
        founder_id: str,
        status: Optional[OrderStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Order]:
        return self.storage.list_orders(founder_id=founder_id, status=status, limit=limit, offset=offset)

    def list_orders_for_talent(
        self,
        talent_id: str,
        status: Optional[OrderStatus] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Order]:
        return self.storage.list_orders(talent_id=talent_id, status=status, limit=limit, offset=offset)

    def get_transitions(self, order_id: str) -> List[OrderStateTransition]:
        """Get the status history for an order."""
        self.get_order(order_id)
        return self.storage.get_order_transitions(order_id)

    # =========================================================================
    # Transitions
    # =========================================================================

    def transition(
        self,
        order_id: str,
        new_status: Union[OrderStatus, str],
        payload: Optional[Dict[str, Any]] = None,
        actor_id: Optional[str] = None,
    ) -> Order:
        """Move an order to ``new_status`` with a status-specific payload.

        Payloads:
            shipped: tracking_number, courier, address (optional)
            delivered: none
            review_submitted: media (list of {url, type}), notes (optional)

        Raises:
            InvalidTransition: If the edge is not allowed (including settlement edges)
            ValidationError: If the payload is incomplete
            UnauthorizedError: If the actor may not take this edge
        """
        payload = payload or {}
        try:
            target = OrderStatus(new_status)
        except ValueError:
            raise ValidationError(f"Unknown order status: {new_status}") from None

        if target == OrderStatus.SHIPPED:
            return self.ship_order(
                order_id,
                actor_id,
                tracking_number=payload.get("tracking_number", ""),
                courier=payload.get("courier", ""),
                address=payload.get("address"),
            )
        if target == OrderStatus.DELIVERED:
            order = self.get_order(order_id)
            if order.status == OrderStatus.REVIEW_SUBMITTED.value:
                raise InvalidTransition(
                    order_id, order.status, target.value, reason="use reject_review to request a revision"
                )
            return self.mark_delivered(order_id, actor_id)
        if target == OrderStatus.REVIEW_SUBMITTED:
            return self.submit_review(
                order_id,
                actor_id,
                media=payload.get("media") or [],
                notes=payload.get("notes"),
            )
        if target == OrderStatus.COMPLETED:
            order = self.get_order(order_id)
            raise InvalidTransition(
                order_id, order.status, target.value, reason="use approve_review to complete an order"
            )

        order = self.get_order(order_id)
        raise InvalidTransition(order_id, order.status, target.value)

    def ship_order(
        self,
        order_id: str,
        founder_id: Optional[str],
        tracking_number: str,
        courier: str,
        address: Optional[str] = None,
    ) -> Order:
        """Record shipment details (pending_shipment -> shipped).

        Raises:
            UnauthorizedError: If caller is not the order's founder
            InvalidTransition: If the order is not awaiting shipment
            ValidationError: If tracking number or courier is missing
        """
        order = self.get_order(order_id)
        if founder_id != order.founder_id:
            raise UnauthorizedError("Only the founder can ship an order")
        if not order.can_transition_to(OrderStatus.SHIPPED):
            raise InvalidTransition(order_id, order.status, OrderStatus.SHIPPED.value)
        tracking_number = (tracking_number or "").strip()
        courier = (courier or "").strip()
        if not tracking_number or not courier:
            raise ValidationError("tracking_number and courier are required to ship an order")

        updated = self._apply(
            order,
            OrderStatus.SHIPPED,
            founder_id,
            delivery_info=DeliveryInfo(tracking_number=tracking_number, courier=courier, address=address),
        )
        notify(
            self.notifier,
            order.talent_id,
            "Product Shipped",
            f"Your product for {order.campaign_title} was shipped via {courier} ({tracking_number}).",
            NotificationType.ORDER,
            related_entity_id=order.id,
            related_entity_type="order",
        )
        return updated

    def mark_delivered(self, order_id: str, actor_id: Optional[str] = None) -> Order:
        """Mark a shipped order as delivered (shipped -> delivered).

        Any participant or the system may report delivery.
        """
        order = self.get_order(order_id)
        updated = self._apply(order, OrderStatus.DELIVERED, actor_id, delivered_at=utc_now())
        notify(
            self.notifier,
            order.talent_id,
            "Product Delivered",
            f"Your product for {order.campaign_title} has arrived. Submit your review when ready.",
            NotificationType.ORDER,
            related_entity_id=order.id,
            related_entity_type="order",
        )
        return updated

    def submit_review(
        self,
        order_id: str,
        talent_id: Optional[str],
        media: Iterable[MediaInput],
        notes: Optional[str] = None,
    ) -> Order:
        """Attach review media (delivered -> review_submitted).

        Raises:
            UnauthorizedError: If caller is not the order's talent
            ValidationError: If no valid media item is given
            InvalidTransition: If not delivered or a submission is already attached
        """
        order = self.get_order(order_id)
        if talent_id != order.talent_id:
            raise UnauthorizedError("Only the assigned talent can submit a review")

        items = [self._to_media(m) for m in media]
        if not items:
            raise ValidationError("At least one review media item is required")
        if order.review_submission is not None:
            raise InvalidTransition(
                order_id, order.status, OrderStatus.REVIEW_SUBMITTED.value, reason="review already submitted"
            )

        updated = self._apply(
            order,
            OrderStatus.REVIEW_SUBMITTED,
            talent_id,
            review_submission=ReviewSubmission(media=items, submitted_at=utc_now(), notes=notes),
            metadata={"media_count": len(items)},
        )
        notify(
            self.notifier,
            order.founder_id,
            "Review Submitted",
            f"A review for {order.campaign_title} is waiting for your approval.",
            NotificationType.REVIEW,
            related_entity_id=order.id,
            related_entity_type="order",
        )
        return updated

    # =========================================================================
    # Internal
    # =========================================================================

    def _apply(
        self,
        order: Order,
        target: OrderStatus,
        actor_id: Optional[str],
        metadata: Optional[Dict[str, Any]] = None,
        **changes,
    ) -> Order:
        """Validate the edge, then compare-and-set the order and log the transition."""
        if (OrderStatus(order.status), target) in SETTLEMENT_EDGES:
            raise InvalidTransition(order.id, order.status, target.value, reason="settlement edge")
        if not order.can_transition_to(target):
            raise InvalidTransition(order.id, order.status, target.value)

        updated = replace(
            order,
            status=target.value,
            version=order.version + 1,
            updated_at=utc_now(),
            **changes,
        )
        try:
            with LedgerUnit(self.storage, self.config, f"transition_{target.value}", order.id) as unit:
                unit.update_order(order, updated)
                unit.add_order_transition(
                    OrderStateTransition.record(
                        order.id, order.status, target.value, actor_id, **(metadata or {})
                    )
                )
        except CommerceError:
            logger.warning(f"Order {order.id} transition {order.status} -> {target.value} failed")
            raise

        logger.info(f"Order {order.id} | {order.status} -> {target.value} | actor={actor_id}")
        return updated

    @staticmethod
    def _to_media(item: MediaInput) -> ReviewMedia:
        if isinstance(item, ReviewMedia):
            return item
        try:
            return ReviewMedia(
                url=item.get("url", ""),
                media_type=item.get("type") or item.get("media_type") or "",
            )
        except (ValueError, AttributeError) as e:
            raise ValidationError(
                f"Invalid review media {item!r}; expected url and type in "
                f"{[t.value for t in MediaType]}"
            ) from e

