"""
User notifications.

Services emit notifications after a state change commits and never wait
on delivery: a dispatcher failure is logged and the operation still
succeeds.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from supabase import Client

logger = logging.getLogger(__name__)

NOTIFICATIONS_TABLE = "notifications"


class NotificationType(Enum):
    """Notification categories shown in the app."""

    ORDER = "order"
    REVIEW = "review"
    PAYMENT = "payment"
    WITHDRAWAL = "withdrawal"


@dataclass
class Notification:
    """A message for one user about one entity."""

    user_id: str
    title: str
    message: str
    type: str
    related_entity_id: Optional[str] = None
    related_entity_type: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "title": self.title,
            "message": self.message,
            "type": self.type,
            "related_entity_id": self.related_entity_id,
            "related_entity_type": self.related_entity_type,
            "is_read": False,
        }


class NotificationDispatcher(Protocol):
    """Protocol for notification backends."""

    def send(self, notification: Notification) -> None:
        """Deliver or enqueue a notification."""
        ...


class SupabaseNotificationDispatcher:
    """Writes notifications to the notifications table for the app to display."""

    def __init__(self, client: Client):
        self.client = client

    def send(self, notification: Notification) -> None:
        self.client.table(NOTIFICATIONS_TABLE).insert(notification.to_dict()).execute()


def notify(
    dispatcher: Optional[NotificationDispatcher],
    user_id: str,
    title: str,
    message: str,
    type: NotificationType,
    related_entity_id: Optional[str] = None,
    related_entity_type: Optional[str] = None,
) -> bool:
    """Fire-and-forget a notification. Returns False if dispatch failed."""
    if dispatcher is None:
        return False
    notification = Notification(
        user_id=user_id,
        title=title,
        message=message,
        type=type.value,
        related_entity_id=related_entity_id,
        related_entity_type=related_entity_type,
    )
    try:
        dispatcher.send(notification)
        return True
    except Exception as e:
        # Delivery is best-effort; the committed operation stands
        logger.warning(f"Notification dispatch failed | user={user_id} | title={title} | error={e}")
        return False
