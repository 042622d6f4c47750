"""
Notification Service
Records in-app notifications for organization members.

Delivery is fire-and-once: nothing here retries or de-duplicates, and
errors propagate so the caller decides whether a failed send matters.
"""

import logging
from typing import Optional

from ..models import Notification, NotificationPriority

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def send_notification(
        self,
        organization_id: int,
        type: str,
        title: str,
        message: str,
        user_id: Optional[int] = None,
        data: Optional[dict] = None,
        priority: str = NotificationPriority.NORMAL,
    ) -> int:
        """
        Create a notification

        Args:
            organization_id: Tenant the notification belongs to
            type: Notification type (e.g. job_auto_started)
            title: Short title
            message: Human readable body
            user_id: Recipient; None broadcasts to the whole organization
            data: Extra payload for the client
            priority: low, normal, high or urgent

        Returns:
            ID of the stored notification
        """
        if priority not in NotificationPriority.ALL:
            raise ValueError(f"Invalid notification priority: {priority}")

        db = self.session_factory()
        try:
            notification = Notification(
                organization_id=organization_id,
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                data=data or {},
                priority=priority,
            )
            db.add(notification)
            db.commit()
            db.refresh(notification)

            recipient = f"user {user_id}" if user_id else f"organization {organization_id}"
            logger.info(f"🔔 Notification sent to {recipient}: {title}")
            return notification.id
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
