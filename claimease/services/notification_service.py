# claimease/services/notification_service.py
"""In-app notifications and delivery preferences."""

from typing import Optional, List, Tuple, Dict, Any

from claimease.core.constants import NotificationType, NotificationPriority, NotificationStatus
from claimease.core.exceptions import NotificationNotFoundError, ValidationFailedError
from claimease.core.logging import get_logger
from claimease.models.base import utcnow
from claimease.models.notification import Notification, NotificationCreate, RelatedEntities, PreferencesUpdate
from claimease.models.user import User, NotificationPreferences
from claimease.storage.notification_store import get_notification_store
from claimease.storage.user_store import get_user_store

logger = get_logger(__name__)


class NotificationService:
    """Service for notification operations."""

    def __init__(self):
        self.store = get_notification_store()
        self.users = get_user_store()

    def notify(
        self,
        recipient_id: str,
        type: NotificationType,
        title: str,
        message: str,
        priority: NotificationPriority = NotificationPriority.MEDIUM,
        related: Optional[Dict[str, Optional[str]]] = None,
        sender_id: Optional[str] = None
    ) -> Optional[Notification]:
        """Store a notification for ``recipient_id``; unknown recipients are skipped."""
        recipient = self.users.get(recipient_id)
        if recipient is None:
            logger.warning("Notification recipient not found", recipient_id=recipient_id, type=getattr(type, "value", type))
            return None

        notification = Notification(
            recipient_id=recipient_id,
            type=type,
            title=title,
            message=message,
            priority=priority,
            related=RelatedEntities(**(related or {})),
            sender_id=sender_id,
            status=NotificationStatus.SENT,
        )
        self.store.save(notification)

        # Outbound channels are recorded, not delivered
        if recipient.notification_preferences.email:
            logger.log_email("notification", recipient.email, title,
                             notification_id=notification.notification_id)

        return notification

    def list_for(
        self,
        user: User,
        is_read: Optional[bool] = None,
        type: Optional[str] = None,
        page: int = 1,
        limit: int = 20
    ) -> Tuple[List[Notification], int, int]:
        """Returns ``(page_items, total, unread_count)``."""
        items, total = self.store.search(user.user_id, is_read=is_read, type=type, page=page, limit=limit)
        return items, total, self.store.unread_count(user.user_id)

    def _owned(self, user: User, notification_id: str) -> Notification:
        notification = self.store.get(notification_id)
        if notification is None or notification.recipient_id != user.user_id:
            raise NotificationNotFoundError(notification_id)
        return notification

    def _mark(self, notification: Notification):
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = utcnow()
            notification.status = NotificationStatus.READ.value
            notification.touch()
            self.store.save(notification)

    def mark_read(self, user: User, notification_id: str) -> Notification:
        notification = self._owned(user, notification_id)
        self._mark(notification)
        return notification

    def mark_many_read(self, user: User, notification_ids: List[str]) -> int:
        if not notification_ids:
            raise ValidationFailedError.single("notification_ids", "Notification IDs are required")
        updated = 0
        for notification_id in notification_ids:
            notification = self.store.get(notification_id)
            if notification and notification.recipient_id == user.user_id and not notification.is_read:
                self._mark(notification)
                updated += 1
        return updated

    def mark_all_read(self, user: User) -> int:
        unread = self.store.find(lambda n: n.recipient_id == user.user_id and not n.is_read)
        for notification in unread:
            self._mark(notification)
        return len(unread)

    def delete(self, user: User, notification_id: str):
        self._owned(user, notification_id)
        self.store.delete(notification_id)

    def unread_count(self, user: User) -> int:
        return self.store.unread_count(user.user_id)

    def send_test(self, user: User, data: NotificationCreate) -> Notification:
        if data.type not in NotificationType.values():
            raise ValidationFailedError.single("type", "Invalid notification type")
        if data.priority not in NotificationPriority.values():
            raise ValidationFailedError.single("priority", "Invalid priority")
        return self.notify(
            user.user_id,
            NotificationType(data.type),
            data.title,
            data.message,
            priority=NotificationPriority(data.priority),
            sender_id=user.user_id,
        )

    def get_preferences(self, user: User) -> Dict[str, Any]:
        return user.notification_preferences.model_dump()

    def update_preferences(self, user: User, update: PreferencesUpdate) -> Dict[str, Any]:
        current = user.notification_preferences.model_dump()
        current.update(update.model_dump(exclude_none=True))
        user.notification_preferences = NotificationPreferences(**current)
        user.touch()
        self.users.save(user)
        logger.info("Notification preferences updated", user_id=user.user_id)
        return current
