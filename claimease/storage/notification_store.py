# claimease/storage/notification_store.py
"""Notification storage implementation."""

from typing import Optional, List

from claimease.storage.base import BaseStore
from claimease.models.notification import Notification


class NotificationStore(BaseStore[Notification]):
    """Storage for in-app notifications."""

    collection = "notifications"
    model = Notification
    id_field = "notification_id"

    def get_for_recipient(self, recipient_id: str) -> List[Notification]:
        return self.find(lambda n: n.recipient_id == recipient_id)

    def unread_count(self, recipient_id: str) -> int:
        return len(self.find(lambda n: n.recipient_id == recipient_id and not n.is_read))

    def search(
        self,
        recipient_id: str,
        is_read: Optional[bool] = None,
        type: Optional[str] = None,
        page: int = 1,
        limit: int = 20
    ) -> tuple[List[Notification], int]:
        results = self.get_for_recipient(recipient_id)

        if is_read is not None:
            results = [n for n in results if n.is_read == is_read]

        if type:
            results = [n for n in results if n.type == type]

        return self.paginate(results, sort_key=lambda n: n.created_at, page=page, limit=limit)


# Singleton instance
_notification_store: Optional[NotificationStore] = None


def get_notification_store() -> NotificationStore:
    """Get the notification store singleton."""
    global _notification_store
    if _notification_store is None:
        _notification_store = NotificationStore()
    return _notification_store
