"""Notifications module.

Provides:
- Enrollment notifications for students and trainers
- Unread count tracking
- Redis Pub/Sub fan-out
"""

from src.notifications.models import (
    NOTIFICATIONS_TABLES_CQL,
    Notification,
    NotificationType,
)
from src.notifications.service import NotificationService, NotificationSink


__all__ = [
    "NOTIFICATIONS_TABLES_CQL",
    "Notification",
    "NotificationService",
    "NotificationSink",
    "NotificationType",
]
