# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Notification service layer.

Business logic for:
- Persisting enrollment notifications
- Tracking unread counts
- Publishing to Redis Pub/Sub for real-time delivery
"""

import contextlib
import json
from typing import TYPE_CHECKING, Protocol
from uuid import UUID

from src.core.redis import notification_channel

from .models import (
    Notification,
    create_enrollment_succeeded_notification,
    create_new_enrollment_notification,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session
    from redis.asyncio import Redis

    from src.courses.models import Course


class NotificationSink(Protocol):
    """Where enrollment events are delivered (best-effort)."""

    async def notify_enrollment_succeeded(
        self, student_id: UUID, course: "Course"
    ) -> Notification | None: ...

    async def notify_new_enrollment(
        self, trainer_id: UUID, student_id: UUID, course: "Course"
    ) -> Notification | None: ...


class NotificationService:
    """Service for notification delivery."""

    def __init__(self, session: "Session", keyspace: str, redis: "Redis | None" = None):
        """Initialize with Cassandra session and optional Redis."""
        self.session = session
        self.keyspace = keyspace
        self.redis = redis
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient queries."""
        self._insert_notification = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.notifications
            (user_id, notification_id, type, title, message, actor_id,
             course_id, reference_url, is_read, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._incr_unread = self.session.prepare(f"""
            UPDATE {self.keyspace}.notification_unread_counts
            SET count = count + 1
            WHERE user_id = ?
        """)

    # ==========================================================================
    # Notification Creation
    # ==========================================================================

    async def create_notification(self, notification: Notification) -> Notification:
        """Persist a notification and push it to subscribers."""
        await self.session.aexecute(
            self._insert_notification,
            [
                notification.user_id,
                notification.notification_id,
                notification.type.value,
                notification.title,
                notification.message,
                notification.actor_id,
                notification.course_id,
                notification.reference_url,
                notification.is_read,
                notification.created_at,
            ],
        )

        await self.session.aexecute(self._incr_unread, [notification.user_id])
        await self._publish_notification(notification)

        return notification

    async def _publish_notification(self, notification: Notification) -> None:
        """Publish notification to Redis Pub/Sub for real-time delivery."""
        if not self.redis:
            return

        message = {"type": "notification", "data": notification.to_dict()}

        # Non-critical: the notification is already stored
        with contextlib.suppress(Exception):
            await self.redis.publish(
                notification_channel(str(notification.user_id)), json.dumps(message)
            )

    async def notify_enrollment_succeeded(
        self, student_id: UUID, course: "Course"
    ) -> Notification:
        """Tell the student the enrollment went through."""
        return await self.create_notification(
            create_enrollment_succeeded_notification(student_id, course.id, course.title)
        )

    async def notify_new_enrollment(
        self, trainer_id: UUID, student_id: UUID, course: "Course"
    ) -> Notification | None:
        """Tell the trainer a student enrolled (skipped when self-enrolled)."""
        if trainer_id == student_id:
            return None
        return await self.create_notification(
            create_new_enrollment_notification(
                trainer_id, student_id, course.id, course.title
            )
        )
