"""Database models for enrollment notifications.

Cassandra table definitions for:
- Notifications: User notifications partitioned by user
- Unread counts: Counter per user

Notification types:
- ENROLLMENT_SUCCEEDED: Student enrolled in a course
- NEW_ENROLLMENT: Trainer got a new student
- SYSTEM: System-wide announcement
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from src.utils.dates import ensure_utc_aware


class NotificationType(str, Enum):
    """Types of notifications."""

    ENROLLMENT_SUCCEEDED = "enrollment_succeeded"
    NEW_ENROLLMENT = "new_enrollment"
    SYSTEM = "system"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Main Notifications Table - partitioned by user_id for efficient user queries
NOTIFICATION_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.notifications (
    user_id UUID,
    notification_id UUID,
    type TEXT,
    title TEXT,
    message TEXT,
    actor_id UUID,
    course_id UUID,
    reference_url TEXT,
    is_read BOOLEAN,
    created_at TIMESTAMP,
    PRIMARY KEY ((user_id), created_at, notification_id)
) WITH CLUSTERING ORDER BY (created_at DESC, notification_id ASC)
"""

# Unread count table - for quick unread count queries
UNREAD_COUNT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.notification_unread_counts (
    user_id UUID PRIMARY KEY,
    count COUNTER
)
"""

NOTIFICATIONS_TABLES_CQL = [
    NOTIFICATION_TABLE_CQL,
    UNREAD_COUNT_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class Notification:
    """Notification entity."""

    notification_id: UUID
    user_id: UUID
    type: NotificationType
    title: str
    message: str
    actor_id: UUID | None
    course_id: UUID | None
    reference_url: str | None
    is_read: bool
    created_at: datetime

    @classmethod
    def from_row(cls, row: Any) -> "Notification":
        """Create Notification from Cassandra row."""
        return cls(
            notification_id=row.notification_id,
            user_id=row.user_id,
            type=NotificationType(row.type),
            title=row.title,
            message=row.message,
            actor_id=row.actor_id,
            course_id=row.course_id,
            reference_url=row.reference_url,
            is_read=row.is_read or False,
            created_at=ensure_utc_aware(row.created_at),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (JSON-safe)."""
        return {
            "id": str(self.notification_id),
            "user_id": str(self.user_id),
            "type": self.type.value,
            "title": self.title,
            "message": self.message,
            "actor_id": str(self.actor_id) if self.actor_id else None,
            "course_id": str(self.course_id) if self.course_id else None,
            "reference_url": self.reference_url,
            "is_read": self.is_read,
            "created_at": self.created_at.isoformat(),
        }


# ==============================================================================
# Factory Functions
# ==============================================================================


def create_notification(
    user_id: UUID,
    notification_type: NotificationType,
    title: str,
    message: str,
    actor_id: UUID | None = None,
    course_id: UUID | None = None,
    reference_url: str | None = None,
) -> Notification:
    """Create a new unread notification."""
    return Notification(
        notification_id=uuid4(),
        user_id=user_id,
        type=notification_type,
        title=title,
        message=message,
        actor_id=actor_id,
        course_id=course_id,
        reference_url=reference_url,
        is_read=False,
        created_at=datetime.now(UTC),
    )


def create_enrollment_succeeded_notification(
    student_id: UUID, course_id: UUID, course_title: str
) -> Notification:
    """Create the student's enrollment confirmation."""
    return create_notification(
        user_id=student_id,
        notification_type=NotificationType.ENROLLMENT_SUCCEEDED,
        title="Inscricao realizada",
        message=f"Voce foi inscrito no curso {course_title}",
        course_id=course_id,
        reference_url=f"/courses/{course_id}",
    )


def create_new_enrollment_notification(
    trainer_id: UUID, student_id: UUID, course_id: UUID, course_title: str
) -> Notification:
    """Create the trainer's new-student notice."""
    return create_notification(
        user_id=trainer_id,
        notification_type=NotificationType.NEW_ENROLLMENT,
        title="Novo aluno inscrito",
        message=f"Um novo aluno se inscreveu no curso {course_title}",
        actor_id=student_id,
        course_id=course_id,
        reference_url=f"/courses/{course_id}/students",
    )
