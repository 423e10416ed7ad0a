"""Database models for the lesson catalog.

Cassandra table definitions for:
- Courses: Course header (trainer, review status)
- Lessons: Lesson header with owning course
- Course lessons: Ordered lesson list per course (defines total lessons)

The catalog is maintained by the course authoring tools; this service
only reads it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from src.utils.dates import ensure_utc_aware


class CourseStatus(str, Enum):
    """Course review status."""

    DRAFT = "draft"
    PENDING = "pending"  # Aguardando aprovacao do admin
    APPROVED = "approved"  # Aberto para inscricoes
    REJECTED = "rejected"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.courses (
    id UUID PRIMARY KEY,
    title TEXT,
    status TEXT,
    trainer_id UUID,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

LESSON_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lessons (
    id UUID PRIMARY KEY,
    course_id UUID,
    title TEXT,
    position INT,
    created_at TIMESTAMP
)
"""

# Ordered lesson list - clustering by position keeps display order
COURSE_LESSONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.course_lessons (
    course_id UUID,
    position INT,
    lesson_id UUID,
    PRIMARY KEY (course_id, position, lesson_id)
) WITH CLUSTERING ORDER BY (position ASC, lesson_id ASC)
"""

COURSES_TABLES_CQL = [
    COURSE_TABLE_CQL,
    LESSON_TABLE_CQL,
    COURSE_LESSONS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class Course:
    """Course as seen by the enrollment core.

    Attributes:
        id: Course UUID
        title: Course title
        trainer_id: Owning trainer
        status: Review status (draft, pending, approved, rejected)
        lesson_ids: Lesson UUIDs in display order
    """

    id: UUID
    title: str
    trainer_id: UUID
    status: str = CourseStatus.DRAFT.value
    lesson_ids: list[UUID] = field(default_factory=list)
    created_at: datetime | None = None

    @property
    def total_lessons(self) -> int:
        """Number of lessons currently in the course."""
        return len(self.lesson_ids)

    @property
    def is_approved(self) -> bool:
        """Check if the course accepts enrollments."""
        return self.status == CourseStatus.APPROVED.value

    def has_lesson(self, lesson_id: UUID) -> bool:
        """Check if the lesson belongs to the course's current lesson list."""
        return lesson_id in self.lesson_ids

    @classmethod
    def from_row(cls, row: Any, lesson_ids: list[UUID] | None = None) -> "Course":
        """Create Course instance from Cassandra row plus its lesson list."""
        return cls(
            id=row.id,
            title=row.title or "",
            trainer_id=row.trainer_id,
            status=row.status or CourseStatus.DRAFT.value,
            lesson_ids=list(lesson_ids or []),
            created_at=ensure_utc_aware(row.created_at),
        )


@dataclass
class Lesson:
    """Lesson header.

    Attributes:
        id: Lesson UUID
        course_id: Owning course UUID
        title: Lesson title
        position: Ordinal position inside the course
    """

    id: UUID
    course_id: UUID
    title: str = ""
    position: int = 0

    @classmethod
    def from_row(cls, row: Any) -> "Lesson":
        """Create Lesson instance from Cassandra row."""
        return cls(
            id=row.id,
            course_id=row.course_id,
            title=row.title or "",
            position=row.position or 0,
        )
