"""Database models for enrollment and lesson progress tracking.

Cassandra table definitions for:
- Lesson progress: Started/completed state per (user, lesson)
- Enrollments: Course enrollment with derived progress and status
- Lookup tables: Enrollments by student and by enrollment id

Architecture: Enrollment rows are the single source of truth for progress.
Every write to them goes through a lightweight transaction (Paxos), so the
completed-lesson set mutations and the version compare-and-set never
interleave with plain writes.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from src.utils.dates import ensure_utc_aware


class EnrollmentStatus(str, Enum):
    """Course enrollment status."""

    ENROLLED = "enrolled"  # Inscrito, ainda nao concluiu nenhuma aula
    IN_PROGRESS = "in-progress"  # Cursando
    COMPLETED = "completed"  # Concluiu todas as aulas
    DROPPED = "dropped"  # Cancelou a inscricao (soft delete)


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Progresso de aula por usuario
# Partition key: (user_id, course_id) para buscar progresso completo do curso
LESSON_PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.lesson_progress (
    user_id UUID,
    course_id UUID,
    lesson_id UUID,
    is_completed BOOLEAN,
    started_at TIMESTAMP,
    completed_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY ((user_id, course_id), lesson_id)
)
"""

# Inscricoes em cursos - particionado por course_id
# version: token de concorrencia otimista (UPDATE ... IF version = ?)
ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments (
    course_id UUID,
    student_id UUID,
    id UUID,
    status TEXT,
    progress INT,
    completed_lessons SET<UUID>,
    enrolled_at TIMESTAMP,
    completed_at TIMESTAMP,
    certificate_issued BOOLEAN,
    version INT,
    updated_at TIMESTAMP,
    PRIMARY KEY (course_id, student_id)
)
"""

# Lookup: cursos por aluno
ENROLLMENTS_BY_STUDENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_student (
    student_id UUID,
    course_id UUID,
    enrollment_id UUID,
    PRIMARY KEY (student_id, course_id)
)
"""

# Lookup: inscricao por id (drop / consulta por id)
ENROLLMENTS_BY_ID_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.enrollments_by_id (
    id UUID PRIMARY KEY,
    course_id UUID,
    student_id UUID
)
"""

# All CQL statements for table setup
PROGRESS_TABLES_CQL = [
    LESSON_PROGRESS_TABLE_CQL,
    ENROLLMENTS_TABLE_CQL,
    ENROLLMENTS_BY_STUDENT_TABLE_CQL,
    ENROLLMENTS_BY_ID_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class LessonProgress:
    """Lesson progress entity for a specific user.

    Attributes:
        user_id: User UUID
        course_id: Course UUID (for partition key)
        lesson_id: Lesson UUID
        is_completed: Current completion flag
        started_at: First interaction timestamp (never changes)
        completed_at: Completion timestamp (None when not completed)
        updated_at: Last state change
    """

    user_id: UUID
    course_id: UUID
    lesson_id: UUID
    is_completed: bool = False
    started_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Any) -> "LessonProgress":
        """Create LessonProgress instance from Cassandra row."""
        return cls(
            user_id=row.user_id,
            course_id=row.course_id,
            lesson_id=row.lesson_id,
            is_completed=bool(row.is_completed),
            started_at=ensure_utc_aware(row.started_at),
            completed_at=ensure_utc_aware(row.completed_at),
            updated_at=ensure_utc_aware(row.updated_at),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "course_id": self.course_id,
            "lesson_id": self.lesson_id,
            "is_completed": self.is_completed,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        state = "completed" if self.is_completed else "started"
        return f"<LessonProgress user={self.user_id} lesson={self.lesson_id} {state}>"


@dataclass
class Enrollment:
    """Course enrollment entity.

    Progress is always derived from ``completed_lessons`` and the course's
    current lesson list, never incremented.

    Attributes:
        id: Enrollment UUID
        course_id: Course UUID
        student_id: Student UUID
        status: Enrollment status (enrolled, in-progress, completed, dropped)
        progress: Integer percentage (0-100)
        completed_lessons: Set of completed lesson UUIDs
        enrolled_at: Enrollment (or reactivation) timestamp
        completed_at: First completion timestamp (append-once)
        certificate_issued: Certificate already minted for this enrollment
        version: Optimistic concurrency token
    """

    id: UUID
    course_id: UUID
    student_id: UUID
    status: str = EnrollmentStatus.ENROLLED.value
    progress: int = 0
    completed_lessons: set[UUID] = field(default_factory=set)
    enrolled_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None
    certificate_issued: bool = False
    version: int = 0
    updated_at: datetime | None = None

    @property
    def is_completed(self) -> bool:
        """Check if course is completed."""
        return self.status == EnrollmentStatus.COMPLETED.value

    @property
    def is_dropped(self) -> bool:
        """Check if enrollment was dropped."""
        return self.status == EnrollmentStatus.DROPPED.value

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create Enrollment instance from Cassandra row."""
        return cls(
            id=row.id,
            course_id=row.course_id,
            student_id=row.student_id,
            status=row.status or EnrollmentStatus.ENROLLED.value,
            progress=row.progress or 0,
            # Cassandra returns None for empty collections
            completed_lessons=set(row.completed_lessons or ()),
            enrolled_at=ensure_utc_aware(row.enrolled_at),
            completed_at=ensure_utc_aware(row.completed_at),
            certificate_issued=bool(row.certificate_issued),
            version=row.version or 0,
            updated_at=ensure_utc_aware(row.updated_at),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "course_id": self.course_id,
            "student_id": self.student_id,
            "status": self.status,
            "progress": self.progress,
            "completed_lessons": sorted(self.completed_lessons, key=str),
            "enrolled_at": self.enrolled_at,
            "completed_at": self.completed_at,
            "certificate_issued": self.certificate_issued,
            "version": self.version,
        }

    def __repr__(self) -> str:
        return (
            f"<Enrollment student={self.student_id} course={self.course_id} "
            f"{self.status} {self.progress}%>"
        )
