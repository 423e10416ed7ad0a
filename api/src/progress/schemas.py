"""Pydantic schemas for enrollments and lesson progress.

Request and response models for:
- Course enrollment
- Lesson completion recording
- Progress queries
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import Enrollment, EnrollmentStatus, LessonProgress


# ==============================================================================
# Lesson Progress Schemas
# ==============================================================================


class RecordLessonStateRequest(BaseModel):
    """Request to mark a lesson as completed or not completed."""

    lesson_id: UUID = Field(..., description="Lesson UUID")
    course_id: UUID = Field(..., description="Course UUID")
    is_completed: bool = Field(True, description="New completion state")


class LessonProgressResponse(BaseModel):
    """Lesson progress response."""

    model_config = ConfigDict(from_attributes=True)

    lesson_id: UUID
    course_id: UUID
    is_completed: bool
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: LessonProgress) -> "LessonProgressResponse":
        """Create response from entity."""
        return cls(
            lesson_id=entity.lesson_id,
            course_id=entity.course_id,
            is_completed=entity.is_completed,
            started_at=entity.started_at,
            completed_at=entity.completed_at,
        )


class LessonProgressListResponse(BaseModel):
    """All lesson progress rows of a course."""

    course_id: UUID
    items: list[LessonProgressResponse]
    total: int


# ==============================================================================
# Enrollment Schemas
# ==============================================================================


class EnrollRequest(BaseModel):
    """Request to enroll in a course."""

    course_id: UUID = Field(..., description="Course UUID to enroll in")


class EnrollmentResponse(BaseModel):
    """Enrollment response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    course_id: UUID
    student_id: UUID
    status: EnrollmentStatus
    progress: int = Field(ge=0, le=100, description="0-100 percentage")
    completed_lessons: list[UUID] = []
    enrolled_at: datetime
    completed_at: datetime | None = None
    certificate_issued: bool = False

    @classmethod
    def from_entity(cls, entity: Enrollment) -> "EnrollmentResponse":
        """Create response from entity."""
        return cls(
            id=entity.id,
            course_id=entity.course_id,
            student_id=entity.student_id,
            status=EnrollmentStatus(entity.status),
            progress=entity.progress,
            completed_lessons=sorted(entity.completed_lessons, key=str),
            enrolled_at=entity.enrolled_at,
            completed_at=entity.completed_at,
            certificate_issued=entity.certificate_issued,
        )


class EnrollmentListResponse(BaseModel):
    """List of user enrollments."""

    items: list[EnrollmentResponse]
    total: int


class LessonCompletionResponse(BaseModel):
    """Lesson state plus the recomputed enrollment."""

    lesson_progress: LessonProgressResponse
    enrollment: EnrollmentResponse
