"""Lesson catalog service layer."""

from uuid import UUID

from .models import Course, Lesson
from .repository import CourseRepository


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CourseError(Exception):
    """Base course error."""

    def __init__(self, message: str, code: str = "course_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class CourseNotFoundError(CourseError):
    """Course not found."""

    def __init__(self, message: str = "Curso nao encontrado"):
        super().__init__(message, "course_not_found")


# ==============================================================================
# Course Catalog
# ==============================================================================


class CourseCatalog:
    """Read-only view of courses and their lesson lists.

    Every call goes to the repository: the lesson list is the progress
    denominator and must never come from a stale copy.
    """

    def __init__(self, repository: CourseRepository):
        self.repository = repository

    async def get_course(self, course_id: UUID) -> Course | None:
        """Get course with its current lesson list."""
        return await self.repository.get_course(course_id)

    async def require_course(self, course_id: UUID) -> Course:
        """Get course or raise CourseNotFoundError."""
        course = await self.repository.get_course(course_id)
        if course is None:
            raise CourseNotFoundError
        return course

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        """Get lesson header."""
        return await self.repository.get_lesson(lesson_id)
