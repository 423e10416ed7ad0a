"""Enrollment and lesson progress module.

Provides:
- Lesson started/completed tracking
- Progress recomputation from the course lesson list
- Enrollment lifecycle (enrolled, in-progress, completed, dropped)
"""

from .models import (
    PROGRESS_TABLES_CQL,
    Enrollment,
    EnrollmentStatus,
    LessonProgress,
)


__all__ = [
    "PROGRESS_TABLES_CQL",
    "Enrollment",
    "EnrollmentStatus",
    "LessonProgress",
]
