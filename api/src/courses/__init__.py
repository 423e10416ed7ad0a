"""Lesson catalog module.

Provides read-only access to courses, their review status and their
ordered lesson lists.
"""

from .models import COURSES_TABLES_CQL, Course, CourseStatus, Lesson


__all__ = [
    "COURSES_TABLES_CQL",
    "Course",
    "CourseStatus",
    "Lesson",
]
