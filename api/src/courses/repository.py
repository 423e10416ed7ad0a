# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Lesson catalog persistence.

``CourseRepository`` is the read-only contract the enrollment core depends
on; ``CassandraCourseRepository`` is the production implementation.
"""

from typing import TYPE_CHECKING, Protocol
from uuid import UUID

from .models import Course, Lesson


if TYPE_CHECKING:
    from cassandra.cluster import Session


class CourseRepository(Protocol):
    """Read access to courses and lessons."""

    async def get_course(self, course_id: UUID) -> Course | None: ...

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None: ...


class CassandraCourseRepository:
    """Course catalog backed by Cassandra."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        self._get_course_by_id = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.courses WHERE id = ?"
        )
        self._get_course_lessons = self.session.prepare(
            f"SELECT lesson_id FROM {self.keyspace}.course_lessons WHERE course_id = ?"
        )
        self._get_lesson_by_id = self.session.prepare(
            f"SELECT * FROM {self.keyspace}.lessons WHERE id = ?"
        )

    async def get_course(self, course_id: UUID) -> Course | None:
        """Get course by ID with its ordered lesson list."""
        result = await self.session.aexecute(self._get_course_by_id, [course_id])
        row = result.one()
        if not row:
            return None

        lesson_rows = await self.session.aexecute(self._get_course_lessons, [course_id])
        return Course.from_row(row, [r.lesson_id for r in lesson_rows])

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        """Get lesson by ID."""
        result = await self.session.aexecute(self._get_lesson_by_id, [lesson_id])
        row = result.one()
        return Lesson.from_row(row) if row else None
