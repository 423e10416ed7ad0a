# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Persistence for lesson progress and enrollments.

The service layer depends on the ``LessonProgressRepository`` and
``EnrollmentRepository`` protocols; the Cassandra classes below implement
them with lightweight transactions:

- ``INSERT ... IF NOT EXISTS`` decides first-writer races
- ``completed_lessons = completed_lessons + ?`` mutates the set atomically
- ``UPDATE ... IF version = ?`` is the compare-and-set for derived fields
"""

from typing import TYPE_CHECKING, Protocol
from uuid import UUID

from .models import Enrollment, LessonProgress


if TYPE_CHECKING:
    from cassandra.cluster import Session


# ==============================================================================
# Contracts
# ==============================================================================


class LessonProgressRepository(Protocol):
    """Storage contract for LessonProgress rows."""

    async def get(
        self, user_id: UUID, course_id: UUID, lesson_id: UUID
    ) -> LessonProgress | None: ...

    async def list_for_course(
        self, user_id: UUID, course_id: UUID
    ) -> list[LessonProgress]: ...

    async def create(self, progress: LessonProgress) -> tuple[LessonProgress, bool]:
        """Insert if absent; return the stored row and whether it was ours."""
        ...

    async def update_completion(
        self, progress: LessonProgress, expected_completed: bool
    ) -> bool:
        """Write the new flag only if the stored one is still ``expected_completed``."""
        ...


class EnrollmentRepository(Protocol):
    """Storage contract for Enrollment rows."""

    async def get(self, student_id: UUID, course_id: UUID) -> Enrollment | None: ...

    async def get_by_id(self, enrollment_id: UUID) -> Enrollment | None: ...

    async def list_by_student(self, student_id: UUID) -> list[Enrollment]: ...

    async def create(self, enrollment: Enrollment) -> bool:
        """Insert if absent; False when another enrollment already exists."""
        ...

    async def add_completed_lesson(
        self, course_id: UUID, student_id: UUID, lesson_id: UUID
    ) -> None: ...

    async def remove_completed_lessons(
        self, course_id: UUID, student_id: UUID, lesson_ids: set[UUID]
    ) -> None: ...

    async def compare_and_set(
        self, enrollment: Enrollment, expected_version: int
    ) -> bool:
        """Write status/progress fields only if the stored version matches."""
        ...

    async def mark_certificate_issued(self, course_id: UUID, student_id: UUID) -> None: ...


# ==============================================================================
# Cassandra Implementations
# ==============================================================================


class CassandraLessonProgressRepository:
    """LessonProgress rows in Cassandra."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_lesson_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.lesson_progress
            WHERE user_id = ? AND course_id = ? AND lesson_id = ?
        """)

        self._get_course_lesson_progress = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.lesson_progress
            WHERE user_id = ? AND course_id = ?
        """)

        self._insert_lesson_progress = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.lesson_progress
            (user_id, course_id, lesson_id, is_completed, started_at,
             completed_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._update_completion = self.session.prepare(f"""
            UPDATE {self.keyspace}.lesson_progress
            SET is_completed = ?, completed_at = ?, updated_at = ?
            WHERE user_id = ? AND course_id = ? AND lesson_id = ?
            IF is_completed = ?
        """)

    async def get(
        self, user_id: UUID, course_id: UUID, lesson_id: UUID
    ) -> LessonProgress | None:
        """Get progress for a specific lesson."""
        result = await self.session.aexecute(
            self._get_lesson_progress, [user_id, course_id, lesson_id]
        )
        row = result.one()
        return LessonProgress.from_row(row) if row else None

    async def list_for_course(
        self, user_id: UUID, course_id: UUID
    ) -> list[LessonProgress]:
        """Get all lesson progress rows of a user in a course."""
        rows = await self.session.aexecute(
            self._get_course_lesson_progress, [user_id, course_id]
        )
        return [LessonProgress.from_row(row) for row in rows]

    async def create(self, progress: LessonProgress) -> tuple[LessonProgress, bool]:
        """Insert the row unless one already exists for (user, lesson).

        Returns:
            Tuple of (stored row, created). When another request won the
            race, the stored row is the winner's.
        """
        result = await self.session.aexecute(
            self._insert_lesson_progress,
            [
                progress.user_id,
                progress.course_id,
                progress.lesson_id,
                progress.is_completed,
                progress.started_at,
                progress.completed_at,
                progress.updated_at,
            ],
        )
        if result.was_applied:
            return progress, True

        existing = await self.get(progress.user_id, progress.course_id, progress.lesson_id)
        return existing or progress, False

    async def update_completion(
        self, progress: LessonProgress, expected_completed: bool
    ) -> bool:
        """Persist completion flag and timestamps (started_at is never rewritten).

        Conditional on the flag read before the change; False when a
        concurrent call got there first.
        """
        result = await self.session.aexecute(
            self._update_completion,
            [
                progress.is_completed,
                progress.completed_at,
                progress.updated_at,
                progress.user_id,
                progress.course_id,
                progress.lesson_id,
                expected_completed,
            ],
        )
        return bool(result.was_applied)


class CassandraEnrollmentRepository:
    """Enrollment rows plus their lookup tables in Cassandra."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_enrollment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.enrollments
            WHERE course_id = ? AND student_id = ?
        """)

        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments
            (course_id, student_id, id, status, progress, completed_lessons,
             enrolled_at, completed_at, certificate_issued, version, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._add_completed_lesson = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET completed_lessons = completed_lessons + ?
            WHERE course_id = ? AND student_id = ?
            IF EXISTS
        """)

        self._remove_completed_lessons = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET completed_lessons = completed_lessons - ?
            WHERE course_id = ? AND student_id = ?
            IF EXISTS
        """)

        self._compare_and_set = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET status = ?, progress = ?, enrolled_at = ?, completed_at = ?,
                version = ?, updated_at = ?
            WHERE course_id = ? AND student_id = ?
            IF version = ?
        """)

        self._mark_certificate_issued = self.session.prepare(f"""
            UPDATE {self.keyspace}.enrollments
            SET certificate_issued = true
            WHERE course_id = ? AND student_id = ?
            IF EXISTS
        """)

        # Lookups
        self._insert_by_student = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments_by_student
            (student_id, course_id, enrollment_id)
            VALUES (?, ?, ?)
        """)

        self._get_by_student = self.session.prepare(f"""
            SELECT course_id FROM {self.keyspace}.enrollments_by_student
            WHERE student_id = ?
        """)

        self._insert_by_id = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.enrollments_by_id
            (id, course_id, student_id)
            VALUES (?, ?, ?)
        """)

        self._get_by_id = self.session.prepare(f"""
            SELECT course_id, student_id FROM {self.keyspace}.enrollments_by_id
            WHERE id = ?
        """)

    async def get(self, student_id: UUID, course_id: UUID) -> Enrollment | None:
        """Get enrollment by student and course."""
        result = await self.session.aexecute(
            self._get_enrollment, [course_id, student_id]
        )
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def get_by_id(self, enrollment_id: UUID) -> Enrollment | None:
        """Resolve enrollment id via lookup table, then read the main row."""
        result = await self.session.aexecute(self._get_by_id, [enrollment_id])
        row = result.one()
        if not row:
            return None
        return await self.get(row.student_id, row.course_id)

    async def list_by_student(self, student_id: UUID) -> list[Enrollment]:
        """Get all enrollments of a student (read from the main table)."""
        rows = await self.session.aexecute(self._get_by_student, [student_id])
        enrollments = []
        for row in rows:
            enrollment = await self.get(student_id, row.course_id)
            if enrollment:
                enrollments.append(enrollment)
        return enrollments

    async def create(self, enrollment: Enrollment) -> bool:
        """Insert enrollment if none exists for (student, course)."""
        result = await self.session.aexecute(
            self._insert_enrollment,
            [
                enrollment.course_id,
                enrollment.student_id,
                enrollment.id,
                enrollment.status,
                enrollment.progress,
                enrollment.completed_lessons,
                enrollment.enrolled_at,
                enrollment.completed_at,
                enrollment.certificate_issued,
                enrollment.version,
                enrollment.updated_at,
            ],
        )
        if not result.was_applied:
            return False

        # Lookup tables are only written by the LWT winner
        await self.session.aexecute(
            self._insert_by_student,
            [enrollment.student_id, enrollment.course_id, enrollment.id],
        )
        await self.session.aexecute(
            self._insert_by_id,
            [enrollment.id, enrollment.course_id, enrollment.student_id],
        )
        return True

    async def add_completed_lesson(
        self, course_id: UUID, student_id: UUID, lesson_id: UUID
    ) -> None:
        """Atomically add a lesson to the completed set."""
        await self.session.aexecute(
            self._add_completed_lesson, [{lesson_id}, course_id, student_id]
        )

    async def remove_completed_lessons(
        self, course_id: UUID, student_id: UUID, lesson_ids: set[UUID]
    ) -> None:
        """Atomically remove lessons from the completed set."""
        if not lesson_ids:
            return
        await self.session.aexecute(
            self._remove_completed_lessons, [set(lesson_ids), course_id, student_id]
        )

    async def compare_and_set(
        self, enrollment: Enrollment, expected_version: int
    ) -> bool:
        """Write derived fields if the stored version still matches.

        ``enrollment.version`` must already hold the new version.
        """
        result = await self.session.aexecute(
            self._compare_and_set,
            [
                enrollment.status,
                enrollment.progress,
                enrollment.enrolled_at,
                enrollment.completed_at,
                enrollment.version,
                enrollment.updated_at,
                enrollment.course_id,
                enrollment.student_id,
                expected_version,
            ],
        )
        return bool(result.was_applied)

    async def mark_certificate_issued(self, course_id: UUID, student_id: UUID) -> None:
        """Flag the enrollment as having a certificate."""
        await self.session.aexecute(
            self._mark_certificate_issued, [course_id, student_id]
        )
