"""Enrollment and lesson progress service layer.

Business logic for:
- Course enrollment (with reactivation after drop)
- Lesson started/completed state recording
- Progress recomputation and status transitions
- Enrollment drop (soft delete)
"""

from dataclasses import replace
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, NamedTuple
from uuid import UUID, uuid4

import structlog

from src.auth.permissions import can_manage_course
from src.courses.service import CourseCatalog

from .models import Enrollment, EnrollmentStatus, LessonProgress
from .repository import EnrollmentRepository, LessonProgressRepository


if TYPE_CHECKING:
    from src.courses.models import Course
    from src.notifications.service import NotificationSink

logger = structlog.get_logger(__name__)

DEFAULT_CAS_MAX_ATTEMPTS = 5


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class ProgressError(Exception):
    """Base progress error."""

    def __init__(self, message: str, code: str = "progress_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotEnrolledError(ProgressError):
    """User not enrolled in course."""

    def __init__(self, message: str = "Usuario nao inscrito no curso"):
        super().__init__(message, "not_enrolled")


class AlreadyEnrolledError(ProgressError):
    """User already enrolled."""

    def __init__(self, message: str = "Usuario ja inscrito no curso"):
        super().__init__(message, "already_enrolled")


class CourseNotApprovedError(ProgressError):
    """Course is not open for enrollment."""

    def __init__(self, message: str = "Curso nao aprovado para inscricoes"):
        super().__init__(message, "course_not_approved")


class LessonNotInCourseError(ProgressError):
    """Lesson does not belong to the course."""

    def __init__(self, message: str = "Aula nao pertence ao curso"):
        super().__init__(message, "lesson_not_in_course")


class EnrollmentNotFoundError(ProgressError):
    """Enrollment not found."""

    def __init__(self, message: str = "Inscricao nao encontrada"):
        super().__init__(message, "enrollment_not_found")


class NotOwnerError(ProgressError):
    """Caller is not the enrolled student."""

    def __init__(self, message: str = "Inscricao pertence a outro usuario"):
        super().__init__(message, "not_owner")


class ProgressConflictError(ProgressError):
    """Concurrent updates kept winning the compare-and-set."""

    def __init__(self, message: str = "Conflito ao atualizar progresso, tente novamente"):
        super().__init__(message, "progress_conflict")


class LessonCompletionResult(NamedTuple):
    """Outcome of recording a lesson state."""

    lesson_progress: LessonProgress
    enrollment: Enrollment


# ==============================================================================
# Progress Derivation
# ==============================================================================


def calculate_progress(completed_lessons: set[UUID], lesson_ids: list[UUID]) -> int | None:
    """Derive the progress percentage from scratch.

    Only lessons still in the course count. Rounds half up (1/8 -> 13).

    Returns:
        Percentage 0-100, or None when the course has no lessons.
    """
    course_lessons = set(lesson_ids)
    if not course_lessons:
        return None

    done = len(completed_lessons & course_lessons)
    percent = Decimal(100 * done) / Decimal(len(course_lessons))
    return int(percent.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def resolve_status(status: str, progress: int) -> str:
    """Apply the automatic status transitions, first match wins."""
    if progress == 100 and status != EnrollmentStatus.COMPLETED.value:
        return EnrollmentStatus.COMPLETED.value
    if progress > 0 and status == EnrollmentStatus.ENROLLED.value:
        return EnrollmentStatus.IN_PROGRESS.value
    if progress == 0 and status == EnrollmentStatus.IN_PROGRESS.value:
        return EnrollmentStatus.ENROLLED.value
    return status


# ==============================================================================
# Progress Service
# ==============================================================================


class ProgressService:
    """Service for enrollments and lesson progress.

    Storage and collaborators are injected so the same logic runs against
    Cassandra in production and in-memory fakes in tests.
    """

    def __init__(
        self,
        lesson_progress: LessonProgressRepository,
        enrollments: EnrollmentRepository,
        catalog: CourseCatalog,
        notifications: "NotificationSink | None" = None,
        cas_max_attempts: int = DEFAULT_CAS_MAX_ATTEMPTS,
    ):
        self.lesson_progress = lesson_progress
        self.enrollments = enrollments
        self.catalog = catalog
        self.notifications = notifications
        self.cas_max_attempts = cas_max_attempts

    # ==========================================================================
    # Enrollment Operations
    # ==========================================================================

    async def enroll(self, student_id: UUID, course_id: UUID) -> Enrollment:
        """Enroll student in an approved course.

        A dropped enrollment is reactivated instead of creating a new record.

        Raises:
            CourseNotFoundError: Unknown course
            CourseNotApprovedError: Course not approved
            AlreadyEnrolledError: Active enrollment exists (or concurrent enroll won)
        """
        course = await self.catalog.require_course(course_id)
        if not course.is_approved:
            raise CourseNotApprovedError

        existing = await self.enrollments.get(student_id, course_id)
        if existing is not None and not existing.is_dropped:
            raise AlreadyEnrolledError

        now = datetime.now(UTC)
        if existing is not None:
            enrollment = await self._reactivate(existing, course, now)
        else:
            enrollment = Enrollment(
                id=uuid4(),
                course_id=course_id,
                student_id=student_id,
                status=EnrollmentStatus.ENROLLED.value,
                progress=0,
                enrolled_at=now,
                updated_at=now,
            )
            if not await self.enrollments.create(enrollment):
                raise AlreadyEnrolledError

        logger.info(
            "user_enrolled",
            user_id=str(student_id),
            course_id=str(course_id),
            enrollment_id=str(enrollment.id),
            reactivated=existing is not None,
        )

        await self._notify_enrollment(enrollment, course)
        return enrollment

    async def _reactivate(
        self, existing: Enrollment, course: "Course", now: datetime
    ) -> Enrollment:
        """Bring a dropped enrollment back, keeping its history."""
        current = existing
        for _ in range(self.cas_max_attempts):
            reactivated = replace(
                current,
                status=EnrollmentStatus.ENROLLED.value,
                enrolled_at=now,
                version=current.version + 1,
                updated_at=now,
            )
            if await self.enrollments.compare_and_set(reactivated, current.version):
                return await self.recompute_progress(reactivated, course)

            current = await self.enrollments.get(existing.student_id, existing.course_id)
            if current is None:
                raise EnrollmentNotFoundError
            if not current.is_dropped:
                raise AlreadyEnrolledError

        raise ProgressConflictError

    async def drop_enrollment(self, enrollment_id: UUID, acting_user_id: UUID) -> Enrollment:
        """Drop an enrollment (soft delete).

        Progress and completed lessons are preserved.

        Raises:
            EnrollmentNotFoundError: Unknown enrollment id
            NotOwnerError: Caller is not the enrolled student
        """
        for _ in range(self.cas_max_attempts):
            enrollment = await self.enrollments.get_by_id(enrollment_id)
            if enrollment is None:
                raise EnrollmentNotFoundError
            if enrollment.student_id != acting_user_id:
                raise NotOwnerError
            if enrollment.is_dropped:
                return enrollment

            dropped = replace(
                enrollment,
                status=EnrollmentStatus.DROPPED.value,
                version=enrollment.version + 1,
                updated_at=datetime.now(UTC),
            )
            if await self.enrollments.compare_and_set(dropped, enrollment.version):
                logger.info(
                    "enrollment_dropped",
                    enrollment_id=str(enrollment_id),
                    user_id=str(acting_user_id),
                    progress=dropped.progress,
                )
                return dropped

        raise ProgressConflictError

    async def get_enrollment(self, student_id: UUID, course_id: UUID) -> Enrollment | None:
        """Get enrollment by student and course."""
        return await self.enrollments.get(student_id, course_id)

    async def get_enrollment_by_id(self, enrollment_id: UUID) -> Enrollment:
        """Get enrollment by id or raise EnrollmentNotFoundError."""
        enrollment = await self.enrollments.get_by_id(enrollment_id)
        if enrollment is None:
            raise EnrollmentNotFoundError
        return enrollment

    async def get_enrollment_for_viewer(
        self, enrollment_id: UUID, viewer_id: UUID, viewer_role: str
    ) -> Enrollment:
        """Get enrollment visible to its student, the course trainer or an admin."""
        enrollment = await self.get_enrollment_by_id(enrollment_id)
        if enrollment.student_id == viewer_id:
            return enrollment

        course = await self.catalog.get_course(enrollment.course_id)
        trainer_id = course.trainer_id if course else None
        if trainer_id is None or not can_manage_course(viewer_id, viewer_role, trainer_id):
            raise NotOwnerError
        return enrollment

    async def list_student_enrollments(
        self, student_id: UUID, status: str | None = None
    ) -> list[Enrollment]:
        """List a student's enrollments, newest first."""
        enrollments = await self.enrollments.list_by_student(student_id)
        if status:
            enrollments = [e for e in enrollments if e.status == status]
        return sorted(enrollments, key=lambda e: e.enrolled_at, reverse=True)

    # ==========================================================================
    # Lesson Progress Operations
    # ==========================================================================

    async def record_lesson_state(
        self,
        user_id: UUID,
        lesson_id: UUID,
        course_id: UUID,
        is_completed: bool,
    ) -> LessonCompletionResult:
        """Record a lesson as completed or not, then recompute the enrollment.

        Args:
            user_id: Acting student
            lesson_id: Lesson UUID
            course_id: Course the lesson belongs to
            is_completed: New completion flag

        Raises:
            CourseNotFoundError: Unknown course
            NotEnrolledError: No active enrollment in the course
            LessonNotInCourseError: Lesson not in the course's lesson list
        """
        course = await self.catalog.require_course(course_id)

        enrollment = await self.enrollments.get(user_id, course_id)
        if enrollment is None or enrollment.is_dropped:
            raise NotEnrolledError

        if not course.has_lesson(lesson_id):
            lesson = await self.catalog.get_lesson(lesson_id)
            if lesson is None:
                raise LessonNotInCourseError("Aula nao encontrada")
            raise LessonNotInCourseError

        progress = await self._upsert_lesson_progress(
            user_id, course_id, lesson_id, is_completed
        )

        logger.info(
            "lesson_state_recorded",
            user_id=str(user_id),
            lesson_id=str(lesson_id),
            is_completed=is_completed,
        )

        enrollment = await self.recompute_progress(
            enrollment, course, lesson_id=lesson_id, is_completed=is_completed
        )
        return LessonCompletionResult(progress, enrollment)

    async def _upsert_lesson_progress(
        self,
        user_id: UUID,
        course_id: UUID,
        lesson_id: UUID,
        is_completed: bool,
    ) -> LessonProgress:
        now = datetime.now(UTC)

        progress = await self.lesson_progress.get(user_id, course_id, lesson_id)
        if progress is None:
            progress, created = await self.lesson_progress.create(
                LessonProgress(
                    user_id=user_id,
                    course_id=course_id,
                    lesson_id=lesson_id,
                    is_completed=is_completed,
                    started_at=now,
                    completed_at=now if is_completed else None,
                    updated_at=now,
                )
            )
            if created:
                return progress

        # Same value again: nothing to write, completed_at stays put
        if progress.is_completed == is_completed:
            return progress

        previous = progress.is_completed
        progress.is_completed = is_completed
        progress.completed_at = now if is_completed else None
        progress.updated_at = now
        if await self.lesson_progress.update_completion(progress, previous):
            return progress

        # A concurrent call already flipped the flag; keep its timestamps
        stored = await self.lesson_progress.get(user_id, course_id, lesson_id)
        return stored or progress

    async def get_course_lesson_progress(
        self, user_id: UUID, course_id: UUID
    ) -> list[LessonProgress]:
        """Get all lesson progress rows of an actively enrolled user."""
        enrollment = await self.enrollments.get(user_id, course_id)
        if enrollment is None or enrollment.is_dropped:
            raise NotEnrolledError
        return await self.lesson_progress.list_for_course(user_id, course_id)

    # ==========================================================================
    # Recompute
    # ==========================================================================

    async def recompute_progress(
        self,
        enrollment: Enrollment,
        course: "Course",
        lesson_id: UUID | None = None,
        is_completed: bool | None = None,
    ) -> Enrollment:
        """Update the completed set, then derive progress and status from scratch.

        The set mutation is atomic in storage; the derived fields are written
        with a compare-and-set on ``version`` and retried against the latest
        row, so concurrent completions never lose an update.

        Raises:
            ProgressConflictError: CAS lost ``cas_max_attempts`` times in a row
        """
        if enrollment.is_dropped:
            return enrollment

        student_id, course_id = enrollment.student_id, enrollment.course_id

        if lesson_id is not None and is_completed is not None:
            if is_completed:
                await self.enrollments.add_completed_lesson(course_id, student_id, lesson_id)
            else:
                await self.enrollments.remove_completed_lessons(
                    course_id, student_id, {lesson_id}
                )

        for attempt in range(1, self.cas_max_attempts + 1):
            current = await self.enrollments.get(student_id, course_id)
            if current is None:
                raise EnrollmentNotFoundError
            if current.is_dropped:
                return current

            # Lessons removed from the course no longer count
            stale = current.completed_lessons - set(course.lesson_ids)
            if stale:
                await self.enrollments.remove_completed_lessons(course_id, student_id, stale)
                current.completed_lessons -= stale

            updated = self._derive(current, course)
            if updated is None:
                return current

            if await self.enrollments.compare_and_set(updated, current.version):
                logger.info(
                    "enrollment_recomputed",
                    enrollment_id=str(updated.id),
                    progress=updated.progress,
                    status=updated.status,
                    attempt=attempt,
                )
                if updated.is_completed and not current.is_completed:
                    logger.info(
                        "enrollment_completed",
                        enrollment_id=str(updated.id),
                        user_id=str(student_id),
                        course_id=str(course_id),
                    )
                return updated

            logger.debug(
                "enrollment_cas_retry",
                enrollment_id=str(current.id),
                attempt=attempt,
            )

        raise ProgressConflictError

    def _derive(self, current: Enrollment, course: "Course") -> Enrollment | None:
        """Compute new derived fields; None when nothing changes."""
        progress = calculate_progress(current.completed_lessons, course.lesson_ids)
        if progress is None:
            # Course has no lessons: keep prior progress
            progress = current.progress

        status = resolve_status(current.status, progress)
        completed_at = current.completed_at
        if status == EnrollmentStatus.COMPLETED.value and completed_at is None:
            completed_at = datetime.now(UTC)

        if (progress, status, completed_at) == (
            current.progress,
            current.status,
            current.completed_at,
        ):
            return None

        return replace(
            current,
            progress=progress,
            status=status,
            completed_at=completed_at,
            version=current.version + 1,
            updated_at=datetime.now(UTC),
        )

    # ==========================================================================
    # Notifications
    # ==========================================================================

    async def _notify_enrollment(self, enrollment: Enrollment, course: "Course") -> None:
        """Send enrollment notifications; failures are logged and dropped."""
        if self.notifications is None:
            return

        deliveries = [
            (
                "enrollment_succeeded",
                self.notifications.notify_enrollment_succeeded(
                    enrollment.student_id, course
                ),
            ),
            (
                "new_enrollment",
                self.notifications.notify_new_enrollment(
                    course.trainer_id, enrollment.student_id, course
                ),
            ),
        ]
        for kind, delivery in deliveries:
            try:
                await delivery
            except Exception as e:
                logger.warning(
                    "notification_failed",
                    kind=kind,
                    enrollment_id=str(enrollment.id),
                    error=str(e),
                )
