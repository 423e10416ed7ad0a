"""In-memory repositories for service tests.

Each async method yields to the event loop before touching state, so
``asyncio.gather`` interleaves concurrent requests at every storage call.
The state change after the yield runs without awaiting, which mirrors the
atomicity of the Cassandra lightweight transactions and set mutations.
"""

import asyncio
from dataclasses import replace
from uuid import UUID

from src.certificates.models import Certificate
from src.courses.models import Course, Lesson
from src.progress.models import Enrollment, LessonProgress


def _copy_enrollment(enrollment: Enrollment) -> Enrollment:
    return replace(enrollment, completed_lessons=set(enrollment.completed_lessons))


class FakeCourseRepository:
    def __init__(self) -> None:
        self.courses: dict[UUID, Course] = {}
        self.lessons: dict[UUID, Lesson] = {}

    def add_course(self, course: Course) -> Course:
        self.courses[course.id] = course
        for position, lesson_id in enumerate(course.lesson_ids, start=1):
            self.lessons[lesson_id] = Lesson(
                id=lesson_id,
                course_id=course.id,
                title=f"Aula {position}",
                position=position,
            )
        return course

    async def get_course(self, course_id: UUID) -> Course | None:
        await asyncio.sleep(0)
        course = self.courses.get(course_id)
        return replace(course, lesson_ids=list(course.lesson_ids)) if course else None

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        await asyncio.sleep(0)
        return self.lessons.get(lesson_id)


class FakeLessonProgressRepository:
    def __init__(self) -> None:
        self.rows: dict[tuple[UUID, UUID, UUID], LessonProgress] = {}
        self.update_calls = 0

    async def get(
        self, user_id: UUID, course_id: UUID, lesson_id: UUID
    ) -> LessonProgress | None:
        await asyncio.sleep(0)
        row = self.rows.get((user_id, course_id, lesson_id))
        return replace(row) if row else None

    async def list_for_course(
        self, user_id: UUID, course_id: UUID
    ) -> list[LessonProgress]:
        await asyncio.sleep(0)
        return [
            replace(row)
            for (uid, cid, _), row in self.rows.items()
            if uid == user_id and cid == course_id
        ]

    async def create(self, progress: LessonProgress) -> tuple[LessonProgress, bool]:
        await asyncio.sleep(0)
        key = (progress.user_id, progress.course_id, progress.lesson_id)
        if key in self.rows:
            return replace(self.rows[key]), False
        self.rows[key] = replace(progress)
        return progress, True

    async def update_completion(
        self, progress: LessonProgress, expected_completed: bool
    ) -> bool:
        await asyncio.sleep(0)
        key = (progress.user_id, progress.course_id, progress.lesson_id)
        stored = self.rows[key]
        if stored.is_completed != expected_completed:
            return False
        stored.is_completed = progress.is_completed
        stored.completed_at = progress.completed_at
        stored.updated_at = progress.updated_at
        self.update_calls += 1
        return True


class FakeEnrollmentRepository:
    def __init__(self) -> None:
        self.rows: dict[tuple[UUID, UUID], Enrollment] = {}
        self.by_id: dict[UUID, tuple[UUID, UUID]] = {}
        self.cas_writes = 0
        # Number of upcoming compare_and_set calls forced to lose
        self.fail_next_cas = 0

    def add(self, enrollment: Enrollment) -> Enrollment:
        self.rows[(enrollment.student_id, enrollment.course_id)] = _copy_enrollment(
            enrollment
        )
        self.by_id[enrollment.id] = (enrollment.student_id, enrollment.course_id)
        return enrollment

    async def get(self, student_id: UUID, course_id: UUID) -> Enrollment | None:
        await asyncio.sleep(0)
        row = self.rows.get((student_id, course_id))
        return _copy_enrollment(row) if row else None

    async def get_by_id(self, enrollment_id: UUID) -> Enrollment | None:
        await asyncio.sleep(0)
        key = self.by_id.get(enrollment_id)
        return _copy_enrollment(self.rows[key]) if key else None

    async def list_by_student(self, student_id: UUID) -> list[Enrollment]:
        await asyncio.sleep(0)
        return [
            _copy_enrollment(row)
            for (sid, _), row in self.rows.items()
            if sid == student_id
        ]

    async def create(self, enrollment: Enrollment) -> bool:
        await asyncio.sleep(0)
        key = (enrollment.student_id, enrollment.course_id)
        if key in self.rows:
            return False
        self.add(enrollment)
        return True

    async def add_completed_lesson(
        self, course_id: UUID, student_id: UUID, lesson_id: UUID
    ) -> None:
        await asyncio.sleep(0)
        self.rows[(student_id, course_id)].completed_lessons.add(lesson_id)

    async def remove_completed_lessons(
        self, course_id: UUID, student_id: UUID, lesson_ids: set[UUID]
    ) -> None:
        await asyncio.sleep(0)
        self.rows[(student_id, course_id)].completed_lessons -= set(lesson_ids)

    async def compare_and_set(
        self, enrollment: Enrollment, expected_version: int
    ) -> bool:
        await asyncio.sleep(0)
        stored = self.rows[(enrollment.student_id, enrollment.course_id)]
        if self.fail_next_cas:
            self.fail_next_cas -= 1
            return False
        if stored.version != expected_version:
            return False

        # Same columns as the CQL update: the set and the flag are untouched
        stored.status = enrollment.status
        stored.progress = enrollment.progress
        stored.enrolled_at = enrollment.enrolled_at
        stored.completed_at = enrollment.completed_at
        stored.version = enrollment.version
        stored.updated_at = enrollment.updated_at
        self.cas_writes += 1
        return True

    async def mark_certificate_issued(self, course_id: UUID, student_id: UUID) -> None:
        await asyncio.sleep(0)
        self.rows[(student_id, course_id)].certificate_issued = True


class FakeCertificateRepository:
    def __init__(self) -> None:
        self.by_pair: dict[tuple[UUID, UUID], Certificate] = {}
        self.by_number: dict[str, Certificate] = {}
        self.by_id: dict[UUID, tuple[UUID, UUID]] = {}
        self.by_student: dict[UUID, list[Certificate]] = {}
        self.by_course: dict[UUID, list[Certificate]] = {}
        # Number of upcoming insert calls that time out before reaching storage
        self.fail_next_insert = 0

    async def get(self, student_id: UUID, course_id: UUID) -> Certificate | None:
        await asyncio.sleep(0)
        return self.by_pair.get((student_id, course_id))

    async def get_by_number(self, certificate_number: str) -> Certificate | None:
        await asyncio.sleep(0)
        return self.by_number.get(certificate_number)

    async def get_by_id(self, certificate_id: UUID) -> Certificate | None:
        await asyncio.sleep(0)
        key = self.by_id.get(certificate_id)
        certificate = self.by_pair.get(key) if key else None
        return certificate if certificate and certificate.id == certificate_id else None

    async def reserve_number(self, certificate: Certificate) -> bool:
        await asyncio.sleep(0)
        if certificate.certificate_number in self.by_number:
            return False
        self.by_number[certificate.certificate_number] = certificate
        return True

    async def release_number(self, certificate_number: str) -> None:
        await asyncio.sleep(0)
        self.by_number.pop(certificate_number, None)

    async def insert(self, certificate: Certificate) -> tuple[Certificate, bool]:
        await asyncio.sleep(0)
        if self.fail_next_insert:
            self.fail_next_insert -= 1
            raise TimeoutError("certificate insert timed out")
        key = (certificate.student_id, certificate.course_id)
        if key in self.by_pair:
            return self.by_pair[key], False
        self.by_pair[key] = certificate
        return certificate, True

    async def write_lookups(self, certificate: Certificate) -> None:
        await asyncio.sleep(0)
        self.by_id[certificate.id] = (certificate.student_id, certificate.course_id)
        # Upserts: rewriting the same certificate keeps a single copy
        for listing in (
            self.by_student.setdefault(certificate.student_id, []),
            self.by_course.setdefault(certificate.course_id, []),
        ):
            if certificate not in listing:
                listing.insert(0, certificate)

    async def list_by_student(self, student_id: UUID) -> list[Certificate]:
        await asyncio.sleep(0)
        return list(self.by_student.get(student_id, []))

    async def list_by_course(self, course_id: UUID) -> list[Certificate]:
        await asyncio.sleep(0)
        return list(self.by_course.get(course_id, []))


class RecordingNotificationSink:
    def __init__(self) -> None:
        self.events: list[tuple[str, UUID, UUID]] = []

    async def notify_enrollment_succeeded(self, student_id: UUID, course: Course) -> None:
        self.events.append(("enrollment_succeeded", student_id, course.id))

    async def notify_new_enrollment(
        self, trainer_id: UUID, student_id: UUID, course: Course
    ) -> None:
        self.events.append(("new_enrollment", trainer_id, course.id))


class FailingNotificationSink:
    def __init__(self) -> None:
        self.attempts = 0

    async def notify_enrollment_succeeded(self, student_id: UUID, course: Course) -> None:
        self.attempts += 1
        raise ConnectionError("notification backend down")

    async def notify_new_enrollment(
        self, trainer_id: UUID, student_id: UUID, course: Course
    ) -> None:
        self.attempts += 1
        raise ConnectionError("notification backend down")
