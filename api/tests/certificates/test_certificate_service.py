"""Tests for CertificateService issuance, verification and listing."""

import asyncio
from datetime import UTC, datetime
from uuid import UUID, uuid4

import pytest

from fakes import FakeCertificateRepository, FakeEnrollmentRepository
from src.auth.schemas import AuthenticatedUser
from src.certificates.models import Certificate
from src.certificates.service import (
    CertificateNotFoundError,
    CertificateNumberConflictError,
    CertificateService,
    CourseNotCompletedError,
    NotAuthorizedError,
)
from src.courses.models import Course
from src.courses.service import CourseNotFoundError
from src.progress.models import Enrollment, EnrollmentStatus
from src.progress.service import EnrollmentNotFoundError


def _enrollment(
    course: Course, student_id: UUID, status: str, progress: int
) -> Enrollment:
    return Enrollment(
        id=uuid4(),
        course_id=course.id,
        student_id=student_id,
        status=status,
        progress=progress,
        completed_lessons=set(course.lesson_ids[: progress * course.total_lessons // 100]),
        completed_at=datetime.now(UTC) if progress == 100 else None,
    )


def _certificate(
    course: Course, student_id: UUID, issuer: AuthenticatedUser, number: str
) -> Certificate:
    return Certificate(
        id=uuid4(),
        certificate_number=number,
        student_id=student_id,
        course_id=course.id,
        enrollment_id=uuid4(),
        issued_by=issuer.id,
        issued_at=datetime.now(UTC),
        course_title=course.title,
    )


@pytest.fixture
def completed(
    enrollment_repo: FakeEnrollmentRepository, course: Course, student_id: UUID
) -> Enrollment:
    """Student finished every lesson of the course."""
    return enrollment_repo.add(
        _enrollment(course, student_id, EnrollmentStatus.COMPLETED.value, 100)
    )


class TestIssueCertificate:
    """Tests for issue_certificate gating and idempotency."""

    @pytest.mark.asyncio
    async def test_trainer_issues_for_completed_enrollment(
        self,
        certificate_service: CertificateService,
        certificate_repo: FakeCertificateRepository,
        enrollment_repo: FakeEnrollmentRepository,
        course: Course,
        student_id: UUID,
        trainer: AuthenticatedUser,
        completed: Enrollment,
    ) -> None:
        certificate, created = await certificate_service.issue_certificate(
            student_id, course.id, trainer
        )

        assert created is True
        assert certificate.enrollment_id == completed.id
        assert certificate.issued_by == trainer.id
        assert certificate.course_title == course.title
        assert certificate.certificate_number.startswith("IC-")
        assert certificate_repo.by_number[certificate.certificate_number] == certificate
        assert certificate_repo.by_student[student_id] == [certificate]
        assert enrollment_repo.rows[(student_id, course.id)].certificate_issued is True

    @pytest.mark.asyncio
    async def test_second_issue_returns_same_certificate(
        self,
        certificate_service: CertificateService,
        certificate_repo: FakeCertificateRepository,
        course: Course,
        student_id: UUID,
        trainer: AuthenticatedUser,
        student: AuthenticatedUser,
        completed: Enrollment,
    ) -> None:
        first = await certificate_service.issue_certificate(student_id, course.id, trainer)
        second = await certificate_service.issue_certificate(
            student_id, course.id, student, self_service=True
        )

        assert second.created is False
        assert second.certificate.certificate_number == first.certificate.certificate_number
        assert len(certificate_repo.by_number) == 1

    @pytest.mark.asyncio
    async def test_existing_certificate_heals_issued_flag(
        self,
        certificate_service: CertificateService,
        certificate_repo: FakeCertificateRepository,
        enrollment_repo: FakeEnrollmentRepository,
        course: Course,
        student_id: UUID,
        trainer: AuthenticatedUser,
        completed: Enrollment,
    ) -> None:
        await certificate_service.issue_certificate(student_id, course.id, trainer)
        enrollment_repo.rows[(student_id, course.id)].certificate_issued = False

        result = await certificate_service.issue_certificate(student_id, course.id, trainer)

        assert result.created is False
        assert enrollment_repo.rows[(student_id, course.id)].certificate_issued is True
        assert certificate_repo.by_student[student_id] == [result.certificate]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,progress",
        [
            (EnrollmentStatus.ENROLLED.value, 0),
            (EnrollmentStatus.IN_PROGRESS.value, 75),
            (EnrollmentStatus.DROPPED.value, 50),
        ],
    )
    async def test_not_completed_is_rejected(
        self,
        certificate_service: CertificateService,
        certificate_repo: FakeCertificateRepository,
        enrollment_repo: FakeEnrollmentRepository,
        course: Course,
        student_id: UUID,
        trainer: AuthenticatedUser,
        status: str,
        progress: int,
    ) -> None:
        enrollment_repo.add(_enrollment(course, student_id, status, progress))

        with pytest.raises(CourseNotCompletedError):
            await certificate_service.issue_certificate(student_id, course.id, trainer)
        assert certificate_repo.by_number == {}

    @pytest.mark.asyncio
    async def test_completed_then_uncompleted_lesson_still_qualifies(
        self,
        certificate_service: CertificateService,
        enrollment_repo: FakeEnrollmentRepository,
        course: Course,
        student_id: UUID,
        trainer: AuthenticatedUser,
    ) -> None:
        # Completion is sticky even after progress drops below 100
        enrollment_repo.add(
            _enrollment(course, student_id, EnrollmentStatus.COMPLETED.value, 75)
        )

        result = await certificate_service.issue_certificate(student_id, course.id, trainer)

        assert result.created is True

    @pytest.mark.asyncio
    async def test_not_enrolled(
        self,
        certificate_service: CertificateService,
        course: Course,
        trainer: AuthenticatedUser,
    ) -> None:
        with pytest.raises(EnrollmentNotFoundError):
            await certificate_service.issue_certificate(uuid4(), course.id, trainer)

    @pytest.mark.asyncio
    async def test_unknown_course(
        self,
        certificate_service: CertificateService,
        student_id: UUID,
        admin: AuthenticatedUser,
    ) -> None:
        with pytest.raises(CourseNotFoundError):
            await certificate_service.issue_certificate(student_id, uuid4(), admin)

    @pytest.mark.asyncio
    async def test_other_trainer_is_not_authorized(
        self,
        certificate_service: CertificateService,
        course: Course,
        student_id: UUID,
        completed: Enrollment,
    ) -> None:
        other_trainer = AuthenticatedUser(id=uuid4(), role="trainer")

        with pytest.raises(NotAuthorizedError):
            await certificate_service.issue_certificate(
                student_id, course.id, other_trainer
            )

    @pytest.mark.asyncio
    async def test_student_cannot_issue_for_someone_else(
        self,
        certificate_service: CertificateService,
        course: Course,
        student_id: UUID,
        student: AuthenticatedUser,
        completed: Enrollment,
    ) -> None:
        with pytest.raises(NotAuthorizedError):
            await certificate_service.issue_certificate(student_id, course.id, student)

        intruder = AuthenticatedUser(id=uuid4(), role="student")
        with pytest.raises(NotAuthorizedError):
            await certificate_service.issue_certificate(
                student_id, course.id, intruder, self_service=True
            )

    @pytest.mark.asyncio
    async def test_admin_can_issue_any_course(
        self,
        certificate_service: CertificateService,
        course: Course,
        student_id: UUID,
        admin: AuthenticatedUser,
        completed: Enrollment,
    ) -> None:
        result = await certificate_service.issue_certificate(student_id, course.id, admin)

        assert result.created is True
        assert result.certificate.issued_by == admin.id

    @pytest.mark.asyncio
    async def test_self_service_generation(
        self,
        certificate_service: CertificateService,
        course: Course,
        student_id: UUID,
        student: AuthenticatedUser,
        completed: Enrollment,
    ) -> None:
        result = await certificate_service.issue_certificate(
            student_id, course.id, student, self_service=True
        )

        assert result.created is True
        assert result.certificate.issued_by == student_id

    @pytest.mark.asyncio
    async def test_concurrent_issue_has_single_winner(
        self,
        certificate_service: CertificateService,
        certificate_repo: FakeCertificateRepository,
        course: Course,
        student_id: UUID,
        trainer: AuthenticatedUser,
        student: AuthenticatedUser,
        completed: Enrollment,
    ) -> None:
        results = await asyncio.gather(
            certificate_service.issue_certificate(student_id, course.id, trainer),
            certificate_service.issue_certificate(
                student_id, course.id, student, self_service=True
            ),
        )

        assert sorted(r.created for r in results) == [False, True]
        numbers = {r.certificate.certificate_number for r in results}
        assert len(numbers) == 1
        # The loser's reservation was released
        assert set(certificate_repo.by_number) == numbers
        assert len(certificate_repo.by_student[student_id]) == 1

    @pytest.mark.asyncio
    async def test_number_conflict(
        self,
        monkeypatch: pytest.MonkeyPatch,
        certificate_service: CertificateService,
        certificate_repo: FakeCertificateRepository,
        course: Course,
        student_id: UUID,
        trainer: AuthenticatedUser,
        completed: Enrollment,
    ) -> None:
        taken = "IC-TAKEN-AAAAAA"
        certificate_repo.by_number[taken] = Certificate(
            id=uuid4(),
            certificate_number=taken,
            student_id=uuid4(),
            course_id=uuid4(),
            enrollment_id=uuid4(),
            issued_by=uuid4(),
            issued_at=datetime.now(UTC),
        )
        monkeypatch.setattr(
            "src.certificates.service.generate_certificate_number",
            lambda *_args, **_kwargs: taken,
        )

        with pytest.raises(CertificateNumberConflictError):
            await certificate_service.issue_certificate(student_id, course.id, trainer)

        assert (student_id, course.id) not in certificate_repo.by_pair

    @pytest.mark.asyncio
    async def test_custom_prefix(
        self,
        certificate_repo: FakeCertificateRepository,
        enrollment_repo: FakeEnrollmentRepository,
        catalog,
        course: Course,
        student_id: UUID,
        trainer: AuthenticatedUser,
        completed: Enrollment,
    ) -> None:
        service = CertificateService(
            certificates=certificate_repo,
            enrollments=enrollment_repo,
            catalog=catalog,
            prefix="SP",
            suffix_length=4,
        )

        result = await service.issue_certificate(student_id, course.id, trainer)

        assert result.certificate.certificate_number.startswith("SP-")
        assert len(result.certificate.certificate_number.split("-")[2]) == 4


class TestVerifyCertificate:
    """Tests for verify_certificate."""

    @pytest.mark.asyncio
    async def test_verify_issued_number(
        self,
        certificate_service: CertificateService,
        course: Course,
        student_id: UUID,
        trainer: AuthenticatedUser,
        completed: Enrollment,
    ) -> None:
        issued, _ = await certificate_service.issue_certificate(
            student_id, course.id, trainer
        )

        found = await certificate_service.verify_certificate(
            f"  {issued.certificate_number.lower()} "
        )

        assert found == issued

    @pytest.mark.asyncio
    async def test_verify_unknown_number(
        self, certificate_service: CertificateService
    ) -> None:
        with pytest.raises(CertificateNotFoundError):
            await certificate_service.verify_certificate("IC-0-000000")

    @pytest.mark.asyncio
    async def test_reservation_without_issued_certificate_does_not_verify(
        self,
        certificate_service: CertificateService,
        certificate_repo: FakeCertificateRepository,
        course: Course,
        student_id: UUID,
        trainer: AuthenticatedUser,
        completed: Enrollment,
    ) -> None:
        # Number reserved, (student, course) insert still in flight
        pending = _certificate(course, student_id, trainer, "IC-PENDING-AAAAAA")
        await certificate_repo.reserve_number(pending)

        with pytest.raises(CertificateNotFoundError):
            await certificate_service.verify_certificate(pending.certificate_number)

    @pytest.mark.asyncio
    async def test_retry_after_failed_insert_leaves_one_verifiable_number(
        self,
        certificate_service: CertificateService,
        certificate_repo: FakeCertificateRepository,
        enrollment_repo: FakeEnrollmentRepository,
        course: Course,
        student_id: UUID,
        trainer: AuthenticatedUser,
        completed: Enrollment,
    ) -> None:
        certificate_repo.fail_next_insert = 1

        with pytest.raises(TimeoutError):
            await certificate_service.issue_certificate(student_id, course.id, trainer)
        assert enrollment_repo.rows[(student_id, course.id)].certificate_issued is False

        issued, created = await certificate_service.issue_certificate(
            student_id, course.id, trainer
        )

        assert created is True
        assert len(certificate_repo.by_number) == 2
        verifiable = []
        for number in certificate_repo.by_number:
            try:
                verifiable.append(await certificate_service.verify_certificate(number))
            except CertificateNotFoundError:
                pass
        assert verifiable == [issued]

    @pytest.mark.asyncio
    async def test_lost_race_reservation_does_not_verify(
        self,
        certificate_service: CertificateService,
        certificate_repo: FakeCertificateRepository,
        course: Course,
        student_id: UUID,
        trainer: AuthenticatedUser,
        completed: Enrollment,
    ) -> None:
        issued, _ = await certificate_service.issue_certificate(
            student_id, course.id, trainer
        )
        # Loser of the (student, course) insert, before its number is released
        loser = _certificate(course, student_id, trainer, "IC-LOSER-BBBBBB")
        await certificate_repo.reserve_number(loser)

        with pytest.raises(CertificateNotFoundError):
            await certificate_service.verify_certificate(loser.certificate_number)
        assert (
            await certificate_service.verify_certificate(issued.certificate_number)
            == issued
        )


class TestGetCertificate:
    """Tests for get_certificate."""

    @pytest.mark.asyncio
    async def test_holder_and_admin_can_read(
        self,
        certificate_service: CertificateService,
        course: Course,
        student_id: UUID,
        student: AuthenticatedUser,
        trainer: AuthenticatedUser,
        admin: AuthenticatedUser,
        completed: Enrollment,
    ) -> None:
        issued, _ = await certificate_service.issue_certificate(
            student_id, course.id, trainer
        )

        assert await certificate_service.get_certificate(issued.id, student) == issued
        assert await certificate_service.get_certificate(issued.id, admin) == issued

    @pytest.mark.asyncio
    async def test_other_users_are_not_authorized(
        self,
        certificate_service: CertificateService,
        course: Course,
        student_id: UUID,
        trainer: AuthenticatedUser,
        completed: Enrollment,
    ) -> None:
        issued, _ = await certificate_service.issue_certificate(
            student_id, course.id, trainer
        )
        intruder = AuthenticatedUser(id=uuid4(), role="student")

        with pytest.raises(NotAuthorizedError):
            await certificate_service.get_certificate(issued.id, intruder)
        # Issuing trainer is not the holder
        with pytest.raises(NotAuthorizedError):
            await certificate_service.get_certificate(issued.id, trainer)

    @pytest.mark.asyncio
    async def test_unknown_id(
        self, certificate_service: CertificateService, admin: AuthenticatedUser
    ) -> None:
        with pytest.raises(CertificateNotFoundError):
            await certificate_service.get_certificate(uuid4(), admin)


class TestListCertificates:
    """Tests for the listing helpers."""

    @pytest.mark.asyncio
    async def test_student_and_course_listings(
        self,
        certificate_service: CertificateService,
        course: Course,
        student_id: UUID,
        trainer: AuthenticatedUser,
        admin: AuthenticatedUser,
        completed: Enrollment,
    ) -> None:
        issued, _ = await certificate_service.issue_certificate(
            student_id, course.id, trainer
        )

        assert await certificate_service.list_student_certificates(student_id) == [issued]
        assert await certificate_service.list_course_certificates(course.id, trainer) == [
            issued
        ]
        assert await certificate_service.list_course_certificates(course.id, admin) == [
            issued
        ]

    @pytest.mark.asyncio
    async def test_course_listing_requires_course_manager(
        self,
        certificate_service: CertificateService,
        course: Course,
    ) -> None:
        other_trainer = AuthenticatedUser(id=uuid4(), role="trainer")

        with pytest.raises(NotAuthorizedError):
            await certificate_service.list_course_certificates(course.id, other_trainer)
