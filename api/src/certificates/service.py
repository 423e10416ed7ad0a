"""Certificate issuance and verification service layer."""

from datetime import UTC, datetime
from typing import NamedTuple
from uuid import UUID, uuid4

import structlog

from src.auth.permissions import can_manage_course, is_admin
from src.auth.schemas import AuthenticatedUser
from src.courses.service import CourseCatalog
from src.progress.repository import EnrollmentRepository
from src.progress.service import EnrollmentNotFoundError

from .models import Certificate, generate_certificate_number
from .repository import CertificateRepository


logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class CertificateError(Exception):
    """Base certificate error."""

    def __init__(self, message: str, code: str = "certificate_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotAuthorizedError(CertificateError):
    """Caller may not issue, list or view these certificates."""

    def __init__(self, message: str = "Sem permissao para acessar este certificado"):
        super().__init__(message, "not_authorized")


class CourseNotCompletedError(CertificateError):
    """Enrollment has not reached completion."""

    def __init__(self, message: str = "Curso ainda nao concluido"):
        super().__init__(message, "course_not_completed")


class CertificateNumberConflictError(CertificateError):
    """Generated number already belongs to another certificate."""

    def __init__(self, message: str = "Numero de certificado ja utilizado"):
        super().__init__(message, "certificate_number_conflict")


class CertificateNotFoundError(CertificateError):
    """Certificate not found."""

    def __init__(self, message: str = "Certificado nao encontrado"):
        super().__init__(message, "certificate_not_found")


class IssueResult(NamedTuple):
    """Issued certificate and whether this call created it."""

    certificate: Certificate
    created: bool


# ==============================================================================
# Certificate Service
# ==============================================================================


class CertificateService:
    """Issues at most one certificate per (student, course)."""

    def __init__(
        self,
        certificates: CertificateRepository,
        enrollments: EnrollmentRepository,
        catalog: CourseCatalog,
        prefix: str = "IC",
        suffix_length: int = 6,
    ):
        self.certificates = certificates
        self.enrollments = enrollments
        self.catalog = catalog
        self.prefix = prefix
        self.suffix_length = suffix_length

    async def issue_certificate(
        self,
        student_id: UUID,
        course_id: UUID,
        acting_user: AuthenticatedUser,
        self_service: bool = False,
    ) -> IssueResult:
        """Issue the completion certificate, or return the existing one.

        Args:
            student_id: Certificate holder
            course_id: Completed course
            acting_user: Caller (trainer/admin, or the student on self-service)
            self_service: Student generating their own certificate

        Raises:
            CourseNotFoundError: Unknown course
            NotAuthorizedError: Caller may not issue for this student/course
            EnrollmentNotFoundError: Student never enrolled
            CourseNotCompletedError: Enrollment not completed
            CertificateNumberConflictError: Generated number already taken
        """
        course = await self.catalog.require_course(course_id)

        if self_service:
            authorized = acting_user.id == student_id
        else:
            authorized = can_manage_course(acting_user.id, acting_user.role, course.trainer_id)
        if not authorized:
            raise NotAuthorizedError

        enrollment = await self.enrollments.get(student_id, course_id)
        if enrollment is None:
            raise EnrollmentNotFoundError

        if not enrollment.is_completed and enrollment.progress < 100:
            raise CourseNotCompletedError

        existing = await self.certificates.get(student_id, course_id)
        if existing is not None:
            # Flag unset: a previous call stopped after the insert
            if not enrollment.certificate_issued:
                await self.certificates.write_lookups(existing)
                await self.enrollments.mark_certificate_issued(course_id, student_id)
            return IssueResult(existing, False)

        issued_at = datetime.now(UTC)
        certificate = Certificate(
            id=uuid4(),
            certificate_number=generate_certificate_number(
                self.prefix, self.suffix_length, issued_at
            ),
            student_id=student_id,
            course_id=course_id,
            enrollment_id=enrollment.id,
            issued_by=acting_user.id,
            issued_at=issued_at,
            course_title=course.title,
        )

        if not await self.certificates.reserve_number(certificate):
            logger.error(
                "certificate_number_conflict",
                certificate_number=certificate.certificate_number,
            )
            raise CertificateNumberConflictError

        stored, created = await self.certificates.insert(certificate)
        if not created:
            await self.certificates.release_number(certificate.certificate_number)
            logger.info(
                "certificate_issue_race_lost",
                student_id=str(student_id),
                course_id=str(course_id),
                certificate_number=stored.certificate_number,
            )
            return IssueResult(stored, False)

        await self.certificates.write_lookups(stored)
        await self.enrollments.mark_certificate_issued(course_id, student_id)

        logger.info(
            "certificate_issued",
            certificate_number=stored.certificate_number,
            student_id=str(student_id),
            course_id=str(course_id),
            issued_by=str(acting_user.id),
            self_service=self_service,
        )
        return IssueResult(stored, True)

    async def verify_certificate(self, certificate_number: str) -> Certificate:
        """Look up a certificate by number (public).

        The number must be the one stored for its (student, course) pair.
        Reservations from a lost race or an interrupted issuance are not
        certificates.
        """
        number = certificate_number.strip().upper()
        reserved = await self.certificates.get_by_number(number)
        if reserved is None:
            raise CertificateNotFoundError

        certificate = await self.certificates.get(reserved.student_id, reserved.course_id)
        if certificate is None or certificate.certificate_number != number:
            logger.warning("certificate_number_not_issued", certificate_number=number)
            raise CertificateNotFoundError
        return certificate

    async def get_certificate(
        self, certificate_id: UUID, acting_user: AuthenticatedUser
    ) -> Certificate:
        """Get a certificate by ID (holder or admin)."""
        certificate = await self.certificates.get_by_id(certificate_id)
        if certificate is None:
            raise CertificateNotFoundError
        if certificate.student_id != acting_user.id and not is_admin(acting_user.role):
            raise NotAuthorizedError
        return certificate

    async def list_student_certificates(self, student_id: UUID) -> list[Certificate]:
        """List a student's certificates, newest first."""
        return await self.certificates.list_by_student(student_id)

    async def list_course_certificates(
        self, course_id: UUID, acting_user: AuthenticatedUser
    ) -> list[Certificate]:
        """List certificates of a course (course trainer or admin)."""
        course = await self.catalog.require_course(course_id)
        if not can_manage_course(acting_user.id, acting_user.role, course.trainer_id):
            raise NotAuthorizedError
        return await self.certificates.list_by_course(course_id)
