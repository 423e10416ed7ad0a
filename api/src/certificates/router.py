"""Certificate API endpoints.

Provides routes for:
- Issuance by trainer/admin and student self-service
- Listing own and course certificates
- Single certificate by ID (holder or admin)
- Public verification by number
"""

from uuid import UUID

from fastapi import APIRouter, Response, status

from src.auth.dependencies import CurrentUser, StudentUser, TrainerUser
from src.courses.service import CourseError
from src.progress.service import ProgressError

from .dependencies import CertificateServiceDep, handle_certificate_error
from .schemas import (
    CertificateListResponse,
    CertificateResponse,
    CertificateVerificationResponse,
    GenerateCertificateRequest,
    IssueCertificateRequest,
)
from .service import CertificateError, IssueResult


router = APIRouter(prefix="/v1/certificates", tags=["certificates"])


def _issue_response(result: IssueResult, response: Response) -> CertificateResponse:
    # 201 for a new certificate, 200 when returning the existing one
    response.status_code = (
        status.HTTP_201_CREATED if result.created else status.HTTP_200_OK
    )
    return CertificateResponse.from_entity(result.certificate)


@router.post(
    "/issue",
    response_model=CertificateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Issue certificate (trainer/admin)",
)
async def issue_certificate(
    data: IssueCertificateRequest,
    response: Response,
    certificate_service: CertificateServiceDep,
    user: TrainerUser,
) -> CertificateResponse:
    """Issue a certificate for a student who completed the course.

    Only the course trainer or an admin. Idempotent per (student, course).
    """
    try:
        result = await certificate_service.issue_certificate(
            data.student_id, data.course_id, user
        )
    except (CertificateError, ProgressError, CourseError) as e:
        raise handle_certificate_error(e) from e

    return _issue_response(result, response)


@router.post(
    "/generate",
    response_model=CertificateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate own certificate",
)
async def generate_certificate(
    data: GenerateCertificateRequest,
    response: Response,
    certificate_service: CertificateServiceDep,
    user: StudentUser,
) -> CertificateResponse:
    """Generate the current user's certificate for a completed course."""
    try:
        result = await certificate_service.issue_certificate(
            user.id, data.course_id, user, self_service=True
        )
    except (CertificateError, ProgressError, CourseError) as e:
        raise handle_certificate_error(e) from e

    return _issue_response(result, response)


@router.get(
    "/my",
    response_model=CertificateListResponse,
    summary="Get my certificates",
)
async def get_my_certificates(
    certificate_service: CertificateServiceDep,
    user: CurrentUser,
) -> CertificateListResponse:
    """List certificates of the current user."""
    certificates = await certificate_service.list_student_certificates(user.id)
    return CertificateListResponse(
        items=[CertificateResponse.from_entity(c) for c in certificates],
        total=len(certificates),
    )


@router.get(
    "/course/{course_id}",
    response_model=CertificateListResponse,
    summary="Get course certificates",
)
async def get_course_certificates(
    course_id: UUID,
    certificate_service: CertificateServiceDep,
    user: TrainerUser,
) -> CertificateListResponse:
    """List certificates of a course (course trainer or admin)."""
    try:
        certificates = await certificate_service.list_course_certificates(course_id, user)
    except (CertificateError, CourseError) as e:
        raise handle_certificate_error(e) from e

    return CertificateListResponse(
        items=[CertificateResponse.from_entity(c) for c in certificates],
        total=len(certificates),
    )


@router.get(
    "/verify/{certificate_number}",
    response_model=CertificateVerificationResponse,
    summary="Verify certificate",
)
async def verify_certificate(
    certificate_number: str,
    certificate_service: CertificateServiceDep,
) -> CertificateVerificationResponse:
    """Verify a certificate by number. Public: the number is the credential."""
    try:
        certificate = await certificate_service.verify_certificate(certificate_number)
    except CertificateError as e:
        raise handle_certificate_error(e) from e

    return CertificateVerificationResponse(
        certificate=CertificateResponse.from_entity(certificate)
    )


@router.get(
    "/{certificate_id}",
    response_model=CertificateResponse,
    summary="Get certificate",
)
async def get_certificate(
    certificate_id: UUID,
    certificate_service: CertificateServiceDep,
    user: CurrentUser,
) -> CertificateResponse:
    """Get a certificate by ID. Only the holder or an admin."""
    try:
        certificate = await certificate_service.get_certificate(certificate_id, user)
    except CertificateError as e:
        raise handle_certificate_error(e) from e

    return CertificateResponse.from_entity(certificate)
