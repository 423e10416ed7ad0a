"""FastAPI dependencies for certificates."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from src.courses.service import CourseError
from src.progress.service import ProgressError

from .service import CertificateError, CertificateService


async def get_certificate_service(request: Request) -> CertificateService:
    """Get certificate service from app state."""
    app_state = request.app.state
    if not hasattr(app_state, "certificate_service") or not app_state.certificate_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Servico de certificados nao disponivel",
        )
    return app_state.certificate_service


CertificateServiceDep = Annotated[CertificateService, Depends(get_certificate_service)]


def handle_certificate_error(
    error: CertificateError | ProgressError | CourseError,
) -> HTTPException:
    """Convert certificate (and upstream) errors to HTTP exceptions."""
    status_map = {
        "course_not_found": status.HTTP_404_NOT_FOUND,
        "enrollment_not_found": status.HTTP_404_NOT_FOUND,
        "certificate_not_found": status.HTTP_404_NOT_FOUND,
        "not_authorized": status.HTTP_403_FORBIDDEN,
        "course_not_completed": status.HTTP_400_BAD_REQUEST,
        "certificate_number_conflict": status.HTTP_409_CONFLICT,
    }

    status_code = status_map.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    return HTTPException(
        status_code=status_code,
        detail=error.message,
    )
