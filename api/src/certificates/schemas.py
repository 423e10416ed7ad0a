"""Pydantic schemas for certificates."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import Certificate


class IssueCertificateRequest(BaseModel):
    """Trainer/admin request to issue a certificate."""

    student_id: UUID = Field(..., description="Student UUID")
    course_id: UUID = Field(..., description="Course UUID")


class GenerateCertificateRequest(BaseModel):
    """Student request to generate their own certificate."""

    course_id: UUID = Field(..., description="Completed course UUID")


class CertificateResponse(BaseModel):
    """Certificate response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    certificate_number: str
    student_id: UUID
    course_id: UUID
    course_title: str = ""
    enrollment_id: UUID
    issued_by: UUID
    issued_at: datetime

    @classmethod
    def from_entity(cls, entity: Certificate) -> "CertificateResponse":
        """Create response from entity."""
        return cls.model_validate(entity)


class CertificateListResponse(BaseModel):
    """List of certificates."""

    items: list[CertificateResponse]
    total: int


class CertificateVerificationResponse(BaseModel):
    """Public verification result."""

    valid: bool = True
    certificate: CertificateResponse
