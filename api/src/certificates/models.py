"""Database models for course completion certificates.

Cassandra table definitions for:
- Certificates: One row per (student, course), decides issuance races
- Certificates by number: Number reservation and public verification
- Lookup tables: Certificates by id, by student and by course

Certificate numbers look like ``IC-LX2K9Q1A-7GH3ZP``: institution prefix,
base-36 issuance time in milliseconds and a random base-36 suffix.
"""

import re
import secrets
import string
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from src.utils.dates import ensure_utc_aware


BASE36_ALPHABET = string.digits + string.ascii_uppercase

CERTIFICATE_NUMBER_PATTERN = re.compile(r"^[A-Z0-9]+-[0-9A-Z]+-[0-9A-Z]+$")


# ==============================================================================
# Number Generation
# ==============================================================================


def to_base36(value: int) -> str:
    """Encode a non-negative integer in uppercase base 36."""
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"

    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_certificate_number(
    prefix: str = "IC",
    suffix_length: int = 6,
    now: datetime | None = None,
) -> str:
    """Generate a human-shareable certificate number.

    Unique with overwhelming probability; the number reservation table is
    the backstop for collisions.
    """
    issued_at = now or datetime.now(UTC)
    millis = int(issued_at.timestamp() * 1000)
    suffix = "".join(secrets.choice(BASE36_ALPHABET) for _ in range(suffix_length))
    return f"{prefix.upper()}-{to_base36(millis)}-{suffix}"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

# Certificado por (aluno, curso) - INSERT IF NOT EXISTS decide a corrida
CERTIFICATES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates (
    student_id UUID,
    course_id UUID,
    id UUID,
    certificate_number TEXT,
    enrollment_id UUID,
    course_title TEXT,
    issued_by UUID,
    issued_at TIMESTAMP,
    PRIMARY KEY (student_id, course_id)
)
"""

# Reserva do numero - garante unicidade global. So vale se bater com
# o certificado do par (aluno, curso)
CERTIFICATES_BY_NUMBER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates_by_number (
    certificate_number TEXT PRIMARY KEY,
    id UUID,
    student_id UUID,
    course_id UUID,
    enrollment_id UUID,
    course_title TEXT,
    issued_by UUID,
    issued_at TIMESTAMP
)
"""

CERTIFICATES_BY_ID_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates_by_id (
    id UUID PRIMARY KEY,
    student_id UUID,
    course_id UUID
)
"""

CERTIFICATES_BY_STUDENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates_by_student (
    student_id UUID,
    issued_at TIMESTAMP,
    course_id UUID,
    id UUID,
    certificate_number TEXT,
    enrollment_id UUID,
    course_title TEXT,
    issued_by UUID,
    PRIMARY KEY (student_id, issued_at, course_id)
) WITH CLUSTERING ORDER BY (issued_at DESC, course_id ASC)
"""

CERTIFICATES_BY_COURSE_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.certificates_by_course (
    course_id UUID,
    issued_at TIMESTAMP,
    student_id UUID,
    id UUID,
    certificate_number TEXT,
    enrollment_id UUID,
    course_title TEXT,
    issued_by UUID,
    PRIMARY KEY (course_id, issued_at, student_id)
) WITH CLUSTERING ORDER BY (issued_at DESC, student_id ASC)
"""

CERTIFICATES_TABLES_CQL = [
    CERTIFICATES_TABLE_CQL,
    CERTIFICATES_BY_NUMBER_TABLE_CQL,
    CERTIFICATES_BY_ID_TABLE_CQL,
    CERTIFICATES_BY_STUDENT_TABLE_CQL,
    CERTIFICATES_BY_COURSE_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass(frozen=True)
class Certificate:
    """Immutable proof of course completion.

    Attributes:
        id: Certificate UUID
        certificate_number: Globally unique, human-shareable number
        student_id: Student UUID
        course_id: Course UUID
        enrollment_id: Source enrollment UUID
        course_title: Course title at issuance (for verification display)
        issued_by: Acting user that issued it
        issued_at: Issuance timestamp
    """

    id: UUID
    certificate_number: str
    student_id: UUID
    course_id: UUID
    enrollment_id: UUID
    issued_by: UUID
    issued_at: datetime
    course_title: str = ""

    @classmethod
    def from_row(cls, row: Any) -> "Certificate":
        """Create Certificate instance from any certificates table row."""
        return cls(
            id=row.id,
            certificate_number=row.certificate_number,
            student_id=row.student_id,
            course_id=row.course_id,
            enrollment_id=row.enrollment_id,
            issued_by=row.issued_by,
            issued_at=ensure_utc_aware(row.issued_at),
            course_title=row.course_title or "",
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "certificate_number": self.certificate_number,
            "student_id": self.student_id,
            "course_id": self.course_id,
            "enrollment_id": self.enrollment_id,
            "course_title": self.course_title,
            "issued_by": self.issued_by,
            "issued_at": self.issued_at,
        }

    def __repr__(self) -> str:
        return f"<Certificate {self.certificate_number} student={self.student_id}>"
