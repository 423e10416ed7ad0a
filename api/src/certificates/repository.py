# ruff: noqa: S608 - All CQL queries use keyspace from config, not user input
"""Certificate persistence.

Issuance writes in this order:
1. Reserve the number in ``certificates_by_number`` (IF NOT EXISTS)
2. Insert into ``certificates`` keyed by (student, course) (IF NOT EXISTS)
3. Lookup by id and denormalized copies for listing by student and by course

A number row only counts once the (student, course) row carries the same
number; reservations left by a lost race or a failed insert never verify.
"""

from typing import TYPE_CHECKING, Protocol
from uuid import UUID

from .models import Certificate


if TYPE_CHECKING:
    from cassandra.cluster import Session


class CertificateRepository(Protocol):
    """Storage contract for certificates."""

    async def get(self, student_id: UUID, course_id: UUID) -> Certificate | None: ...

    async def get_by_number(self, certificate_number: str) -> Certificate | None: ...

    async def get_by_id(self, certificate_id: UUID) -> Certificate | None: ...

    async def reserve_number(self, certificate: Certificate) -> bool:
        """Claim the certificate number; False if already taken."""
        ...

    async def release_number(self, certificate_number: str) -> None: ...

    async def insert(self, certificate: Certificate) -> tuple[Certificate, bool]:
        """Insert unless (student, course) has one; return stored row and created."""
        ...

    async def write_lookups(self, certificate: Certificate) -> None: ...

    async def list_by_student(self, student_id: UUID) -> list[Certificate]: ...

    async def list_by_course(self, course_id: UUID) -> list[Certificate]: ...


class CassandraCertificateRepository:
    """Certificates in Cassandra."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements."""
        columns = (
            "id, certificate_number, student_id, course_id, enrollment_id, "
            "course_title, issued_by, issued_at"
        )

        self._get_certificate = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.certificates
            WHERE student_id = ? AND course_id = ?
        """)

        self._get_by_number = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.certificates_by_number
            WHERE certificate_number = ?
        """)

        self._get_lookup_by_id = self.session.prepare(f"""
            SELECT student_id, course_id FROM {self.keyspace}.certificates_by_id
            WHERE id = ?
        """)

        self._reserve_number = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates_by_number ({columns})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._release_number = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.certificates_by_number
            WHERE certificate_number = ?
            IF EXISTS
        """)

        self._insert_certificate = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates ({columns})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._insert_by_id = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates_by_id (id, student_id, course_id)
            VALUES (?, ?, ?)
        """)

        self._insert_by_student = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates_by_student ({columns})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._insert_by_course = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.certificates_by_course ({columns})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._list_by_student = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.certificates_by_student
            WHERE student_id = ?
        """)

        self._list_by_course = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.certificates_by_course
            WHERE course_id = ?
        """)

    @staticmethod
    def _values(certificate: Certificate) -> list:
        return [
            certificate.id,
            certificate.certificate_number,
            certificate.student_id,
            certificate.course_id,
            certificate.enrollment_id,
            certificate.course_title,
            certificate.issued_by,
            certificate.issued_at,
        ]

    async def get(self, student_id: UUID, course_id: UUID) -> Certificate | None:
        """Get certificate of a student for a course."""
        result = await self.session.aexecute(
            self._get_certificate, [student_id, course_id]
        )
        row = result.one()
        return Certificate.from_row(row) if row else None

    async def get_by_number(self, certificate_number: str) -> Certificate | None:
        """Get certificate by its public number."""
        result = await self.session.aexecute(self._get_by_number, [certificate_number])
        row = result.one()
        return Certificate.from_row(row) if row else None

    async def get_by_id(self, certificate_id: UUID) -> Certificate | None:
        """Get certificate by ID (resolves the lookup, then reads the main row)."""
        result = await self.session.aexecute(self._get_lookup_by_id, [certificate_id])
        lookup = result.one()
        if not lookup:
            return None

        certificate = await self.get(lookup.student_id, lookup.course_id)
        if certificate is None or certificate.id != certificate_id:
            return None
        return certificate

    async def reserve_number(self, certificate: Certificate) -> bool:
        """Claim the number for this certificate."""
        result = await self.session.aexecute(
            self._reserve_number, self._values(certificate)
        )
        return bool(result.was_applied)

    async def release_number(self, certificate_number: str) -> None:
        """Free a reservation whose certificate was never stored."""
        await self.session.aexecute(self._release_number, [certificate_number])

    async def insert(self, certificate: Certificate) -> tuple[Certificate, bool]:
        """Insert the certificate unless the student already has one for the course."""
        result = await self.session.aexecute(
            self._insert_certificate, self._values(certificate)
        )
        if result.was_applied:
            return certificate, True

        existing = await self.get(certificate.student_id, certificate.course_id)
        return existing or certificate, False

    async def write_lookups(self, certificate: Certificate) -> None:
        """Write the id lookup and the listing copies (plain upserts, safe to repeat)."""
        values = self._values(certificate)
        await self.session.aexecute(
            self._insert_by_id,
            [certificate.id, certificate.student_id, certificate.course_id],
        )
        await self.session.aexecute(self._insert_by_student, values)
        await self.session.aexecute(self._insert_by_course, values)

    async def list_by_student(self, student_id: UUID) -> list[Certificate]:
        """List certificates of a student, newest first."""
        rows = await self.session.aexecute(self._list_by_student, [student_id])
        return [Certificate.from_row(row) for row in rows]

    async def list_by_course(self, course_id: UUID) -> list[Certificate]:
        """List certificates issued for a course, newest first."""
        rows = await self.session.aexecute(self._list_by_course, [course_id])
        return [Certificate.from_row(row) for row in rows]
