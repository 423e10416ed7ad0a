"""Course completion certificates module.

Provides:
- Exactly-once issuance per (student, course)
- Human-shareable certificate numbers
- Public verification by number
"""

from .models import (
    CERTIFICATES_TABLES_CQL,
    Certificate,
    generate_certificate_number,
)


__all__ = [
    "CERTIFICATES_TABLES_CQL",
    "Certificate",
    "generate_certificate_number",
]
