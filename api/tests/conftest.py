"""Shared fixtures: in-memory services, a seeded course and an HTTP client."""

import os
import tempfile
from collections.abc import Callable
from uuid import UUID, uuid4

import pytest


# Settings are cached on first import of the app
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="skillpath-logs-"))
os.environ.setdefault("LOG_LEVEL", "WARNING")

from fastapi.testclient import TestClient  # noqa: E402

from fakes import (  # noqa: E402
    FakeCertificateRepository,
    FakeCourseRepository,
    FakeEnrollmentRepository,
    FakeLessonProgressRepository,
    RecordingNotificationSink,
)
from src.auth.permissions import UserRole  # noqa: E402
from src.auth.schemas import AuthenticatedUser  # noqa: E402
from src.auth.security import create_access_token  # noqa: E402
from src.certificates.service import CertificateService  # noqa: E402
from src.courses.models import Course, CourseStatus  # noqa: E402
from src.courses.service import CourseCatalog  # noqa: E402
from src.progress.service import ProgressService  # noqa: E402


@pytest.fixture
def trainer_id() -> UUID:
    return uuid4()


@pytest.fixture
def student_id() -> UUID:
    return uuid4()


@pytest.fixture
def trainer(trainer_id: UUID) -> AuthenticatedUser:
    return AuthenticatedUser(id=trainer_id, role=UserRole.TRAINER.value)


@pytest.fixture
def student(student_id: UUID) -> AuthenticatedUser:
    return AuthenticatedUser(id=student_id, role=UserRole.STUDENT.value)


@pytest.fixture
def admin() -> AuthenticatedUser:
    return AuthenticatedUser(id=uuid4(), role=UserRole.ADMIN.value)


@pytest.fixture
def course_repo() -> FakeCourseRepository:
    return FakeCourseRepository()


@pytest.fixture
def course(course_repo: FakeCourseRepository, trainer_id: UUID) -> Course:
    """Approved course with four lessons."""
    return course_repo.add_course(
        Course(
            id=uuid4(),
            title="Farmacologia Basica",
            trainer_id=trainer_id,
            status=CourseStatus.APPROVED.value,
            lesson_ids=[uuid4() for _ in range(4)],
        )
    )


@pytest.fixture
def make_course(
    course_repo: FakeCourseRepository, trainer_id: UUID
) -> Callable[..., Course]:
    """Factory for extra courses."""

    def _make(
        lessons: int = 4, status: CourseStatus = CourseStatus.APPROVED
    ) -> Course:
        return course_repo.add_course(
            Course(
                id=uuid4(),
                title="Curso Extra",
                trainer_id=trainer_id,
                status=status.value,
                lesson_ids=[uuid4() for _ in range(lessons)],
            )
        )

    return _make


@pytest.fixture
def catalog(course_repo: FakeCourseRepository) -> CourseCatalog:
    return CourseCatalog(course_repo)


@pytest.fixture
def lesson_progress_repo() -> FakeLessonProgressRepository:
    return FakeLessonProgressRepository()


@pytest.fixture
def enrollment_repo() -> FakeEnrollmentRepository:
    return FakeEnrollmentRepository()


@pytest.fixture
def certificate_repo() -> FakeCertificateRepository:
    return FakeCertificateRepository()


@pytest.fixture
def notifications() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest.fixture
def progress_service(
    lesson_progress_repo: FakeLessonProgressRepository,
    enrollment_repo: FakeEnrollmentRepository,
    catalog: CourseCatalog,
    notifications: RecordingNotificationSink,
) -> ProgressService:
    return ProgressService(
        lesson_progress=lesson_progress_repo,
        enrollments=enrollment_repo,
        catalog=catalog,
        notifications=notifications,
    )


@pytest.fixture
def certificate_service(
    certificate_repo: FakeCertificateRepository,
    enrollment_repo: FakeEnrollmentRepository,
    catalog: CourseCatalog,
) -> CertificateService:
    return CertificateService(
        certificates=certificate_repo,
        enrollments=enrollment_repo,
        catalog=catalog,
    )


@pytest.fixture
def client(
    progress_service: ProgressService, certificate_service: CertificateService
) -> TestClient:
    """HTTP client over a fresh app wired to the in-memory services.

    The lifespan is not entered, so no Cassandra or Redis connection is made.
    """
    from src.main import create_app

    app = create_app()
    app.state.cassandra_session = None
    app.state.redis = None
    app.state.progress_service = progress_service
    app.state.certificate_service = certificate_service
    return TestClient(app)


@pytest.fixture
def auth_headers() -> Callable[[AuthenticatedUser], dict[str, str]]:
    """Bearer header for a user."""

    def _headers(user: AuthenticatedUser) -> dict[str, str]:
        token = create_access_token({"sub": str(user.id), "role": user.role})
        return {"Authorization": f"Bearer {token}"}

    return _headers
