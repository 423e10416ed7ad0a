"""Enrollment and lesson progress API endpoints.

Provides routes for:
- Course enrollment, listing and drop
- Lesson completion recording
- Progress queries
"""

from uuid import UUID

from fastapi import APIRouter, Query, status

from src.auth.dependencies import CurrentUser, StudentUser
from src.courses.service import CourseError

from .dependencies import ProgressServiceDep, handle_progress_error
from .models import EnrollmentStatus
from .schemas import (
    EnrollmentListResponse,
    EnrollmentResponse,
    EnrollRequest,
    LessonCompletionResponse,
    LessonProgressListResponse,
    LessonProgressResponse,
    RecordLessonStateRequest,
)
from .service import ProgressError


router = APIRouter(prefix="/v1/progress", tags=["progress"])
enrollments_router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])


# ==============================================================================
# Lesson Progress Endpoints
# ==============================================================================


@router.post(
    "/lessons",
    response_model=LessonCompletionResponse,
    status_code=status.HTTP_200_OK,
    summary="Record lesson completion state",
)
async def record_lesson_state(
    data: RecordLessonStateRequest,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> LessonCompletionResponse:
    """Mark a lesson as completed (or not) and recompute course progress.

    Requires an active enrollment in the course.
    """
    try:
        result = await progress_service.record_lesson_state(
            user_id=user.id,
            lesson_id=data.lesson_id,
            course_id=data.course_id,
            is_completed=data.is_completed,
        )
    except (ProgressError, CourseError) as e:
        raise handle_progress_error(e) from e

    return LessonCompletionResponse(
        lesson_progress=LessonProgressResponse.from_entity(result.lesson_progress),
        enrollment=EnrollmentResponse.from_entity(result.enrollment),
    )


@router.get(
    "/courses/{course_id}",
    response_model=LessonProgressListResponse,
    summary="Get lesson progress for a course",
)
async def get_course_lesson_progress(
    course_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> LessonProgressListResponse:
    """Get all lesson progress of the current user in a course."""
    try:
        items = await progress_service.get_course_lesson_progress(user.id, course_id)
    except ProgressError as e:
        raise handle_progress_error(e) from e

    return LessonProgressListResponse(
        course_id=course_id,
        items=[LessonProgressResponse.from_entity(p) for p in items],
        total=len(items),
    )


# ==============================================================================
# Enrollment Endpoints
# ==============================================================================


@enrollments_router.post(
    "",
    response_model=EnrollmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll in course",
)
async def enroll_in_course(
    data: EnrollRequest,
    progress_service: ProgressServiceDep,
    user: StudentUser,
) -> EnrollmentResponse:
    """Enroll current user in an approved course.

    A previously dropped enrollment is reactivated with its history.
    """
    try:
        enrollment = await progress_service.enroll(user.id, data.course_id)
    except (ProgressError, CourseError) as e:
        raise handle_progress_error(e) from e

    return EnrollmentResponse.from_entity(enrollment)


@enrollments_router.get(
    "/my",
    response_model=EnrollmentListResponse,
    summary="Get my enrollments",
)
async def get_my_enrollments(
    progress_service: ProgressServiceDep,
    user: CurrentUser,
    status_filter: EnrollmentStatus | None = Query(None, alias="status"),
) -> EnrollmentListResponse:
    """Get all course enrollments for current user, newest first."""
    enrollments = await progress_service.list_student_enrollments(
        user.id, status_filter.value if status_filter else None
    )
    return EnrollmentListResponse(
        items=[EnrollmentResponse.from_entity(e) for e in enrollments],
        total=len(enrollments),
    )


@enrollments_router.get(
    "/{enrollment_id}",
    response_model=EnrollmentResponse,
    summary="Get enrollment",
)
async def get_enrollment(
    enrollment_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    """Get an enrollment (student, course trainer or admin)."""
    try:
        enrollment = await progress_service.get_enrollment_for_viewer(
            enrollment_id, user.id, user.role
        )
    except ProgressError as e:
        raise handle_progress_error(e) from e

    return EnrollmentResponse.from_entity(enrollment)


@enrollments_router.delete(
    "/{enrollment_id}",
    response_model=EnrollmentResponse,
    summary="Drop enrollment",
)
async def drop_enrollment(
    enrollment_id: UUID,
    progress_service: ProgressServiceDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    """Drop own enrollment. Progress history is kept."""
    try:
        enrollment = await progress_service.drop_enrollment(enrollment_id, user.id)
    except ProgressError as e:
        raise handle_progress_error(e) from e

    return EnrollmentResponse.from_entity(enrollment)
