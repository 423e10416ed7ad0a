"""Role-based access control (RBAC) for SkillPath.

Hierarchical permission system:
- ADMIN (level 3): Full system access, moderates and issues any certificate
- TRAINER (level 2): Owns courses, issues certificates for own courses
- STUDENT (level 1): Enrolls in courses and records progress
"""

from enum import Enum
from uuid import UUID


class UserRole(str, Enum):
    """User roles with hierarchical levels."""

    STUDENT = "student"
    TRAINER = "trainer"
    ADMIN = "admin"


ROLE_HIERARCHY: dict[UserRole, int] = {
    UserRole.STUDENT: 1,
    UserRole.TRAINER: 2,
    UserRole.ADMIN: 3,
}


def get_role_level(role: UserRole | str) -> int:
    """Get the permission level for a role (0 for unknown roles)."""
    if isinstance(role, str):
        try:
            role = UserRole(role)
        except ValueError:
            return 0
    return ROLE_HIERARCHY.get(role, 0)


def has_permission(user_role: UserRole | str, required_role: UserRole | str) -> bool:
    """Check if user has at least the required permission level.

    Examples:
        >>> has_permission(UserRole.ADMIN, UserRole.TRAINER)
        True
        >>> has_permission("student", "trainer")
        False
    """
    return get_role_level(user_role) >= get_role_level(required_role)


def is_admin(role: UserRole | str) -> bool:
    """Check if role is ADMIN."""
    return get_role_level(role) == ROLE_HIERARCHY[UserRole.ADMIN]


def can_manage_course(
    user_id: UUID, role: UserRole | str, course_trainer_id: UUID
) -> bool:
    """Check if the user is the course's trainer or an admin."""
    return is_admin(role) or user_id == course_trainer_id
