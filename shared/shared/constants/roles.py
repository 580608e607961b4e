from enum import Enum


class Role(str, Enum):
    USER = "USER"
    STUDENT = "STUDENT"
    INSTRUCTOR = "INSTRUCTOR"
    ADMIN = "ADMIN"


# Total order: every role holds the permissions of the roles ranked below it.
ROLE_HIERARCHY: dict[Role, int] = {
    Role.USER: 0,
    Role.STUDENT: 1,
    Role.INSTRUCTOR: 2,
    Role.ADMIN: 3,
}

_SECTION_ROLES: dict[str, Role] = {
    "student": Role.STUDENT,
    "instructor": Role.INSTRUCTOR,
    "admin": Role.ADMIN,
}


def has_permission(actual: Role | str, required: Role | str) -> bool:
    return ROLE_HIERARCHY[Role(actual)] >= ROLE_HIERARCHY[Role(required)]


def can_access_section(role: Role | str, section: str) -> bool:
    """Dashboard sections map to the minimum role that may open them.

    Unknown sections are denied.
    """
    required = _SECTION_ROLES.get(section)
    if required is None:
        return False
    return has_permission(role, required)
