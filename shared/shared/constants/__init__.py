from shared.constants.roles import ROLE_HIERARCHY, Role, can_access_section, has_permission

__all__ = ["ROLE_HIERARCHY", "Role", "can_access_section", "has_permission"]
