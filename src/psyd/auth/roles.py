"""
Role policy.

The role ordering is fixed: superuser < admin < super_admin. Every authorization
decision in the service goes through ``meets_minimum`` or ``assignable_roles``;
nothing else compares role names.
"""

from __future__ import annotations

from typing import Literal

UserRole = Literal["superuser", "admin", "super_admin"]

ROLE_LEVELS: dict[str, int] = {
    "superuser": 1,
    "admin": 2,
    "super_admin": 3,
}

ALL_ROLES: tuple[UserRole, ...] = ("superuser", "admin", "super_admin")


def role_level(role: str | None) -> int:
    """Numeric level of a role. Absent or unknown roles are level 0."""
    if role is None:
        return 0
    return ROLE_LEVELS.get(role, 0)


def meets_minimum(role: str | None, minimum: UserRole) -> bool:
    """True if ``role`` ranks at or above ``minimum``."""
    return role_level(role) >= ROLE_LEVELS[minimum]


def assignable_roles(role: str | None) -> tuple[UserRole, ...]:
    """
    Roles a caller may grant to other accounts.

    Admins may only grant superuser; super_admins may grant up to admin.
    Nobody may grant super_admin through the API.
    """
    if meets_minimum(role, "super_admin"):
        return ("superuser", "admin")
    if meets_minimum(role, "admin"):
        return ("superuser",)
    return ()


def can_assign(role: str | None, target_role: str) -> bool:
    """True if a caller holding ``role`` may grant ``target_role``."""
    return target_role in assignable_roles(role)
