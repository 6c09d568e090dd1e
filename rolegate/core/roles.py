"""
Role Hierarchy

Roles form a fixed total order, lowest to highest privilege:

    view-only < member < admin < superadmin < owner

A role's rank is its index in that order. The hierarchy is defined at
deploy time and is the same for every organization; nothing here is
mutable at runtime.

Unknown role strings rank below everything (-1), so every check that
involves one fails closed instead of raising.
"""
import enum
from typing import Iterable, List, Optional, Union


class AppRole(str, enum.Enum):
    """
    Organization roles.

    VIEW_ONLY: Read access to the organization
    MEMBER: Standard access, can create/edit projects
    ADMIN: Manages team and projects
    SUPERADMIN: Manages roles, settings and sessions
    OWNER: Everything, including billing and role customization
    """
    VIEW_ONLY = "view-only"
    MEMBER = "member"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"
    OWNER = "owner"


ROLE_HIERARCHY = (
    AppRole.VIEW_ONLY,
    AppRole.MEMBER,
    AppRole.ADMIN,
    AppRole.SUPERADMIN,
    AppRole.OWNER,
)

_RANKS = {role: index for index, role in enumerate(ROLE_HIERARCHY)}

UNKNOWN_RANK = -1

RoleLike = Union[AppRole, str, None]


def parse_role(value: RoleLike) -> Optional[AppRole]:
    """Return the AppRole for a role string, or None if it isn't one."""
    if isinstance(value, AppRole):
        return value
    if not isinstance(value, str):
        return None
    try:
        return AppRole(value)
    except ValueError:
        return None


def role_rank(role: RoleLike) -> int:
    """Privilege level of a role. Higher numbers = more privileges."""
    parsed = parse_role(role)
    if parsed is None:
        return UNKNOWN_RANK
    return _RANKS[parsed]


def meets_minimum(actor_role: RoleLike, required_role: RoleLike) -> bool:
    """
    Check if actor_role is equal to or higher than required_role.

    An unknown actor role never qualifies, and an unknown requirement
    cannot be met by anyone.
    """
    actor_rank = role_rank(actor_role)
    required_rank = role_rank(required_role)
    if actor_rank == UNKNOWN_RANK or required_rank == UNKNOWN_RANK:
        return False
    return actor_rank >= required_rank


def has_access(actor_role: RoleLike, allowed_roles: Iterable[RoleLike]) -> bool:
    """
    Check actor_role against a set of allowed roles.

    The allowed roles are a floor, not an exact-match set: any role at or
    above the lowest listed role qualifies. An empty set means no
    restriction.
    """
    ranks = [role_rank(role) for role in allowed_roles]
    if not ranks:
        return True

    known = [rank for rank in ranks if rank != UNKNOWN_RANK]
    if not known:
        return False

    actor_rank = role_rank(actor_role)
    if actor_rank == UNKNOWN_RANK:
        return False
    return actor_rank >= min(known)


def roles_at_or_below(role: RoleLike) -> List[AppRole]:
    """Roles whose default capabilities the given role inherits."""
    rank = role_rank(role)
    return [r for r in ROLE_HIERARCHY if _RANKS[r] <= rank]
