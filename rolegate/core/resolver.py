"""
Capability Resolver

Effective state of a capability for (org, role):

    override.granted   if an override row exists
    default access     otherwise

Default access comes from the capability's min_role_required. The owner
role is never subject to overrides and always holds every capability.

Everything here is read-only and re-reads the store on each call, so it is
safe to run on every request path.
"""
from dataclasses import dataclass
from typing import Iterable, List, Set

from sqlalchemy import select
from sqlalchemy.orm import Session

from rolegate.core.overrides import fetch_role_overrides
from rolegate.core.roles import AppRole, RoleLike, meets_minimum, parse_role
from rolegate.core.security import ActorClaims
from rolegate.models.capability import Capability, OrgRoleCapability
from rolegate.utils.logging import get_logger

logger = get_logger(__name__)

SOURCE_OVERRIDE = "override"
SOURCE_DEFAULT = "default"


@dataclass(frozen=True)
class EffectiveCapability:
    key: str
    name: str
    category: str
    granted: bool
    default_granted: bool
    source: str


def has_default_access(capability, role: RoleLike) -> bool:
    """
    Default access of a role to a capability, ignoring overrides.

    A capability without min_role_required is owner-only, so an
    unclassified capability never reaches lower roles.
    """
    required = capability.min_role_required
    if required is None:
        required = AppRole.OWNER
    return meets_minimum(role, required)


def get_effective_state(db: Session, org_id: str, role: RoleLike, capability_key: str) -> bool:
    """
    Whether `role` in `org_id` holds `capability_key` right now.

    Unknown roles and unknown capability keys resolve to False.
    """
    parsed = parse_role(role)
    if parsed is None:
        logger.debug(f"Unknown role in capability check: {role!r}")
        return False

    row = db.execute(
        select(Capability, OrgRoleCapability.granted)
        .outerjoin(
            OrgRoleCapability,
            (OrgRoleCapability.capability_id == Capability.id)
            & (OrgRoleCapability.org_id == org_id)
            & (OrgRoleCapability.role == parsed),
        )
        .where(Capability.key == capability_key)
    ).first()

    if row is None:
        logger.debug(f"Unknown capability in capability check: {capability_key}")
        return False

    capability, override_granted = row
    if parsed == AppRole.OWNER:
        return True
    if override_granted is not None:
        return bool(override_granted)
    return has_default_access(capability, parsed)


def get_effective_capabilities(db: Session, org_id: str, role: RoleLike) -> List[EffectiveCapability]:
    """
    Full capability table for one role: two queries regardless of catalog size.

    Used for the role preview and for loading a caller's capability set.
    """
    parsed = parse_role(role)
    capabilities = list(db.scalars(
        select(Capability).order_by(Capability.category, Capability.key)
    ))

    if parsed is None:
        return [
            EffectiveCapability(c.key, c.name, c.category, False, False, SOURCE_DEFAULT)
            for c in capabilities
        ]

    overrides = {} if parsed == AppRole.OWNER else fetch_role_overrides(db, org_id, parsed)

    result = []
    for capability in capabilities:
        default_granted = has_default_access(capability, parsed)
        override = overrides.get(capability.id)
        if override is not None:
            result.append(EffectiveCapability(
                capability.key, capability.name, capability.category,
                bool(override.granted), default_granted, SOURCE_OVERRIDE,
            ))
        else:
            result.append(EffectiveCapability(
                capability.key, capability.name, capability.category,
                default_granted, default_granted, SOURCE_DEFAULT,
            ))
    return result


def granted_capability_keys(db: Session, org_id: str, role: RoleLike) -> Set[str]:
    return {c.key for c in get_effective_capabilities(db, org_id, role) if c.granted}


def user_has_capability(db: Session, claims: ActorClaims, capability_key: str) -> bool:
    return get_effective_state(db, claims.org_id, claims.role, capability_key)


def user_has_any_capability(db: Session, claims: ActorClaims, capability_keys: Iterable[str]) -> bool:
    granted = granted_capability_keys(db, claims.org_id, claims.role)
    return any(key in granted for key in capability_keys)


def user_has_all_capabilities(db: Session, claims: ActorClaims, capability_keys: Iterable[str]) -> bool:
    granted = granted_capability_keys(db, claims.org_id, claims.role)
    return all(key in granted for key in capability_keys)
