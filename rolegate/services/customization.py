"""
Role Capability Customization

Owner-only operations that write per-organization capability overrides:

- apply_changes: batch grant/revoke for one role (what the role manager UI calls)
- grant / revoke: single-toggle wrappers over apply_changes
- reset_role: drop every override for a role

Preconditions for writes, checked in order, first failure wins, nothing
written before all of them pass:

1. an authenticated actor
2. the actor is an owner of this organization
3. the target role is a real role other than owner
4. the subscription tier allows custom permissions (not checked by reset)
5. at least one change names a known capability

After a successful write only users holding the target role in this
organization are logged out, as a best-effort step after commit.
"""
from datetime import datetime
from typing import Dict, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from rolegate.core.exceptions import (
    AuthenticationRequired,
    AuthorizationDenied,
    TierNotEligible,
    ValidationFailed,
)
from rolegate.core.overrides import delete_role_overrides, fetch_role_overrides, upsert_overrides
from rolegate.core.roles import AppRole, RoleLike, parse_role
from rolegate.core.security import ActorClaims
from rolegate.core.tier_gate import can_customize
from rolegate.models.capability import Capability
from rolegate.schemas.capability import CapabilityChange
from rolegate.schemas.results import BatchUpdateResult, ResetResult
from rolegate.services.base import pluralize, returns_result
from rolegate.services.sessions import InvalidationOutcome, SessionInvalidator
from rolegate.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)


def _authorize(actor: Optional[ActorClaims], org_id: str, role: RoleLike, verb: str) -> AppRole:
    """Preconditions 1-3. Returns the parsed target role."""
    if actor is None:
        raise AuthenticationRequired()

    if actor.role != AppRole.OWNER:
        log_security_event(
            "authorization_denied",
            {"user_id": actor.user_id, "org_id": org_id, "role": actor.role.value, "action": f"{verb}_role"},
            logger,
        )
        raise AuthorizationDenied(f"Only organization owners can {verb} role capabilities")

    if actor.org_id != org_id:
        log_security_event(
            "tenant_isolation_violation",
            {"user_id": actor.user_id, "org_id": org_id, "actor_org_id": actor.org_id},
            logger,
        )
        raise AuthorizationDenied("Cannot modify roles of another organization")

    target = parse_role(role)
    if target is None:
        raise ValidationFailed(f"Unknown role: {role}")
    if target == AppRole.OWNER:
        raise AuthorizationDenied("The owner role always has every capability and cannot be customized")
    return target


def _require_tier(db: Session, actor: ActorClaims, org_id: str) -> None:
    """Precondition 4."""
    tier = can_customize(db, org_id)
    if not tier.allowed:
        log_security_event(
            "tier_not_eligible",
            {"user_id": actor.user_id, "org_id": org_id, "tier": tier.tier_name},
            logger,
        )
        raise TierNotEligible(tier.tier_name)


def _resolve_capability_ids(db: Session, keys: Iterable[str]) -> Dict[str, str]:
    """Map capability keys to ids in one query. Unknown keys are absent."""
    keys = list(keys)
    if not keys:
        return {}
    rows = db.execute(select(Capability.key, Capability.id).where(Capability.key.in_(keys)))
    return {key: capability_id for key, capability_id in rows}


def _invalidate_role_sessions(invalidator: Optional[SessionInvalidator], org_id: str,
                              role: AppRole) -> InvalidationOutcome:
    """
    Log out users holding `role` in `org_id`.

    Runs after commit. Failures are logged and reported as zero affected
    users; they never fail the operation.
    """
    invalidator = invalidator or SessionInvalidator()
    try:
        outcome = invalidator.invalidate_role(org_id, role)
    except Exception as exc:
        # The overrides are committed; nothing here may turn that into a failure
        logger.error(
            f"Failed to force logout users with role {role.value}: {exc}",
            exc_info=True,
            extra={"org_id": org_id, "role": role.value},
        )
        return InvalidationOutcome()

    if outcome.affected_sessions:
        log_security_event(
            "forced_logout",
            {"org_id": org_id, "role": role.value, "affected_users": outcome.affected_users,
             "affected_sessions": outcome.affected_sessions},
            logger,
        )
    return outcome


@returns_result(BatchUpdateResult, "batch capability update")
def apply_changes(
    db: Session,
    actor: Optional[ActorClaims],
    org_id: str,
    role: RoleLike,
    changes: Iterable[CapabilityChange],
    invalidator: Optional[SessionInvalidator] = None,
) -> BatchUpdateResult:
    """
    Apply a set of grant/revoke changes to one role in one organization.

    Unknown capability keys are skipped with a warning; the call only
    fails if nothing valid remains. When a key appears more than once the
    last change wins. Changes that match the stored override are counted
    as no-ops and not rewritten, so re-sending a batch is harmless.
    """
    target = _authorize(actor, org_id, role, "customize")
    _require_tier(db, actor, org_id)

    requested: Dict[str, bool] = {}
    for change in changes or []:
        requested[change.capability_key] = change.granted
    if not requested:
        raise ValidationFailed("No changes provided")

    capability_ids = _resolve_capability_ids(db, requested)
    skipped = [key for key in requested if key not in capability_ids]
    for key in skipped:
        logger.warning(f"Capability not found: {key}", extra={"org_id": org_id, "role": target.value})
    if len(skipped) == len(requested):
        raise ValidationFailed("No valid changes to apply", skipped_keys=skipped)

    existing = fetch_role_overrides(db, org_id, target)
    now = datetime.utcnow()
    rows = []
    no_op_count = 0
    for key, granted in requested.items():
        capability_id = capability_ids.get(key)
        if capability_id is None:
            continue
        current = existing.get(capability_id)
        if current is not None and current.granted == granted:
            no_op_count += 1
            continue
        rows.append({
            "org_id": org_id,
            "role": target,
            "capability_id": capability_id,
            "granted": granted,
            "updated_by": actor.user_id,
            "updated_at": now,
        })

    if not rows:
        return BatchUpdateResult(
            success=True,
            message=f"No changes needed: {pluralize(no_op_count, 'change')} already applied to {target.value} role.",
            no_op_count=no_op_count,
            skipped_keys=skipped,
        )

    upsert_overrides(db, rows)
    db.commit()
    # Core upsert bypasses the identity map; drop stale override objects
    db.expire_all()

    logger.info(
        f"Batch capability update completed: {len(rows)} changes for {target.value}",
        extra={"org_id": org_id, "user_id": actor.user_id, "role": target.value},
    )

    outcome = _invalidate_role_sessions(invalidator, org_id, target)

    return BatchUpdateResult(
        success=True,
        message=(
            f"{pluralize(len(rows), 'change')} applied to {target.value} role. "
            f"{pluralize(outcome.affected_users, 'user')} will be prompted to re-login."
        ),
        changes_applied=len(rows),
        no_op_count=no_op_count,
        skipped_keys=skipped,
        affected_users=outcome.affected_users,
        affected_sessions=outcome.affected_sessions,
    )


def _set_capability(db, actor, org_id, role, capability_key, granted, invalidator):
    result = apply_changes(
        db, actor, org_id, role,
        [CapabilityChange(capability_key=capability_key, granted=granted)],
        invalidator=invalidator,
    )
    if not result.success and result.skipped_keys:
        result.message = "Capability not found"
    elif result.success and result.changes_applied:
        verb = "granted to" if granted else "revoked from"
        result.message = f"Capability '{capability_key}' {verb} {parse_role(role).value}"
    return result


def grant(db: Session, actor: Optional[ActorClaims], org_id: str, role: RoleLike, capability_key: str,
          invalidator: Optional[SessionInvalidator] = None) -> BatchUpdateResult:
    """Grant one capability to a role (override granted=True)."""
    return _set_capability(db, actor, org_id, role, capability_key, True, invalidator)


def revoke(db: Session, actor: Optional[ActorClaims], org_id: str, role: RoleLike, capability_key: str,
           invalidator: Optional[SessionInvalidator] = None) -> BatchUpdateResult:
    """Revoke one capability from a role (override granted=False)."""
    return _set_capability(db, actor, org_id, role, capability_key, False, invalidator)


@returns_result(ResetResult, "role reset")
def reset_role(
    db: Session,
    actor: Optional[ActorClaims],
    org_id: str,
    role: RoleLike,
    invalidator: Optional[SessionInvalidator] = None,
) -> ResetResult:
    """
    Remove every override for a role, restoring hierarchy defaults.

    Never tier-gated: removing customizations is allowed on any plan.
    Resetting a role without overrides succeeds and deletes nothing.
    """
    target = _authorize(actor, org_id, role, "reset")

    deleted = delete_role_overrides(db, org_id, target)
    db.commit()
    db.expire_all()

    logger.info(
        f"Role reset to defaults: {target.value} ({deleted} overrides removed)",
        extra={"org_id": org_id, "user_id": actor.user_id, "role": target.value},
    )

    outcome = InvalidationOutcome()
    if deleted:
        outcome = _invalidate_role_sessions(invalidator, org_id, target)

    return ResetResult(
        success=True,
        message=f"{target.value} role reset to default capabilities",
        deleted_count=deleted,
        affected_users=outcome.affected_users,
        affected_sessions=outcome.affected_sessions,
    )
