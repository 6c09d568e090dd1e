"""
Session Invalidation

Forced logout revokes rows in user_sessions; the auth dependency refuses
any token whose session is revoked.

Capability changes only log out users holding the affected role in the
affected organization, not the whole organization. That step runs after
the override write has committed, through SessionInvalidator: its own
database session, its own error channel, and a timeout. A failure there
never undoes the committed overrides; affected users simply keep their
old effective state until their token expires.
"""
import functools
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from rolegate.config import get_settings
from rolegate.core.exceptions import (
    AuthenticationRequired,
    AuthorizationDenied,
    InvalidationFailed,
    ValidationFailed,
)
from rolegate.core.roles import AppRole, has_access
from rolegate.core.security import ActorClaims
from rolegate.database import SessionLocal
from rolegate.models.organization import Organization
from rolegate.models.session import UserSession
from rolegate.models.user import User
from rolegate.schemas.results import ActionResult, ForceLogoutResult
from rolegate.services.base import pluralize, returns_result
from rolegate.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)
settings = get_settings()

REASON_CAPABILITIES_CHANGED = "role_capabilities_changed"
REASON_FORCED_USER = "forced_logout_user"
REASON_FORCED_ORG = "forced_logout_organization"

# Roles allowed to force logout others
SESSION_MANAGER_ROLES = (AppRole.ADMIN, AppRole.SUPERADMIN, AppRole.OWNER)
# Roles allowed to lift an organization-wide logout
FORCE_LOGOUT_CLEARER_ROLES = (AppRole.SUPERADMIN, AppRole.OWNER)


@dataclass(frozen=True)
class InvalidationOutcome:
    affected_users: int = 0
    affected_sessions: int = 0


def open_session(db: Session, user: User, ttl: Optional[timedelta] = None) -> UserSession:
    """Register a session for a freshly issued token. Commits."""
    ttl = ttl or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    session = UserSession(
        user_id=user.id,
        org_id=user.org_id,
        expires_at=datetime.utcnow() + ttl,
    )
    db.add(session)
    user.last_login_at = datetime.utcnow()
    db.commit()
    db.refresh(session)
    return session


def _revoke_active_sessions(db: Session, org_id: str, reason: str, role: AppRole = None,
                            user_id: str = None) -> InvalidationOutcome:
    """Revoke active sessions in an org, optionally narrowed to a role or user. Does not commit."""
    now = datetime.utcnow()
    query = (
        select(UserSession.id, UserSession.user_id)
        .where(
            UserSession.org_id == org_id,
            UserSession.revoked_at.is_(None),
            UserSession.expires_at > now,
        )
    )
    if role is not None:
        query = query.join(User, User.id == UserSession.user_id).where(
            User.org_id == org_id,
            User.role == role,
        )
    if user_id is not None:
        query = query.where(UserSession.user_id == user_id)

    rows = db.execute(query).all()
    if not rows:
        return InvalidationOutcome()

    session_ids = [row.id for row in rows]
    db.execute(
        update(UserSession)
        .where(UserSession.id.in_(session_ids))
        .values(revoked_at=now, revoked_reason=reason)
        .execution_options(synchronize_session=False)
    )
    return InvalidationOutcome(
        affected_users=len({row.user_id for row in rows}),
        affected_sessions=len(session_ids),
    )


def force_logout_users_by_role(db: Session, org_id: str, role: AppRole,
                               reason: str = REASON_CAPABILITIES_CHANGED) -> InvalidationOutcome:
    """Revoke active sessions of users holding `role` in `org_id` only. Does not commit."""
    return _revoke_active_sessions(db, org_id, reason, role=role)


class SessionInvalidator:
    """
    Post-commit forced logout for one role.

    Runs on a worker thread with its own database session so the caller's
    transaction is never involved, and gives up after `timeout` seconds.
    Every failure is raised as InvalidationFailed.

    A timed-out worker is not cancelled: it may still revoke the sessions
    after the caller has reported zero affected users. The late outcome is
    logged when the worker finishes.
    """

    def __init__(self, session_factory=None, timeout: float = None):
        self.session_factory = session_factory or SessionLocal
        self.timeout = timeout if timeout is not None else settings.SESSION_INVALIDATION_TIMEOUT_SECONDS

    def invalidate_role(self, org_id: str, role: AppRole) -> InvalidationOutcome:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="session-invalidation")
        try:
            future = executor.submit(self._run, org_id, role)
            try:
                return future.result(timeout=self.timeout)
            except FutureTimeoutError as exc:
                future.add_done_callback(functools.partial(_log_late_outcome, org_id, role))
                raise InvalidationFailed(f"Forced logout timed out after {self.timeout}s") from exc
        except InvalidationFailed:
            raise
        except Exception as exc:
            raise InvalidationFailed(f"Forced logout failed: {exc}") from exc
        finally:
            executor.shutdown(wait=False)

    def _run(self, org_id: str, role: AppRole) -> InvalidationOutcome:
        db = self.session_factory()
        try:
            outcome = force_logout_users_by_role(db, org_id, role)
            db.commit()
            return outcome
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()


def _log_late_outcome(org_id: str, role: AppRole, future) -> None:
    """Done-callback for a worker that outlived its timeout."""
    extra = {"org_id": org_id, "role": role.value}
    exc = future.exception()
    if exc is not None:
        logger.error(f"Late forced logout for role {role.value} failed: {exc}", extra=extra)
        return
    outcome = future.result()
    logger.warning(
        f"Late forced logout for role {role.value} completed after timeout: "
        f"{pluralize(outcome.affected_users, 'user')} logged out",
        extra={**extra, "affected_users": outcome.affected_users,
               "affected_sessions": outcome.affected_sessions},
    )


def _require_session_manager(actor: ActorClaims, org_id: str, action: str) -> None:
    """
    Admin-or-higher floor for forced logout.

    Always applies, on top of any capability the route checks: granting
    security.manage_sessions to a lower role does not let it log others out.
    """
    if actor is None:
        raise AuthenticationRequired("Unauthorized - please log in")
    if actor.org_id != org_id or not has_access(actor.role, SESSION_MANAGER_ROLES):
        log_security_event(
            f"{action}_unauthorized",
            {"user_id": actor.user_id, "role": actor.role.value, "org_id": org_id},
            logger,
        )
        raise AuthorizationDenied("Unauthorized - insufficient permissions")


@returns_result(ForceLogoutResult, "organization forced logout")
def force_logout_organization(db: Session, actor: ActorClaims, org_id: str) -> ForceLogoutResult:
    """Revoke every active session in the organization, the caller's included.

    Also stamps organizations.force_logout_after: until it is cleared, any
    session opened before that instant is refused by the auth dependency.
    """
    _require_session_manager(actor, org_id, "force_logout_organization")

    outcome = _revoke_active_sessions(db, org_id, REASON_FORCED_ORG)
    organization = db.get(Organization, org_id)
    if organization is not None:
        organization.force_logout_after = datetime.utcnow()
    db.commit()

    log_security_event(
        "forced_logout",
        {"user_id": actor.user_id, "org_id": org_id, "scope": "organization",
         "affected_users": outcome.affected_users},
        logger,
    )
    return ForceLogoutResult(
        success=True,
        message=f"Successfully forced logout for {pluralize(outcome.affected_users, 'user')}",
        affected_users=outcome.affected_users,
        affected_sessions=outcome.affected_sessions,
    )


@returns_result(ForceLogoutResult, "user forced logout")
def force_logout_user(db: Session, actor: ActorClaims, org_id: str, target_user_id: str) -> ForceLogoutResult:
    """
    Revoke every active session of one user.

    Admins cannot log out owners or superadmins, and nobody can reach
    users of another organization.
    """
    _require_session_manager(actor, org_id, "force_logout_user")

    target = db.get(User, target_user_id)
    if target is None:
        raise ValidationFailed("User not found")
    if target.org_id != org_id:
        log_security_event(
            "force_logout_user_cross_org_attempt",
            {"user_id": actor.user_id, "target_user_id": target_user_id, "org_id": org_id},
            logger,
        )
        raise AuthorizationDenied("Cannot force logout users from other organizations")
    if actor.role == AppRole.ADMIN and target.role in (AppRole.OWNER, AppRole.SUPERADMIN):
        raise AuthorizationDenied("Cannot force logout owners or superadmins")

    outcome = _revoke_active_sessions(db, org_id, REASON_FORCED_USER, user_id=target.id)
    db.commit()

    log_security_event(
        "forced_logout",
        {"user_id": actor.user_id, "org_id": org_id, "target_user_id": target.id,
         "affected_sessions": outcome.affected_sessions},
        logger,
    )
    return ForceLogoutResult(
        success=True,
        message=f"Successfully forced logout for {target.email}",
        affected_users=outcome.affected_users,
        affected_sessions=outcome.affected_sessions,
    )


@returns_result(ActionResult, "clear organization forced logout")
def clear_organization_force_logout(db: Session, actor: ActorClaims, org_id: str) -> ActionResult:
    """
    Lift the organization-wide logout cutoff. Owners and superadmins only.

    Sessions already revoked stay revoked; members log in again as usual.
    """
    if actor is None:
        raise AuthenticationRequired("Unauthorized - please log in")
    if actor.org_id != org_id or actor.role not in FORCE_LOGOUT_CLEARER_ROLES:
        log_security_event(
            "clear_organization_force_logout_unauthorized",
            {"user_id": actor.user_id, "role": actor.role.value, "org_id": org_id},
            logger,
        )
        raise AuthorizationDenied("Unauthorized - only owners can clear force logout")

    organization = db.get(Organization, org_id)
    if organization is None:
        raise ValidationFailed("Organization ID not found")
    organization.force_logout_after = None
    db.commit()

    logger.info(
        "Organization force logout cleared",
        extra={"user_id": actor.user_id, "org_id": org_id},
    )
    return ActionResult(success=True, message="Force logout cleared - users can now log in")
