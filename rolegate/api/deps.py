"""
API Dependencies

Reusable FastAPI dependencies for authentication and authorization.

The bearer token's claims are validated into ActorClaims here and nowhere
else; routes and services only ever see the validated model.
"""
from datetime import datetime
from typing import Callable
from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from rolegate.database import get_db
from rolegate.models.organization import Organization
from rolegate.models.session import UserSession
from rolegate.core.roles import RoleLike, has_access
from rolegate.core.resolver import get_effective_state
from rolegate.core.security import ActorClaims, decode_access_token
from rolegate.core.exceptions import AuthenticationError, PermissionDenied, TenantIsolationError
from rolegate.services.sessions import SessionInvalidator
from rolegate.utils.logging import log_security_event
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer()


def get_current_org(request: Request) -> Organization:
    """
    Organization resolved by TenantMiddleware.

    Always present on tenant routes; its absence means the middleware
    did not run.
    """
    organization = getattr(request.state, "organization", None)
    if not organization:
        logger.error("No organization in request state - middleware may have failed")
        raise TenantIsolationError("Organization context not available")
    return organization


async def get_current_claims(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
    organization: Organization = Depends(get_current_org)
) -> ActorClaims:
    """
    Validated claims of the caller.

    1. Verifies the JWT signature and expiry
    2. Validates the payload into ActorClaims (fails closed)
    3. Verifies the token belongs to the request's organization
    4. Verifies the session has not been revoked by a forced logout
    5. Verifies the session postdates any organization-wide logout cutoff
    """
    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise AuthenticationError("Invalid or expired token")

    claims = ActorClaims.from_token_payload(payload)
    if claims is None:
        raise AuthenticationError("Invalid token payload")

    if claims.org_id != organization.id:
        log_security_event(
            "tenant_isolation_violation",
            {"user_id": claims.user_id, "token_org_id": claims.org_id, "org_id": organization.id},
            logger,
        )
        raise TenantIsolationError("Token organization mismatch")

    if not claims.session_id:
        raise AuthenticationError("Token has no session")

    session = db.get(UserSession, claims.session_id)
    if session is None or session.user_id != claims.user_id:
        raise AuthenticationError("Session not found")
    if not session.is_active(datetime.utcnow()):
        # Forced logout or expiry; the client has to log in again
        raise AuthenticationError("Session has been revoked, please log in again")
    if organization.force_logout_after and session.created_at < organization.force_logout_after:
        # Opened before an organization-wide logout that is still in force
        raise AuthenticationError("Organization sessions were reset, please log in again")

    return claims


def get_session_invalidator() -> SessionInvalidator:
    """Post-commit forced logout used by capability writes. Overridden in tests."""
    return SessionInvalidator()


def require_roles(*roles: RoleLike) -> Callable:
    """
    Dependency factory: caller's role must be at or above the lowest of `roles`.
    """
    async def dependency(claims: ActorClaims = Depends(get_current_claims)) -> ActorClaims:
        if not has_access(claims.role, roles):
            raise PermissionDenied(
                f"This action requires one of: {', '.join(str(getattr(r, 'value', r)) for r in roles)}"
            )
        return claims
    return dependency


def require_capability(capability_key: str) -> Callable:
    """
    Dependency factory: caller's role must hold `capability_key` in this org,
    overrides included.
    """
    async def dependency(
        claims: ActorClaims = Depends(get_current_claims),
        db: Session = Depends(get_db)
    ) -> ActorClaims:
        if not get_effective_state(db, claims.org_id, claims.role, capability_key):
            raise PermissionDenied(f"Missing capability: {capability_key}")
        return claims
    return dependency
