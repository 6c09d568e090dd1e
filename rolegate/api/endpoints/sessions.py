"""
Forced Logout Endpoints

RBAC:
- Organization-wide logout: admin or higher
- Clearing the organization-wide logout cutoff: owner or superadmin
- Single user logout: requires the security.manage_sessions capability
  (superadmin by default, customizable per organization) on top of the
  service's admin-or-higher floor
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rolegate.database import get_db
from rolegate.models.organization import Organization
from rolegate.core.security import ActorClaims
from rolegate.schemas.results import ActionResult, ForceLogoutResult
from rolegate.api.deps import get_current_claims, get_current_org, require_capability
from rolegate.api.responses import result_response
from rolegate.services import sessions

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("/force-logout", response_model=ForceLogoutResult)
async def force_logout_organization(
    claims: ActorClaims = Depends(get_current_claims),
    organization: Organization = Depends(get_current_org),
    db: Session = Depends(get_db)
):
    """Log out every member of the organization."""
    result = sessions.force_logout_organization(db, claims, organization.id)
    return result_response(result)


@router.post("/force-logout/{user_id}", response_model=ForceLogoutResult)
async def force_logout_user(
    user_id: str,
    claims: ActorClaims = Depends(require_capability("security.manage_sessions")),
    organization: Organization = Depends(get_current_org),
    db: Session = Depends(get_db)
):
    """Log out one member of the organization."""
    result = sessions.force_logout_user(db, claims, organization.id, user_id)
    return result_response(result)


@router.delete("/force-logout", response_model=ActionResult)
async def clear_organization_force_logout(
    claims: ActorClaims = Depends(get_current_claims),
    organization: Organization = Depends(get_current_org),
    db: Session = Depends(get_db)
):
    """Lift the organization-wide logout cutoff (owner or superadmin)."""
    result = sessions.clear_organization_force_logout(db, claims, organization.id)
    return result_response(result)
