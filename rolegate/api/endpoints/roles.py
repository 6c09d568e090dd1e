"""
Role Capability Endpoints

Customization of what each role may do inside the organization.

RBAC:
- Tier check, override list, role preview: admin or higher
- Apply / grant / revoke / reset: owner only (enforced by the service,
  which also returns the user-facing message)

Write routes are plain `def` so FastAPI runs them in its threadpool: they
block on the post-commit forced logout for up to
SESSION_INVALIDATION_TIMEOUT_SECONDS.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from rolegate.database import get_db
from rolegate.models.organization import Organization
from rolegate.core.roles import AppRole, parse_role
from rolegate.core.overrides import list_org_overrides
from rolegate.core.resolver import get_effective_capabilities
from rolegate.core.security import ActorClaims
from rolegate.core.tier_gate import get_org_tier
from rolegate.schemas.capability import (
    BatchUpdateRequest,
    EffectiveCapabilityResponse,
    OverrideListResponse,
    OverrideResponse,
    RoleCapabilitiesResponse,
    TierCheckResponse,
)
from rolegate.schemas.results import BatchUpdateResult, ResetResult
from rolegate.api.deps import (
    get_current_claims,
    get_current_org,
    get_session_invalidator,
    require_roles,
)
from rolegate.api.responses import result_response
from rolegate.services import customization
from rolegate.services.sessions import SessionInvalidator
router = APIRouter(prefix="/roles", tags=["roles"])

require_admin = require_roles(AppRole.ADMIN)


@router.get("/customization", response_model=TierCheckResponse)
async def get_customization_status(
    claims: ActorClaims = Depends(require_admin),
    organization: Organization = Depends(get_current_org),
    db: Session = Depends(get_db)
):
    """Whether this organization's tier allows customizing role capabilities."""
    tier = get_org_tier(db, organization.id)
    check = tier.as_check()
    return TierCheckResponse(
        can_customize=check.allowed,
        tier=check.tier_name,
        is_business_plus=tier.is_business_plus,
    )


@router.get("/overrides", response_model=OverrideListResponse)
async def list_overrides(
    claims: ActorClaims = Depends(require_admin),
    organization: Organization = Depends(get_current_org),
    db: Session = Depends(get_db)
):
    """All custom capability overrides in this organization."""
    rows = list_org_overrides(db, organization.id)
    overrides = [
        OverrideResponse(
            role=override.role,
            capability_key=capability.key,
            capability_name=capability.name,
            category=capability.category,
            granted=override.granted,
            updated_by=override.updated_by,
            updated_at=override.updated_at,
        )
        for override, capability in rows
    ]
    return OverrideListResponse(overrides=overrides, total=len(overrides))


@router.get("/{role}/capabilities", response_model=RoleCapabilitiesResponse)
async def preview_role_capabilities(
    role: str,
    claims: ActorClaims = Depends(require_admin),
    organization: Organization = Depends(get_current_org),
    db: Session = Depends(get_db)
):
    """Effective state of every capability for one role, marking overrides."""
    target = parse_role(role)
    if target is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown role: {role}")

    capabilities = get_effective_capabilities(db, organization.id, target)
    return RoleCapabilitiesResponse(
        role=target,
        customizable=target != AppRole.OWNER,
        capabilities=[EffectiveCapabilityResponse.model_validate(c) for c in capabilities],
    )


@router.post("/{role}/capabilities", response_model=BatchUpdateResult)
def batch_update_role_capabilities(
    role: str,
    request: BatchUpdateRequest,
    claims: ActorClaims = Depends(get_current_claims),
    organization: Organization = Depends(get_current_org),
    invalidator: SessionInvalidator = Depends(get_session_invalidator),
    db: Session = Depends(get_db)
):
    """Apply several grant/revoke toggles to one role at once."""
    result = customization.apply_changes(
        db, claims, organization.id, role, request.changes, invalidator=invalidator
    )
    return result_response(result)


@router.post("/{role}/capabilities/{capability_key}/grant", response_model=BatchUpdateResult)
def grant_capability(
    role: str,
    capability_key: str,
    claims: ActorClaims = Depends(get_current_claims),
    organization: Organization = Depends(get_current_org),
    invalidator: SessionInvalidator = Depends(get_session_invalidator),
    db: Session = Depends(get_db)
):
    result = customization.grant(db, claims, organization.id, role, capability_key, invalidator=invalidator)
    return result_response(result)


@router.post("/{role}/capabilities/{capability_key}/revoke", response_model=BatchUpdateResult)
def revoke_capability(
    role: str,
    capability_key: str,
    claims: ActorClaims = Depends(get_current_claims),
    organization: Organization = Depends(get_current_org),
    invalidator: SessionInvalidator = Depends(get_session_invalidator),
    db: Session = Depends(get_db)
):
    result = customization.revoke(db, claims, organization.id, role, capability_key, invalidator=invalidator)
    return result_response(result)


@router.post("/{role}/reset", response_model=ResetResult)
def reset_role_to_defaults(
    role: str,
    claims: ActorClaims = Depends(get_current_claims),
    organization: Organization = Depends(get_current_org),
    invalidator: SessionInvalidator = Depends(get_session_invalidator),
    db: Session = Depends(get_db)
):
    """Remove every override for a role. Allowed on any tier."""
    result = customization.reset_role(db, claims, organization.id, role, invalidator=invalidator)
    return result_response(result)
