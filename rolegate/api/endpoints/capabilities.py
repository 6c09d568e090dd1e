"""
Capability Catalog Endpoints

RBAC:
- Catalog: admin or higher
- Own capabilities: any authenticated member
"""
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from rolegate.database import get_db
from rolegate.models.capability import Capability
from rolegate.core.roles import AppRole
from rolegate.core.resolver import granted_capability_keys
from rolegate.core.security import ActorClaims
from rolegate.schemas.capability import CapabilityResponse, MyCapabilitiesResponse
from rolegate.api.deps import get_current_claims, require_roles

router = APIRouter(prefix="/capabilities", tags=["capabilities"])


@router.get("", response_model=List[CapabilityResponse])
async def list_capabilities(
    claims: ActorClaims = Depends(require_roles(AppRole.ADMIN)),
    db: Session = Depends(get_db)
):
    """All capabilities, ordered by category then name."""
    return db.scalars(select(Capability).order_by(Capability.category, Capability.name)).all()


@router.get("/me", response_model=MyCapabilitiesResponse)
async def my_capabilities(
    claims: ActorClaims = Depends(get_current_claims),
    db: Session = Depends(get_db)
):
    """Capability keys the caller currently holds, overrides applied."""
    keys = granted_capability_keys(db, claims.org_id, claims.role)
    return MyCapabilitiesResponse(role=claims.role, capabilities=sorted(keys))
