"""
Capability Schemas

Request/response models for capability and role endpoints.
"""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from rolegate.core.roles import AppRole


class CapabilityChange(BaseModel):
    """One toggle: grant (True) or revoke (False) a capability for a role."""
    capability_key: str = Field(..., min_length=1, max_length=100)
    granted: bool


class BatchUpdateRequest(BaseModel):
    changes: List[CapabilityChange]

    class Config:
        json_schema_extra = {
            "example": {
                "changes": [
                    {"capability_key": "projects.delete", "granted": True},
                    {"capability_key": "reports.export", "granted": False},
                ]
            }
        }


class CapabilityResponse(BaseModel):
    """Catalog entry."""
    id: str
    key: str
    name: str
    description: Optional[str]
    category: str
    min_role_required: Optional[AppRole]

    class Config:
        from_attributes = True


class EffectiveCapabilityResponse(BaseModel):
    key: str
    name: str
    category: str
    granted: bool
    default_granted: bool
    source: str

    class Config:
        from_attributes = True


class RoleCapabilitiesResponse(BaseModel):
    """Role preview: effective state of every capability for one role."""
    role: AppRole
    customizable: bool
    capabilities: List[EffectiveCapabilityResponse]


class MyCapabilitiesResponse(BaseModel):
    role: AppRole
    capabilities: List[str]


class OverrideResponse(BaseModel):
    role: AppRole
    capability_key: str
    capability_name: str
    category: str
    granted: bool
    updated_by: Optional[str]
    updated_at: datetime


class OverrideListResponse(BaseModel):
    overrides: List[OverrideResponse]
    total: int


class TierCheckResponse(BaseModel):
    can_customize: bool
    tier: str
    is_business_plus: bool
