"""
Database Models

Everything except the capability catalog is scoped by org_id.
"""
from rolegate.models.organization import Organization
from rolegate.models.user import User
from rolegate.models.session import UserSession
from rolegate.models.capability import Capability, OrgRoleCapability
from rolegate.models.subscription import Subscription, SubscriptionTier

__all__ = [
    "Organization",
    "User",
    "UserSession",
    "Capability",
    "OrgRoleCapability",
    "Subscription",
    "SubscriptionTier",
]
