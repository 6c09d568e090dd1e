"""
Tier Gate

Decides whether an organization's subscription allows writing capability
overrides. Only writes are gated: effective-state reads ignore the tier,
so a downgrade freezes existing overrides instead of dropping them.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from rolegate.models.subscription import Subscription, SubscriptionTier

FREE_TIER = "free"
BUSINESS_PLUS_TIERS = ("business", "enterprise")


@dataclass(frozen=True)
class TierCheck:
    allowed: bool
    tier_name: str


@dataclass(frozen=True)
class OrgTierInfo:
    tier_name: str
    allows_custom_permissions: bool
    max_team_members: Optional[int]
    max_projects: Optional[int]
    subscription_status: str
    is_active: bool
    current_period_end: Optional[datetime]

    @property
    def is_business_plus(self) -> bool:
        return self.tier_name in BUSINESS_PLUS_TIERS

    def as_check(self) -> TierCheck:
        return TierCheck(allowed=self.allows_custom_permissions, tier_name=self.tier_name)


FREE_TIER_INFO = OrgTierInfo(
    tier_name=FREE_TIER,
    allows_custom_permissions=False,
    max_team_members=5,
    max_projects=3,
    subscription_status="inactive",
    is_active=False,
    current_period_end=None,
)


def get_org_tier(db: Session, org_id: str) -> OrgTierInfo:
    """
    Tier information for an organization.

    No subscription, or one that isn't active/trialing, resolves to the
    free tier rather than an error.
    """
    row = db.execute(
        select(Subscription, SubscriptionTier)
        .join(SubscriptionTier, SubscriptionTier.id == Subscription.tier_id)
        .where(Subscription.org_id == org_id)
    ).first()

    if row is None:
        return FREE_TIER_INFO

    subscription, tier = row
    if not subscription.is_active:
        return FREE_TIER_INFO

    return OrgTierInfo(
        tier_name=tier.name,
        allows_custom_permissions=bool(tier.allows_custom_permissions),
        max_team_members=tier.max_team_members,
        max_projects=tier.max_projects,
        subscription_status=subscription.status,
        is_active=True,
        current_period_end=subscription.current_period_end,
    )


def can_customize(db: Session, org_id: str) -> TierCheck:
    """Whether the org may write capability overrides, and its tier name."""
    return get_org_tier(db, org_id).as_check()
