"""
Subscription Models

An organization has at most one subscription row pointing at a tier.
The tier decides whether the organization may customize role
capabilities. Billing sync writes these rows; this service only reads them.
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Integer, select
from sqlalchemy.orm import relationship, Session
from datetime import datetime
from rolegate.database import Base
import logging
import uuid

logger = logging.getLogger(__name__)

# Statuses that count as a live subscription for tier checks
ACTIVE_SUBSCRIPTION_STATUSES = ("active", "trialing")


class SubscriptionTier(Base):
    __tablename__ = "subscription_tiers"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    name = Column(String(50), unique=True, nullable=False)
    allows_custom_permissions = Column(Boolean, default=False, nullable=False)

    # NULL = unlimited
    max_projects = Column(Integer, nullable=True)
    max_team_members = Column(Integer, nullable=True)

    def __repr__(self):
        return f"<SubscriptionTier {self.name}>"


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    org_id = Column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    tier_id = Column(
        String(36),
        ForeignKey("subscription_tiers.id"),
        nullable=False,
    )

    status = Column(String(20), default="active", nullable=False)  # active, trialing, past_due, canceled
    current_period_end = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    organization = relationship("Organization", back_populates="subscription")
    tier = relationship("SubscriptionTier")

    def __repr__(self):
        return f"<Subscription org={self.org_id} status={self.status}>"

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_SUBSCRIPTION_STATUSES


DEFAULT_TIERS = [
    {"name": "free", "allows_custom_permissions": False, "max_projects": 3, "max_team_members": 5},
    {"name": "pro", "allows_custom_permissions": False, "max_projects": 25, "max_team_members": 25},
    {"name": "business", "allows_custom_permissions": True, "max_projects": 100, "max_team_members": 100},
    {"name": "enterprise", "allows_custom_permissions": True, "max_projects": None, "max_team_members": None},
]


def seed_subscription_tiers(db: Session) -> int:
    """Insert the default tiers that don't exist yet. Commits."""
    existing = set(db.scalars(select(SubscriptionTier.name)))
    created = 0
    for tier in DEFAULT_TIERS:
        if tier["name"] not in existing:
            db.add(SubscriptionTier(**tier))
            created += 1
    if created:
        db.commit()
        logger.info(f"Seeded {created} subscription tiers")
    return created
