"""
Capability Models

capabilities: the global catalog, seeded from rolegate.core.capabilities.
org_role_capabilities: per-organization overrides of a role's default
access. One row per (org, role, capability); the unique constraint is the
upsert conflict target.
"""
from sqlalchemy import Column, String, Text, Boolean, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from rolegate.database import Base
from rolegate.models.user import RoleType
import uuid


class Capability(Base):
    __tablename__ = "capabilities"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    key = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=False, index=True)

    # NULL means owner-only by default (see has_default_access)
    min_role_required = Column(RoleType, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    overrides = relationship("OrgRoleCapability", back_populates="capability", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Capability {self.key}>"


class OrgRoleCapability(Base):
    __tablename__ = "org_role_capabilities"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    org_id = Column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    role = Column(RoleType, nullable=False)
    capability_id = Column(
        String(36),
        ForeignKey("capabilities.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    granted = Column(Boolean, nullable=False)

    # Last writer metadata
    updated_by = Column(String(36), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    capability = relationship("Capability", back_populates="overrides")

    __table_args__ = (
        UniqueConstraint('org_id', 'role', 'capability_id', name='uq_org_role_capability'),
        # Resolver reads and reset deletes by (org, role)
        Index('idx_org_role_capability_org_role', 'org_id', 'role'),
    )

    def __repr__(self):
        return f"<OrgRoleCapability org={self.org_id} role={self.role} cap={self.capability_id} granted={self.granted}>"
