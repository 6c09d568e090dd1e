"""
Organization Model

The organization is the tenant isolation boundary. Users, sessions,
capability overrides and the subscription all hang off it.
"""
from sqlalchemy import Column, String, Boolean, DateTime, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from rolegate.database import Base
import uuid


class Organization(Base):
    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    name = Column(String(255), nullable=False)
    slug = Column(String(100), unique=True, nullable=False, index=True)

    # Subdomain for tenant routing (e.g., acme.rolegate.io)
    subdomain = Column(String(63), unique=True, nullable=False, index=True)

    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Set by an org-wide forced logout; informational only, the session
    # rows carry the actual revocation.
    force_logout_after = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    users = relationship("User", back_populates="organization", cascade="all, delete-orphan")
    subscription = relationship(
        "Subscription",
        back_populates="organization",
        uselist=False,
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index('idx_org_active_subdomain', 'is_active', 'subdomain'),
    )

    def __repr__(self):
        return f"<Organization {self.slug}>"
