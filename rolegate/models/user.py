"""
User Model

Users belong to exactly one organization and hold one role in it.

IMPORTANT: org_id is the isolation field. Every query MUST filter by it.
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from rolegate.database import Base
from rolegate.core.roles import AppRole
import uuid


# Shared column type so every role column stores the enum *values*
# ("view-only", not "VIEW_ONLY") under a single named type.
RoleType = SQLEnum(
    AppRole,
    name="app_role",
    values_callable=lambda roles: [r.value for r in roles],
    validate_strings=True,
)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    org_id = Column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    email = Column(String(255), nullable=False, index=True)
    full_name = Column(String(255), nullable=True)

    role = Column(RoleType, default=AppRole.MEMBER, nullable=False, index=True)

    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    last_login_at = Column(DateTime, nullable=True)

    organization = relationship("Organization", back_populates="users")
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        # Same email may exist in different organizations
        Index('idx_user_org_email', 'org_id', 'email', unique=True),
        # Forced logout by role selects on this
        Index('idx_user_org_role', 'org_id', 'role'),
    )

    def __repr__(self):
        return f"<User {self.email} (org={self.org_id})>"
