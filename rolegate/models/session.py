"""
User Session Model

One row per issued access token. Forced logout revokes rows here; the
auth dependency refuses tokens whose session is revoked or expired.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from datetime import datetime
from rolegate.database import Base
import uuid


class UserSession(Base):
    __tablename__ = "user_sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    # Denormalized from the user so org-wide revocation needs no join
    org_id = Column(
        String(36),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    revoked_at = Column(DateTime, nullable=True)
    revoked_reason = Column(String(50), nullable=True)  # role_capabilities_changed, forced_logout_user, ...

    user = relationship("User", back_populates="sessions")

    __table_args__ = (
        Index('idx_session_org_revoked', 'org_id', 'revoked_at'),
    )

    def __repr__(self):
        return f"<UserSession {self.id} user={self.user_id}>"

    def is_active(self, now: datetime = None) -> bool:
        now = now or datetime.utcnow()
        return self.revoked_at is None and self.expires_at > now
