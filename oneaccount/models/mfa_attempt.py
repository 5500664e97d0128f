import uuid

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from oneaccount.core.time import utcnow
from oneaccount.db.base import Base


class MfaAttempt(Base):
    """One login's progress through the ordered MFA steps."""
    __tablename__ = "mfa_attempts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(255), nullable=False)
    # [{"name": ..., "completed": bool, "type": "app"|"delivery", "enrolled": bool}]
    steps = Column(JSON, nullable=False, default=list)
    auth_metadata = Column(JSON, nullable=True)
    expires_at_utc = Column(DateTime(timezone=True), nullable=False, index=True)
    created_at_utc = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    user = relationship("User", back_populates="mfa_attempts")
