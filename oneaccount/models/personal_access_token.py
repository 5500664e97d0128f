import enum
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from oneaccount.core.time import utcnow
from oneaccount.db.base import Base


class AuthenticationType(str, enum.Enum):
    PERSISTENT = "persistent"
    JWT = "jwt"
    API_KEY = "api_key"


class PersonalAccessToken(Base):
    """Opaque, revocable session token issued per client."""
    __tablename__ = "personal_access_tokens"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False, default="")
    token_hash = Column(String(255), nullable=False)
    expires_at_utc = Column(DateTime(timezone=True), nullable=True)
    last_used_at_utc = Column(DateTime(timezone=True), nullable=True)
    created_at_utc = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    user = relationship("User", back_populates="access_tokens")
