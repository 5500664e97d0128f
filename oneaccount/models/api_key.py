"""API keys: long-lived machine credentials with a permission set."""
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from oneaccount.core.time import as_aware, utcnow
from oneaccount.db.base import Base


class ApiKey(Base):
    __tablename__ = "api_keys"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    key_hash = Column(String(255), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # null means the key never expires
    expires_at_utc = Column(DateTime(timezone=True), nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    deleted_at_utc = Column(DateTime(timezone=True), nullable=True)
    created_at_utc = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at_utc = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="api_keys")
    permissions = relationship("ApiKeyPermission", back_populates="api_key", cascade="all, delete-orphan")

    def is_expired(self) -> bool:
        if self.expires_at_utc is None:
            return False
        return utcnow() >= as_aware(self.expires_at_utc)

    @property
    def permission_names(self) -> list[str]:
        return sorted(p.permission for p in self.permissions)

    def has_any_permission(self, *names: str) -> bool:
        granted = {p.permission for p in self.permissions}
        return any(name in granted for name in names)


class ApiKeyPermission(Base):
    __tablename__ = "api_key_permissions"
    __table_args__ = (UniqueConstraint("api_key_id", "permission", name="uq_api_key_permission"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    api_key_id = Column(String(36), ForeignKey("api_keys.id", ondelete="CASCADE"), nullable=False, index=True)
    permission = Column(String(128), nullable=False)

    api_key = relationship("ApiKey", back_populates="permissions")
