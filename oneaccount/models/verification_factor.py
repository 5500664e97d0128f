"""Verification factors: a user's secret and enrollment state for one MFA method."""
import enum
import uuid

from sqlalchemy import Column, DateTime, Enum, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship

from oneaccount.core.encryption import EncryptedText
from oneaccount.core.time import utcnow
from oneaccount.db.base import Base


class VerificationMethod(str, enum.Enum):
    GOOGLE_AUTHENTICATOR = "google_authenticator"
    EMAIL_CHANNEL = "email_channel"


class MfaStepType(str, enum.Enum):
    APP = "app"
    DELIVERY = "delivery"


class VerificationFactor(Base):
    __tablename__ = "verification_factors"
    __table_args__ = (UniqueConstraint("user_id", "type", name="uq_verification_factor_user_type"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(Enum(VerificationMethod, values_callable=lambda e: [m.value for m in e]), nullable=False)
    secret = Column(EncryptedText, nullable=False)
    # null until an app-based QR code has been shown; delivery methods fill it immediately
    enrolled_at = Column(DateTime(timezone=True), nullable=True)
    created_at_utc = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at_utc = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="verification_factors")
    backup_codes = relationship("VfBackupCode", back_populates="verification_factor", cascade="all, delete-orphan")


class VfBackupCode(Base):
    """Single-use recovery code tied to an app-based verification factor."""
    __tablename__ = "vf_backup_codes"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    verification_factor_id = Column(
        String(36), ForeignKey("verification_factors.id", ondelete="CASCADE"), nullable=False, index=True
    )
    code = Column(EncryptedText, nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    created_at_utc = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    verification_factor = relationship("VerificationFactor", back_populates="backup_codes")
