import enum

from sqlalchemy import Column, DateTime, Integer, String, Text

from oneaccount.core.time import utcnow
from oneaccount.db.base import Base


class AppTheme(str, enum.Enum):
    LIGHT = "light"
    DARK = "dark"


class AppSetting(Base):
    """One row per named setting; value is a JSON document."""
    __tablename__ = "app_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(128), unique=True, nullable=False)
    value = Column(Text, nullable=False)
    version = Column(Integer, default=1, nullable=False)
    updated_at_utc = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
