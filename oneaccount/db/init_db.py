import logging

from sqlalchemy.orm import Session

from oneaccount.core import security
from oneaccount.models import AppSetting, AppTheme, User, UserRole
from oneaccount.services.app_settings_service import AppSettingsManager

logger = logging.getLogger(__name__)

DEV_ADMIN_EMAIL = "admin@example.com"


def seed_settings(db: Session, settings_manager: AppSettingsManager):
    """Default theme and a disabled MFA policy, only on an empty table."""
    if db.query(AppSetting).first():
        return
    settings_manager.set_theme(db, AppTheme.LIGHT)
    settings_manager.set_mfa_config(db, False, True)
    logger.info("Seeded default app settings")


def seed_data(db: Session):
    """Create a development admin so a fresh database can be logged into."""
    if db.query(User).filter(User.email == DEV_ADMIN_EMAIL).first():
        return

    admin = User(
        email=DEV_ADMIN_EMAIL,
        name="Admin",
        role=UserRole.ADMIN,
        password_hash=security.hash_password("ChangeMe123!"),
        is_active=True,
    )
    db.add(admin)
    db.commit()
    logger.info(f"Seeded development admin {DEV_ADMIN_EMAIL}")
