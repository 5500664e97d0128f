"""
Named application settings.

Values are JSON documents stored in app_settings. Every write bumps the row's
version; MFA updates are merged against the stored policy under a row lock.
"""
import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from oneaccount.core.errors import InvalidSettingsError
from oneaccount.models import AppSetting, AppTheme
from oneaccount.schemas.app_settings import AppSettingsUpdate, MfaPolicy

from .verification.registry import VerificationMethodRegistry

logger = logging.getLogger(__name__)

THEME = "theme"
MFA = "mfa"


class AppSettingsManager:
    def __init__(self, registry: VerificationMethodRegistry):
        self.registry = registry

    def _get(self, db: Session, name: str, lock: bool = False) -> Optional[AppSetting]:
        query = db.query(AppSetting).filter(AppSetting.name == name)
        if lock:
            query = query.with_for_update().populate_existing()
        return query.first()

    def _write(self, db: Session, name: str, value: Any, row: Optional[AppSetting] = None) -> AppSetting:
        """Stage a write; the caller commits."""
        if row is None:
            row = self._get(db, name, lock=True)
        if row is None:
            row = AppSetting(name=name, value=json.dumps(value), version=1)
        else:
            row.value = json.dumps(value)
            row.version = (row.version or 0) + 1
        db.add(row)
        return row

    def _clean_steps(self, steps: Iterable[Any]) -> List[str]:
        cleaned = list(dict.fromkeys(getattr(s, "value", s) for s in steps))
        unknown = [s for s in cleaned if s not in self.registry]
        if unknown:
            raise InvalidSettingsError(f"Unsupported MFA steps: {', '.join(unknown)}")
        return cleaned

    # theme

    def set_theme(self, db: Session, theme: AppTheme | str) -> bool:
        try:
            theme = AppTheme(theme)
        except ValueError:
            raise InvalidSettingsError(f"Unsupported theme: {theme}") from None
        self._write(db, THEME, theme.value)
        db.commit()
        return True

    def get_theme(self, db: Session) -> str:
        row = self._get(db, THEME)
        return json.loads(row.value) if row else AppTheme.LIGHT.value

    # mfa

    def set_mfa_config(self, db: Session, enabled: bool, allow_api_management: bool = True, *methods) -> bool:
        value = MfaPolicy(
            enabled=enabled,
            steps=self._clean_steps(methods),
            allow_api_management=allow_api_management,
        ).value()
        self._write(db, MFA, value)
        db.commit()
        logger.info(f"MFA policy set: enabled={enabled} steps={value['steps']}")
        return True

    def get_mfa_config(self, db: Session) -> MfaPolicy:
        row = self._get(db, MFA)
        if row is None:
            return MfaPolicy()
        return MfaPolicy(**json.loads(row.value), version=row.version)

    # bulk

    def set_settings(self, db: Session, update: AppSettingsUpdate) -> List[AppSetting]:
        try:
            if update.theme is not None:
                self._write(db, THEME, AppTheme(update.theme).value)

            if update.mfa is not None:
                row = self._get(db, MFA, lock=True)
                current = MfaPolicy(**json.loads(row.value)) if row else MfaPolicy()
                changes: Dict[str, Any] = update.mfa.model_dump(exclude_none=True)
                if "steps" in changes:
                    changes["steps"] = self._clean_steps(changes["steps"])
                merged = current.model_copy(update=changes)
                self._write(db, MFA, merged.value(), row=row)

            db.commit()
        except Exception:
            db.rollback()
            raise
        return self.get_settings(db)

    def get_settings(self, db: Session) -> List[AppSetting]:
        return db.query(AppSetting).order_by(AppSetting.name).all()
