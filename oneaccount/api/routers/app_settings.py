import json
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from oneaccount.api.deps import get_db, get_services, require_admin
from oneaccount.core.errors import MfaManagementDisabledError
from oneaccount.models import AppSetting
from oneaccount.schemas.app_settings import AppSettingOut, AppSettingsUpdate
from oneaccount.services.container import Services

router = APIRouter(prefix="/app-settings", tags=["app-settings"])


def _to_out(rows: List[AppSetting]) -> List[AppSettingOut]:
    return [AppSettingOut(name=r.name, value=json.loads(r.value), version=r.version) for r in rows]


@router.get("", response_model=List[AppSettingOut])
def get_settings(db: Session = Depends(get_db), services: Services = Depends(get_services)):
    return _to_out(services.settings_manager.get_settings(db))


@router.post("", response_model=List[AppSettingOut], dependencies=[Depends(require_admin)])
def set_settings(body: AppSettingsUpdate, db: Session = Depends(get_db), services: Services = Depends(get_services)):
    if body.mfa is not None and not services.settings_manager.get_mfa_config(db).allow_api_management:
        raise MfaManagementDisabledError()
    return _to_out(services.settings_manager.set_settings(db, body))
