from typing import List, Optional

from pydantic import BaseModel, Field

from oneaccount.models.app_setting import AppTheme
from oneaccount.models.verification_factor import VerificationMethod


class MfaPolicy(BaseModel):
    """The stored MFA policy as a value; version increments on every write."""

    enabled: bool = False
    steps: List[str] = Field(default_factory=list)
    allow_api_management: bool = True
    version: int = 0

    def value(self) -> dict:
        return self.model_dump(exclude={"version"})


class MfaSettingsUpdate(BaseModel):
    enabled: Optional[bool] = None
    steps: Optional[List[VerificationMethod]] = Field(None, min_length=1)
    allow_api_management: Optional[bool] = None


class AppSettingsUpdate(BaseModel):
    theme: Optional[AppTheme] = None
    mfa: Optional[MfaSettingsUpdate] = None


class AppSettingOut(BaseModel):
    name: str
    value: dict | str
    version: int
