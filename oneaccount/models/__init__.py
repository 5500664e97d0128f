from .user import User, UserRole
from .verification_factor import MfaStepType, VerificationFactor, VerificationMethod, VfBackupCode
from .mfa_attempt import MfaAttempt
from .personal_access_token import AuthenticationType, PersonalAccessToken
from .api_key import ApiKey, ApiKeyPermission
from .app_setting import AppSetting, AppTheme

__all__ = [
    "User",
    "UserRole",
    "VerificationMethod",
    "MfaStepType",
    "VerificationFactor",
    "VfBackupCode",
    "MfaAttempt",
    "AuthenticationType",
    "PersonalAccessToken",
    "ApiKey",
    "ApiKeyPermission",
    "AppSetting",
    "AppTheme",
]
