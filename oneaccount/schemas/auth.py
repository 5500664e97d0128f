from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from oneaccount.models.personal_access_token import AuthenticationType
from oneaccount.models.user import UserRole


class UserOut(BaseModel):
    id: str
    email: EmailStr
    name: str
    role: UserRole
    is_active: bool
    email_verified_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class LoginRequest(BaseModel):
    email: EmailStr
    password: str
    # clients can send 'My iPhone14', 'Google Chrome', etc
    client_name: str = Field("api_token", max_length=255)
    auth_type: AuthenticationType = AuthenticationType.PERSISTENT
    with_user: bool = False


class MfaStepOut(BaseModel):
    name: str
    completed: bool
    type: Optional[str] = None
    enrolled: bool


class MfaLoginResponse(BaseModel):
    mfa_token: str
    mfa_token_expires_at: datetime
    mfa_steps: List[MfaStepOut]


class TokenResponse(BaseModel):
    token: str
    token_name: str
    expires_at: datetime
    user: Optional[UserOut] = None


class AccessTokenOut(BaseModel):
    id: str
    name: str
    expires_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None
    created_at: datetime


class RevokeTokensRequest(BaseModel):
    # ["*"] revokes every token of the user
    token_ids: List[str] = Field(..., min_length=1)
