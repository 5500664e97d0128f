from typing import List, Optional

from pydantic import BaseModel, Field

from oneaccount.models.verification_factor import VerificationMethod


class MfaTokenRequest(BaseModel):
    token: str


class MfaCodeRequest(MfaTokenRequest):
    code: str = Field(..., min_length=1, max_length=64)


class SendCodeResponse(BaseModel):
    message: str
    current_step: str


class QrCodeResponse(BaseModel):
    qr_code: Optional[str] = None
    current_step: str
    backup_codes: List[str]
    secret_key: Optional[str] = None


class StepProgressResponse(BaseModel):
    message: str
    current_step: str
    next_step: Optional[str] = None


class BackupCodeResponse(BaseModel):
    message: str
    current_step: str
    qr_code: Optional[str] = None
    secret_key: Optional[str] = None


class MfaMethodOut(BaseModel):
    name: str
    enabled: bool
    type: Optional[str] = None


class UnEnrollRequest(BaseModel):
    mfa_step: VerificationMethod
