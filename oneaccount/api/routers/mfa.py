from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from oneaccount.api.deps import get_db, get_services, require_admin
from oneaccount.schemas.auth import TokenResponse
from oneaccount.schemas.mfa import (
    BackupCodeResponse,
    MfaCodeRequest,
    MfaMethodOut,
    MfaTokenRequest,
    QrCodeResponse,
    SendCodeResponse,
    StepProgressResponse,
    UnEnrollRequest,
)
from oneaccount.services.container import Services

router = APIRouter(tags=["mfa"])


@router.post("/auth/mfa/send-code", response_model=SendCodeResponse, status_code=status.HTTP_202_ACCEPTED)
def send_code(body: MfaTokenRequest, db: Session = Depends(get_db), services: Services = Depends(get_services)):
    return services.auth.send_code(db, body.token)


@router.post("/auth/mfa/generate-qrcode", response_model=QrCodeResponse)
def generate_qr_code(body: MfaTokenRequest, db: Session = Depends(get_db), services: Services = Depends(get_services)):
    return services.auth.generate_qr_code(db, body.token)


@router.post("/auth/mfa/verify-code", response_model=StepProgressResponse | TokenResponse)
def verify_code(body: MfaCodeRequest, db: Session = Depends(get_db), services: Services = Depends(get_services)):
    return services.auth.verify_code(db, body.token, body.code)


@router.post("/auth/mfa/verify-backup-code", response_model=BackupCodeResponse)
def verify_backup_code(body: MfaCodeRequest, db: Session = Depends(get_db), services: Services = Depends(get_services)):
    return services.auth.verify_backup_code(db, body.token, body.code)


@router.get("/auth/mfa/methods", response_model=List[MfaMethodOut])
def fetch_methods(db: Session = Depends(get_db), services: Services = Depends(get_services)):
    return services.auth.fetch_methods(db)


@router.post("/users/{user_id}/mfa/un-enroll", dependencies=[Depends(require_admin)])
def un_enroll(
    user_id: str,
    body: UnEnrollRequest,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
):
    services.auth.un_enroll(db, user_id, body.mfa_step)
    return {"message": "User successfully un-enrolled"}
