from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from oneaccount.api.deps import get_bearer_token, get_current_user, get_db, get_services
from oneaccount.models import User
from oneaccount.schemas.auth import (
    AccessTokenOut,
    LoginRequest,
    MfaLoginResponse,
    RevokeTokensRequest,
    TokenResponse,
    UserOut,
)
from oneaccount.services.container import Services

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=MfaLoginResponse | TokenResponse)
def login(body: LoginRequest, db: Session = Depends(get_db), services: Services = Depends(get_services)):
    return services.auth.login(
        db,
        body.email,
        body.password,
        client_name=body.client_name,
        auth_type=body.auth_type,
        with_user=body.with_user,
    )


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    user: User = Depends(get_current_user),
):
    services.auth.logout(db, token)


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    return user


@router.get("/tokens", response_model=List[AccessTokenOut])
def list_tokens(
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    user: User = Depends(get_current_user),
):
    manager = services.auth.persistent_tokens
    return manager.get_all_active_tokens(db, user) if manager else []


@router.post("/tokens/revoke")
def revoke_tokens(
    body: RevokeTokensRequest,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
    user: User = Depends(get_current_user),
):
    manager = services.auth.persistent_tokens
    revoked = manager.invalidate_multiple_tokens(db, user, body.token_ids) if manager else False
    return {"revoked": revoked}
