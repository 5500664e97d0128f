from functools import lru_cache

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from oneaccount.core.config import get_settings
from oneaccount.db.session import SessionLocal
from oneaccount.models import ApiKey, User, UserRole
from oneaccount.services.container import Services, build_services

bearer_scheme = HTTPBearer(auto_error=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache(maxsize=1)
def get_services() -> Services:
    return build_services(get_settings())


def get_bearer_token(credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme)) -> str:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    return credentials.credentials


def get_current_user(
    token: str = Depends(get_bearer_token),
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
) -> User:
    user = services.authenticator.authenticate(db, token)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is deactivated.")
    return user


def get_current_api_key(
    x_api_key: str | None = Header(default=None, alias="X-API-KEY"),
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
) -> ApiKey:
    if not x_api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing API key")
    api_key = services.api_keys.authenticate(db, x_api_key)
    if not api_key:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")
    return api_key


def require_api_key_permission(*permissions: str):
    def checker(api_key: ApiKey = Depends(get_current_api_key)) -> ApiKey:
        if permissions and not api_key.has_any_permission(*permissions):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient API key permissions")
        return api_key

    return checker


def require_role(*roles: UserRole):
    def checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return user

    return checker


require_admin = require_role(UserRole.ADMIN)


def owner_scope(user: User) -> str | None:
    """Admins manage every user's resources; everyone else only their own."""
    return None if user.is_admin else user.id
