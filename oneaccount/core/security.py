import uuid
from datetime import datetime
from typing import Any, Dict

import jwt
from passlib.context import CryptContext

from .config import get_settings
from .time import utcnow


# Shared by passwords and the secret half of composite tokens.
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def _signing_key() -> str:
    settings = get_settings()
    if not settings.jwt_secret:
        raise ValueError("ONEACCOUNT_JWT_SECRET must be set")
    return settings.jwt_secret


def create_token(payload: Dict[str, Any], expires_at: datetime) -> str:
    settings = get_settings()
    claims = {
        **payload,
        "iss": settings.jwt_issuer,
        "iat": utcnow(),
        "exp": expires_at,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(claims, _signing_key(), algorithm=ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    settings = get_settings()
    return jwt.decode(
        token,
        _signing_key(),
        issuer=settings.jwt_issuer,
        algorithms=[ALGORITHM],
        options={"require": ["iss", "iat", "exp"]},
    )
