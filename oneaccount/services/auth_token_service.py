"""
Session token schemes.

JwtAuthService issues stateless signed tokens. PersistentAuthService issues
opaque composite tokens backed by a PersonalAccessToken row, which can be
listed and revoked. MultiTokenAuthenticator tries the enabled schemes in order.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import jwt
from sqlalchemy.orm import Session

from oneaccount.core import composite_token, security
from oneaccount.core.time import as_aware, utcnow
from oneaccount.models import AuthenticationType, PersonalAccessToken, User

logger = logging.getLogger(__name__)


class AuthTokenManager(ABC):
    def __init__(self, lifetime_minutes: int):
        self.lifetime_minutes = lifetime_minutes

    def default_expiry(self) -> datetime:
        return utcnow() + timedelta(minutes=self.lifetime_minutes)

    @abstractmethod
    def generate_token(self, db: Session, user: User, expires_at: datetime, client_name: str = "") -> str:
        ...

    @abstractmethod
    def token_is_valid(self, db: Session, token: str) -> bool:
        ...

    @abstractmethod
    def get_token_owner(self, db: Session, token: str) -> Optional[User]:
        ...


class PersistentAuthTokenManager(AuthTokenManager):
    @abstractmethod
    def invalidate_token(self, db: Session, token: str) -> bool:
        ...

    @abstractmethod
    def invalidate_multiple_tokens(self, db: Session, user: User, token_ids: List[str]) -> bool:
        ...

    @abstractmethod
    def get_all_active_tokens(self, db: Session, user: User) -> List[Dict]:
        ...


class JwtAuthService(AuthTokenManager):
    def generate_token(self, db: Session, user: User, expires_at: datetime, client_name: str = "") -> str:
        return security.create_token({"user_id": user.id, "client_name": client_name}, expires_at)

    def _claims(self, token: str) -> Optional[Dict]:
        try:
            return security.decode_token(token)
        except jwt.PyJWTError as e:
            logger.debug(f"JWT rejected: {type(e).__name__}")
            return None

    def token_is_valid(self, db: Session, token: str) -> bool:
        return self._claims(token) is not None

    def get_token_owner(self, db: Session, token: str) -> Optional[User]:
        claims = self._claims(token)
        if not claims or not claims.get("user_id"):
            return None
        return db.get(User, claims["user_id"])


class PersistentAuthService(PersistentAuthTokenManager):
    def generate_token(self, db: Session, user: User, expires_at: datetime, client_name: str = "") -> str:
        secret = composite_token.generate_secret()
        row = PersonalAccessToken(
            user_id=user.id,
            name=client_name,
            token_hash=composite_token.hash_secret(secret),
            expires_at_utc=expires_at,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        return composite_token.build_token(row.id, secret)

    def _find(self, db: Session, token: str) -> Optional[PersonalAccessToken]:
        parsed = composite_token.parse_token(token)
        if parsed is None:
            return None
        row = db.get(PersonalAccessToken, parsed.lookup_id)
        if row is None:
            logger.debug("Access token not in the database")
            return None
        if not composite_token.verify_secret(parsed.secret, row.token_hash):
            logger.debug(f"Access token {row.id} has an incorrect hash")
            return None
        return row

    @staticmethod
    def _is_expired(row: PersonalAccessToken) -> bool:
        return row.expires_at_utc is not None and utcnow() >= as_aware(row.expires_at_utc)

    def _resolve(self, db: Session, token: str) -> Optional[PersonalAccessToken]:
        row = self._find(db, token)
        if row is None:
            return None
        if row.user is None or not row.user.is_active:
            logger.debug(f"Owner of access token {row.id} no longer exists or is inactive")
            return None
        if self._is_expired(row):
            logger.debug(f"Access token {row.id} has expired")
            return None
        return row

    def token_is_valid(self, db: Session, token: str) -> bool:
        return self._resolve(db, token) is not None

    def get_token_owner(self, db: Session, token: str) -> Optional[User]:
        row = self._resolve(db, token)
        if row is None:
            return None
        row.last_used_at_utc = utcnow()
        db.add(row)
        db.commit()
        return row.user

    def invalidate_token(self, db: Session, token: str) -> bool:
        row = self._find(db, token)
        if row is None:
            return True
        db.delete(row)
        db.commit()
        return True

    def invalidate_multiple_tokens(self, db: Session, user: User, token_ids: List[str]) -> bool:
        query = db.query(PersonalAccessToken).filter(PersonalAccessToken.user_id == user.id)
        if token_ids != ["*"]:
            query = query.filter(PersonalAccessToken.id.in_(token_ids))
        deleted = query.delete(synchronize_session=False)
        db.commit()
        return deleted > 0

    def get_all_active_tokens(self, db: Session, user: User) -> List[Dict]:
        rows = (
            db.query(PersonalAccessToken)
            .filter(PersonalAccessToken.user_id == user.id)
            .order_by(PersonalAccessToken.created_at_utc.desc())
            .all()
        )
        return [
            {
                "id": row.id,
                "name": row.name,
                "expires_at": row.expires_at_utc,
                "last_used_at": row.last_used_at_utc,
                "created_at": row.created_at_utc,
            }
            for row in rows
            if not self._is_expired(row)
        ]


class MultiTokenAuthenticator:
    """Bearer token resolution across an ordered list of schemes."""

    def __init__(self, schemes: List[tuple[AuthenticationType, AuthTokenManager]]):
        self.schemes = schemes

    def authenticate(self, db: Session, token: str) -> Optional[User]:
        if not token:
            return None
        for auth_type, manager in self.schemes:
            user = manager.get_token_owner(db, token)
            if user is not None:
                logger.debug(f"Bearer token accepted by the {auth_type.value} scheme")
                return user
        return None

    def scheme_for(self, db: Session, token: str) -> Optional[AuthTokenManager]:
        for _, manager in self.schemes:
            if manager.token_is_valid(db, token):
                return manager
        return None
