import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from oneaccount.core import composite_token
from oneaccount.core.errors import ResourceNotFoundError
from oneaccount.core.time import utcnow
from oneaccount.models import ApiKey, ApiKeyPermission

logger = logging.getLogger(__name__)


class ApiKeyManager:
    """API keys are composite tokens; only the hash of the secret half is stored."""

    def list_keys(self, db: Session, owner_id: Optional[str] = None) -> List[ApiKey]:
        query = db.query(ApiKey).filter(ApiKey.deleted_at_utc.is_(None))
        if owner_id is not None:
            query = query.filter(ApiKey.user_id == owner_id)
        return query.order_by(ApiKey.created_at_utc.desc()).all()

    def create(
        self,
        db: Session,
        name: str,
        user_id: str,
        description: str = "",
        expires_at: Optional[datetime] = None,
        permissions: Optional[List[str]] = None,
    ) -> tuple[ApiKey, str]:
        secret = composite_token.generate_secret()
        api_key = ApiKey(
            name=name,
            description=description,
            user_id=user_id,
            expires_at_utc=expires_at,
            key_hash=composite_token.hash_secret(secret),
        )
        api_key.permissions = [ApiKeyPermission(permission=p) for p in dict.fromkeys(permissions or [])]
        db.add(api_key)
        db.commit()
        db.refresh(api_key)
        logger.info(f"API key {api_key.id} created for user {user_id}")
        return api_key, composite_token.build_token(api_key.id, secret)

    def read(self, db: Session, key_id: str, owner_id: Optional[str] = None) -> ApiKey:
        query = db.query(ApiKey).filter(ApiKey.id == key_id, ApiKey.deleted_at_utc.is_(None))
        if owner_id is not None:
            query = query.filter(ApiKey.user_id == owner_id)
        api_key = query.first()
        if not api_key:
            raise ResourceNotFoundError("API key not found")
        return api_key

    def update(self, db: Session, key_or_id: ApiKey | str, name: str, description: str) -> ApiKey:
        api_key = key_or_id if isinstance(key_or_id, ApiKey) else self.read(db, key_or_id)
        api_key.name = name
        api_key.description = description
        db.add(api_key)
        db.commit()
        db.refresh(api_key)
        return api_key

    def destroy(self, db: Session, key_or_id: ApiKey | str) -> bool:
        api_key = key_or_id if isinstance(key_or_id, ApiKey) else self.read(db, key_or_id)
        api_key.deleted_at_utc = utcnow()
        api_key.active = False
        db.add(api_key)
        db.commit()
        return True

    def set_active_status(self, db: Session, key_or_id: ApiKey | str, is_active: bool) -> bool:
        api_key = key_or_id if isinstance(key_or_id, ApiKey) else self.read(db, key_or_id)
        api_key.active = is_active
        db.add(api_key)
        db.commit()
        return True

    def authenticate(self, db: Session, raw_key: str) -> Optional[ApiKey]:
        parsed = composite_token.parse_token(raw_key)
        if parsed is None:
            return None

        api_key = db.get(ApiKey, parsed.lookup_id)
        if api_key is None or api_key.deleted_at_utc is not None:
            logger.debug(f"API key {parsed.lookup_id} not found")
            return None
        if api_key.is_expired():
            logger.debug(f"API key {api_key.id} has expired")
            return None
        if not api_key.active:
            logger.debug(f"API key {api_key.id} is no longer active")
            return None
        if not composite_token.verify_secret(parsed.secret, api_key.key_hash):
            logger.debug(f"API key {api_key.id} value is invalid")
            return None
        return api_key

    def is_valid(self, db: Session, raw_key: str) -> bool:
        return self.authenticate(db, raw_key) is not None

    @staticmethod
    def get_id_from_key(raw_key: str) -> Optional[str]:
        parsed = composite_token.parse_token(raw_key)
        return parsed.lookup_id if parsed else None

    @staticmethod
    def get_value_from_key(raw_key: str) -> Optional[str]:
        parsed = composite_token.parse_token(raw_key)
        return parsed.secret if parsed else None
