"""Persistence and lifecycle of in-flight MFA attempts."""
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from oneaccount.core import composite_token
from oneaccount.core.time import utcnow
from oneaccount.models import MfaAttempt, User

logger = logging.getLogger(__name__)


class MfaAttemptStore:
    def __init__(self, attempt_minutes: int = 8 * 60):
        self.attempt_minutes = attempt_minutes

    def create(
        self,
        db: Session,
        user: User,
        steps: List[Dict[str, Any]],
        auth_metadata: Optional[Dict[str, Any]] = None,
    ) -> tuple[MfaAttempt, str]:
        """Persist a new attempt and return it with its plaintext composite token."""
        secret = composite_token.generate_secret()
        attempt = MfaAttempt(
            user_id=user.id,
            token_hash=composite_token.hash_secret(secret),
            steps=steps,
            auth_metadata=auth_metadata or {},
            expires_at_utc=utcnow() + timedelta(minutes=self.attempt_minutes),
        )
        db.add(attempt)
        db.commit()
        db.refresh(attempt)
        return attempt, composite_token.build_token(attempt.id, secret)

    def get(self, db: Session, attempt_id: str) -> Optional[MfaAttempt]:
        return db.query(MfaAttempt).filter(MfaAttempt.id == attempt_id).first()

    def lock(self, db: Session, attempt_id: str) -> Optional[MfaAttempt]:
        """Row-locked read that bypasses the identity map so the steps are fresh."""
        return (
            db.query(MfaAttempt)
            .filter(MfaAttempt.id == attempt_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    def mark_step_completed(self, attempt: MfaAttempt, step_name: str) -> bool:
        """Flip the first incomplete step named step_name; the caller commits."""
        steps = [dict(step) for step in attempt.steps or []]
        for step in steps:
            if not step.get("completed") and step.get("name") == step_name:
                step["completed"] = True
                # a new list so the JSON column registers the change
                attempt.steps = steps
                return True
        return False

    def prune_expired(self, db: Session) -> int:
        deleted = (
            db.query(MfaAttempt)
            .filter(MfaAttempt.expires_at_utc <= utcnow())
            .delete(synchronize_session=False)
        )
        db.commit()
        logger.info(f"Pruned {deleted} expired MFA attempts")
        return deleted
