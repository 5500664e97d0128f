"""
The MFA pipeline.

An attempt carries an ordered list of steps; the current step is the first one
not yet completed. Each attempt is addressed by its own composite token, so a
user can have any number of independent attempts in flight.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from oneaccount.core import composite_token
from oneaccount.core.errors import AttemptNotFoundError, UnsupportedStepError
from oneaccount.core.time import as_aware, utcnow
from oneaccount.models import MfaAttempt, User
from oneaccount.schemas.app_settings import MfaPolicy

from .mfa_attempt_store import MfaAttemptStore
from .verification.base import AppVerificationMethod, DeliveryVerificationMethod
from .verification.registry import VerificationMethodRegistry

logger = logging.getLogger(__name__)


class MfaOrchestrator:
    def __init__(self, registry: VerificationMethodRegistry, store: MfaAttemptStore):
        self.registry = registry
        self.store = store

    # attempts and tokens

    def generate_mfa_attempt_token(
        self,
        db: Session,
        user: User,
        ordered_steps: List[str],
        auth_meta: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        steps = []
        for name in ordered_steps:
            name = getattr(name, "value", name)
            strategy = self.registry.get(name)
            if strategy is None:
                logger.warning(f"MFA step {name} is not registered; it will be kept but cannot be completed")
                steps.append({"name": name, "completed": False, "type": None, "enrolled": False})
                continue
            steps.append(
                {
                    "name": name,
                    "completed": False,
                    "type": strategy.step_type.value,
                    "enrolled": strategy.user_is_enrolled(db, user),
                }
            )

        attempt, token = self.store.create(db, user, steps, auth_meta)
        return {"token": token, "steps": steps, "expires_at": attempt.expires_at_utc}

    def verify_mfa_attempt_token(self, db: Session, token: str) -> bool:
        parsed = composite_token.parse_token(token)
        if parsed is None:
            return False

        attempt = self.store.get(db, parsed.lookup_id)
        if attempt is None:
            logger.debug(f"MFA attempt {parsed.lookup_id} not found")
            return False
        if not composite_token.verify_secret(parsed.secret, attempt.token_hash):
            logger.debug(f"MFA attempt {attempt.id} token is invalid")
            return False
        if utcnow() >= as_aware(attempt.expires_at_utc):
            logger.debug(f"MFA attempt {attempt.id} token expired")
            return False
        return True

    def get_mfa_attempt_from_token(self, db: Session, token: str) -> Optional[MfaAttempt]:
        parsed = composite_token.parse_token(token)
        if parsed is None:
            return None

        attempt = self.store.get(db, parsed.lookup_id)
        if attempt is None:
            raise AttemptNotFoundError()
        if not composite_token.verify_secret(parsed.secret, attempt.token_hash):
            logger.debug(f"MFA attempt {attempt.id} token has an incorrect hash")
            return None
        return attempt

    # pipeline state

    def get_current_mfa_step(self, attempt: MfaAttempt) -> Optional[str]:
        for step in attempt.steps or []:
            if not step.get("completed"):
                return step["name"]
        logger.debug(f"No remaining step in MFA attempt {attempt.id}")
        return None

    @staticmethod
    def all_mfa_steps_are_completed(attempt: MfaAttempt) -> bool:
        return all(step.get("completed") for step in attempt.steps or [])

    def step_supports_code_delivery(self, step: Optional[str]) -> bool:
        return self.registry.get_delivery(step) is not None

    def step_supports_qr_code_generation(self, step: Optional[str]) -> bool:
        return self.registry.get_app(step) is not None

    def step_supports_backup_code_verification(self, step: Optional[str]) -> bool:
        return self.registry.get_app(step) is not None

    # delegation to strategies

    def run_secret_generation(self, db: Session, token: str) -> bool:
        attempt = self.get_mfa_attempt_from_token(db, token)
        if attempt is None:
            logger.debug("Unable to find an MFA attempt from token")
            return False

        step = self.get_current_mfa_step(attempt)
        if step is None:
            return True
        strategy = self.registry.get(step)
        if strategy is None:
            logger.debug(f"Unable to create a secret for step {step}")
            return False
        strategy.get_or_create_secret(db, attempt.user)
        return True

    def run_code_delivery(self, db: Session, attempt: MfaAttempt) -> bool:
        step = self.get_current_mfa_step(attempt)
        if step is None:
            return True
        channel: Optional[DeliveryVerificationMethod] = self.registry.get_delivery(step)
        if channel is None:
            logger.debug(f"Unable to send MFA code for step {step}")
            return False
        code = channel.generate_code(db, attempt.user)
        return channel.send_code(attempt.user, code)

    def run_qr_code_generation(self, db: Session, attempt: MfaAttempt, reprovision: bool = False) -> Optional[str]:
        """
        QR code for the current app-based step; showing it enrolls the user.

        With reprovision the secret is rotated first, which is how a user who
        redeemed a backup code gets onto a fresh device.
        """
        step = self.get_current_mfa_step(attempt)
        if step is None:
            return None
        app: Optional[AppVerificationMethod] = self.registry.get_app(step)
        if app is None:
            logger.debug(f"Unable to create QR code for step {step}")
            return None

        user = attempt.user
        if reprovision:
            app.get_or_create_secret(db, user, force_new=True)
        qr_code = app.generate_qr_code(db, user)
        app.enroll_user(db, user, app.method)
        return qr_code

    def run_get_secret_key(self, db: Session, method: str, user: User) -> Optional[str]:
        strategy = self.registry.get(method)
        if strategy is None:
            logger.debug(f"Unable to get the setup key for {method}")
            return None
        return strategy.get_or_create_secret(db, user)

    def run_backup_code_generation(self, db: Session, method: str, user: User) -> List[str]:
        app = self.registry.get_app(method)
        if app is None:
            logger.debug(f"Unable to create backup codes for {method}")
            return []
        return app.generate_backup_codes(db, user)

    def run_code_verification(self, db: Session, attempt: MfaAttempt, code: str) -> bool:
        locked = self.store.lock(db, attempt.id)
        if locked is None:
            db.rollback()
            raise AttemptNotFoundError()

        step = self.get_current_mfa_step(locked)
        if step is None:
            db.rollback()
            logger.debug(f"All MFA steps of attempt {attempt.id} are completed")
            return False

        strategy = self.registry.get(step)
        if strategy is None:
            db.rollback()
            raise UnsupportedStepError(f"MFA step {step} is not supported by this deployment")

        if not strategy.verify_code(db, locked.user, code):
            db.rollback()
            return False

        # strategies may commit (secret rotation), so re-read under the lock before writing
        locked = self.store.lock(db, attempt.id)
        if locked is None or self.get_current_mfa_step(locked) != step:
            db.rollback()
            logger.debug(f"Step {step} of attempt {attempt.id} was completed concurrently")
            return False
        self.store.mark_step_completed(locked, step)
        db.commit()
        return True

    def run_backup_code_verification(self, db: Session, attempt: MfaAttempt, code: str) -> bool:
        step = self.get_current_mfa_step(attempt)
        if step is None:
            return False
        app = self.registry.get_app(step)
        if app is None:
            logger.debug(f"Unable to verify backup code for step {step}")
            return False
        return app.verify_backup_code(db, attempt.user, code)

    # enrollment and listing

    def user_is_enrolled_to_mfa_step(self, db: Session, method: str, user: User) -> bool:
        strategy = self.registry.get(method)
        if strategy is None:
            logger.debug(f"Unable to check enrollment of user {user.id} to {method}")
            return False
        return strategy.user_is_enrolled(db, user)

    def un_enroll_user(self, db: Session, user_or_id: User | str, method: str) -> bool:
        user = user_or_id if isinstance(user_or_id, User) else db.get(User, user_or_id)
        if user is None:
            logger.debug(f"User {user_or_id} not found for un-enrollment")
            return False
        strategy = self.registry.get(method)
        if strategy is None:
            logger.debug(f"Unable to un-enroll user {user.id} from {method}")
            return False
        return strategy.un_enroll_user(db, user)

    def get_all_mfa_methods(self, policy: MfaPolicy) -> List[Dict[str, Any]]:
        enabled = [
            {"name": name, "enabled": True, "type": self.registry.step_type(name).value}
            for name in dict.fromkeys(policy.steps)
            if name in self.registry
        ]
        enabled_names = {m["name"] for m in enabled}
        disabled = [
            {"name": strategy.method.value, "enabled": False, "type": strategy.step_type.value}
            for strategy in self.registry
            if strategy.method.value not in enabled_names
        ]
        return enabled + disabled
