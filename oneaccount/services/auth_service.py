"""
Login hand-off and the MFA endpoint workflows.

The orchestrator answers with booleans and None for expected user-input
failures; this layer turns them into the typed errors the HTTP layer renders,
and mints the session token once every step of an attempt is complete.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from oneaccount.core import security
from oneaccount.core.errors import (
    AccountDeactivatedError,
    AlreadyEnrolledError,
    BackupCodeMismatchError,
    CodeMismatchError,
    DependencyFailureError,
    InvalidCredentialsError,
    InvalidTokenError,
    NoActiveStepError,
    OneAccountError,
    StepNotActiveError,
    UnsupportedAuthTypeError,
)
from oneaccount.core.time import utcnow
from oneaccount.models import AuthenticationType, MfaAttempt, User, VerificationMethod
from oneaccount.schemas.auth import UserOut

from .app_settings_service import AppSettingsManager
from .auth_token_service import AuthTokenManager, PersistentAuthTokenManager
from .mfa_orchestrator import MfaOrchestrator

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_NAME = "api_token"


class AuthService:
    def __init__(
        self,
        orchestrator: MfaOrchestrator,
        settings_manager: AppSettingsManager,
        token_managers: Dict[AuthenticationType, AuthTokenManager],
    ):
        self.orchestrator = orchestrator
        self.settings_manager = settings_manager
        self.token_managers = token_managers

    def login(
        self,
        db: Session,
        email: str,
        password: str,
        client_name: str = DEFAULT_TOKEN_NAME,
        auth_type: AuthenticationType | str = AuthenticationType.PERSISTENT,
        with_user: bool = False,
    ) -> Dict[str, Any]:
        user = db.query(User).filter(User.email == email).first()
        if not user or not security.verify_password(password, user.password_hash):
            raise InvalidCredentialsError()
        if not user.is_active:
            raise AccountDeactivatedError()

        auth_type = AuthenticationType(auth_type)
        # fail before an attempt is created for a scheme that cannot be issued
        self._token_manager(auth_type)

        policy = self.settings_manager.get_mfa_config(db)
        if not (policy.enabled and policy.steps):
            return self.issue_session_token(db, user, client_name, auth_type, with_user)

        result = self.orchestrator.generate_mfa_attempt_token(
            db,
            user,
            policy.steps,
            {"token_name": client_name, "auth_type": auth_type.value, "with_user": with_user},
        )
        token = result["token"]
        self.orchestrator.run_secret_generation(db, token)

        first_step = result["steps"][0]["name"]
        if self.orchestrator.step_supports_code_delivery(first_step):
            attempt = self.orchestrator.get_mfa_attempt_from_token(db, token)
            try:
                if not self.orchestrator.run_code_delivery(db, attempt):
                    logger.error(f"MFA code was not delivered to user {user.id} at login")
            except DependencyFailureError:
                logger.error(f"MFA code delivery failed for user {user.id} at login", exc_info=True)

        return {
            "mfa_token": token,
            "mfa_token_expires_at": result["expires_at"],
            "mfa_steps": result["steps"],
        }

    def _token_manager(self, auth_type: AuthenticationType) -> AuthTokenManager:
        manager = self.token_managers.get(auth_type)
        if manager is None:
            raise UnsupportedAuthTypeError(f"Authentication type {auth_type.value} is not enabled")
        return manager

    def issue_session_token(
        self,
        db: Session,
        user: User,
        token_name: str,
        auth_type: AuthenticationType | str,
        with_user: bool = False,
    ) -> Dict[str, Any]:
        manager = self._token_manager(AuthenticationType(auth_type))
        expires_at = manager.default_expiry()
        data: Dict[str, Any] = {
            "token": manager.generate_token(db, user, expires_at, token_name),
            "token_name": token_name,
            "expires_at": expires_at,
        }
        if with_user:
            data["user"] = UserOut.model_validate(user)
        return data

    def _resolve_attempt(self, db: Session, token: str) -> MfaAttempt:
        attempt = self.orchestrator.get_mfa_attempt_from_token(db, token)
        if attempt is None or not self.orchestrator.verify_mfa_attempt_token(db, token):
            raise InvalidTokenError()
        return attempt

    def _active_step(self, attempt: MfaAttempt) -> str:
        step = self.orchestrator.get_current_mfa_step(attempt)
        if step is None:
            raise NoActiveStepError()
        return step

    def send_code(self, db: Session, token: str) -> Dict[str, Any]:
        attempt = self._resolve_attempt(db, token)
        step = self._active_step(attempt)
        if not self.orchestrator.step_supports_code_delivery(step):
            raise StepNotActiveError("Current MFA step does not support code delivery")

        if not self.orchestrator.run_code_delivery(db, attempt):
            raise DependencyFailureError("Unable to deliver the verification code")
        return {"message": "OTP sent successfully", "current_step": step}

    def generate_qr_code(self, db: Session, token: str) -> Dict[str, Any]:
        attempt = self._resolve_attempt(db, token)
        step = self._active_step(attempt)
        if not self.orchestrator.step_supports_qr_code_generation(step):
            raise StepNotActiveError("Current MFA step does not support QR code generation")

        user = attempt.user
        if self.orchestrator.user_is_enrolled_to_mfa_step(db, step, user):
            raise AlreadyEnrolledError()

        qr_code = self.orchestrator.run_qr_code_generation(db, attempt)

        backup_codes = []
        try:
            backup_codes = self.orchestrator.run_backup_code_generation(db, step, user)
        except SQLAlchemyError:
            logger.error(f"Unable to generate backup codes for user {user.id}", exc_info=True)

        return {
            "qr_code": qr_code,
            "current_step": step,
            "backup_codes": backup_codes,
            "secret_key": self.orchestrator.run_get_secret_key(db, step, user),
        }

    def verify_code(self, db: Session, token: str, code: str) -> Dict[str, Any]:
        attempt = self._resolve_attempt(db, token)
        step = self._active_step(attempt)
        if not self.orchestrator.run_code_verification(db, attempt, code):
            raise CodeMismatchError()

        user = attempt.user
        if step == VerificationMethod.EMAIL_CHANNEL.value and user.email_verified_at is None:
            user.email_verified_at = utcnow()
            db.add(user)
            db.commit()

        if not self.orchestrator.all_mfa_steps_are_completed(attempt):
            return {
                "message": "MFA code validation success",
                "current_step": step,
                "next_step": self.orchestrator.get_current_mfa_step(attempt),
            }

        meta = attempt.auth_metadata or {}
        return self.issue_session_token(
            db,
            user,
            meta.get("token_name") or DEFAULT_TOKEN_NAME,
            meta.get("auth_type") or AuthenticationType.PERSISTENT,
            bool(meta.get("with_user")),
        )

    def verify_backup_code(self, db: Session, token: str, code: str) -> Dict[str, Any]:
        attempt = self._resolve_attempt(db, token)
        step = self._active_step(attempt)
        if not self.orchestrator.step_supports_backup_code_verification(step):
            raise StepNotActiveError(f"The {step} verification method does not support backup codes")

        if not self.orchestrator.run_backup_code_verification(db, attempt, code):
            raise BackupCodeMismatchError()

        return {
            "message": "Backup code validation success. New QR code generated.",
            "current_step": step,
            "qr_code": self.orchestrator.run_qr_code_generation(db, attempt, reprovision=True),
            "secret_key": self.orchestrator.run_get_secret_key(db, step, attempt.user),
        }

    def fetch_methods(self, db: Session) -> list[Dict[str, Any]]:
        return self.orchestrator.get_all_mfa_methods(self.settings_manager.get_mfa_config(db))

    def un_enroll(self, db: Session, user_id: str, method: VerificationMethod | str) -> None:
        if not self.orchestrator.un_enroll_user(db, user_id, VerificationMethod(method).value):
            raise OneAccountError("Unable to un-enroll user from MFA step")

    @property
    def persistent_tokens(self) -> Optional[PersistentAuthTokenManager]:
        manager = self.token_managers.get(AuthenticationType.PERSISTENT)
        return manager if isinstance(manager, PersistentAuthTokenManager) else None

    def logout(self, db: Session, token: str) -> None:
        # JWTs are stateless and simply expire
        if self.persistent_tokens is not None:
            self.persistent_tokens.invalidate_token(db, token)
