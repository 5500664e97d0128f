"""Composition root: every service is built here from Settings and injected."""
import logging
from dataclasses import dataclass
from typing import Dict, Optional

from oneaccount.core.config import Settings
from oneaccount.models import AuthenticationType

from .api_key_service import ApiKeyManager
from .app_settings_service import AppSettingsManager
from .auth_service import AuthService
from .auth_token_service import AuthTokenManager, JwtAuthService, MultiTokenAuthenticator, PersistentAuthService
from .mfa_attempt_store import MfaAttemptStore
from .mfa_orchestrator import MfaOrchestrator
from .notification_service import OtpNotifier, build_notifier
from .verification.registry import VerificationMethodRegistry

logger = logging.getLogger(__name__)


@dataclass
class Services:
    registry: VerificationMethodRegistry
    attempt_store: MfaAttemptStore
    orchestrator: MfaOrchestrator
    settings_manager: AppSettingsManager
    token_managers: Dict[AuthenticationType, AuthTokenManager]
    authenticator: MultiTokenAuthenticator
    api_keys: ApiKeyManager
    auth: AuthService


def _token_managers(settings: Settings) -> Dict[AuthenticationType, AuthTokenManager]:
    factories = {
        AuthenticationType.PERSISTENT: lambda: PersistentAuthService(settings.persistent_token_lifetime_minutes),
        AuthenticationType.JWT: lambda: JwtAuthService(settings.jwt_lifetime_minutes),
    }
    managers: Dict[AuthenticationType, AuthTokenManager] = {}
    for name in settings.auth_schemes:
        try:
            auth_type = AuthenticationType(name)
        except ValueError:
            raise ValueError(f"Unknown authentication scheme in ONEACCOUNT_AUTH_SCHEMES: {name}") from None
        if auth_type not in factories:
            raise ValueError(f"{name} cannot be used as a session token scheme")
        managers[auth_type] = factories[auth_type]()
    return managers


def build_services(settings: Settings, notifier: Optional[OtpNotifier] = None) -> Services:
    registry = VerificationMethodRegistry.from_settings(settings, notifier or build_notifier(settings))
    attempt_store = MfaAttemptStore(settings.mfa_attempt_minutes)
    orchestrator = MfaOrchestrator(registry, attempt_store)
    settings_manager = AppSettingsManager(registry)
    token_managers = _token_managers(settings)
    logger.info(
        f"Services ready: mfa methods={[m.value for m in registry.methods()]} "
        f"auth schemes={[t.value for t in token_managers]}"
    )
    return Services(
        registry=registry,
        attempt_store=attempt_store,
        orchestrator=orchestrator,
        settings_manager=settings_manager,
        token_managers=token_managers,
        authenticator=MultiTokenAuthenticator(list(token_managers.items())),
        api_keys=ApiKeyManager(),
        auth=AuthService(orchestrator, settings_manager, token_managers),
    )
