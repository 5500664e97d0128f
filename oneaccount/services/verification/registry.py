"""Enum-keyed registry of the verification methods a deployment supports."""
import logging
from typing import Callable, Dict, Iterable, Iterator, Optional

from oneaccount.core.config import Settings
from oneaccount.models import MfaStepType, VerificationMethod
from oneaccount.services.notification_service import OtpNotifier

from .base import AppVerificationMethod, DeliveryVerificationMethod, VerificationMethodStrategy
from .email_channel import EmailVerificationChannel
from .google_authenticator import GoogleAuthenticatorApp

logger = logging.getLogger(__name__)

StrategyFactory = Callable[[Settings, OtpNotifier], VerificationMethodStrategy]

STRATEGY_FACTORIES: Dict[VerificationMethod, StrategyFactory] = {
    VerificationMethod.EMAIL_CHANNEL: lambda settings, notifier: EmailVerificationChannel(
        notifier, code_expiration_seconds=settings.email_code_expiration_seconds
    ),
    VerificationMethod.GOOGLE_AUTHENTICATOR: lambda settings, notifier: GoogleAuthenticatorApp(
        backup_code_count=settings.backup_code_count
    ),
}


class VerificationMethodRegistry:
    """Insertion order is the registry's natural order."""

    def __init__(self, strategies: Iterable[VerificationMethodStrategy]):
        self._strategies: Dict[VerificationMethod, VerificationMethodStrategy] = {}
        for strategy in strategies:
            if strategy.method in self._strategies:
                raise ValueError(f"Verification method {strategy.method.value} registered twice")
            self._strategies[strategy.method] = strategy

    @classmethod
    def from_settings(cls, settings: Settings, notifier: OtpNotifier) -> "VerificationMethodRegistry":
        strategies = []
        for name in settings.mfa_methods:
            try:
                method = VerificationMethod(name)
            except ValueError:
                raise ValueError(f"Unknown verification method in ONEACCOUNT_MFA_METHODS: {name}") from None
            strategies.append(STRATEGY_FACTORIES[method](settings, notifier))
        return cls(strategies)

    def __iter__(self) -> Iterator[VerificationMethodStrategy]:
        return iter(self._strategies.values())

    def __contains__(self, name: object) -> bool:
        return self.get(name) is not None

    def methods(self) -> list[VerificationMethod]:
        return list(self._strategies)

    def get(self, name) -> Optional[VerificationMethodStrategy]:
        if name is None:
            return None
        try:
            return self._strategies.get(VerificationMethod(name))
        except ValueError:
            return None

    def get_app(self, name) -> Optional[AppVerificationMethod]:
        strategy = self.get(name)
        return strategy if isinstance(strategy, AppVerificationMethod) else None

    def get_delivery(self, name) -> Optional[DeliveryVerificationMethod]:
        strategy = self.get(name)
        return strategy if isinstance(strategy, DeliveryVerificationMethod) else None

    def step_type(self, name) -> Optional[MfaStepType]:
        strategy = self.get(name)
        return strategy.step_type if strategy else None
