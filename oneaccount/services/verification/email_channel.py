import logging

from oneaccount.models import User, VerificationMethod
from oneaccount.services.notification_service import OtpNotifier

from .base import DeliveryVerificationMethod

logger = logging.getLogger(__name__)


class EmailVerificationChannel(DeliveryVerificationMethod):
    method = VerificationMethod.EMAIL_CHANNEL

    def __init__(self, notifier: OtpNotifier, code_expiration_seconds: int = 10 * 60):
        super().__init__(code_expiration_seconds=code_expiration_seconds)
        self.notifier = notifier

    def send_code(self, user: User, code: str) -> bool:
        sent = self.notifier(user, code, self.code_expiration_minutes)
        if not sent:
            logger.warning(f"Email OTP was not delivered to user {user.id}")
        return sent
