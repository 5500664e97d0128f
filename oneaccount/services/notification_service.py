"""One-time code delivery sinks: (user, code, expiry_minutes) -> sent."""
import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Callable

from oneaccount.core.config import Settings
from oneaccount.core.errors import DependencyFailureError
from oneaccount.models import User

logger = logging.getLogger(__name__)

OtpNotifier = Callable[[User, str, int], bool]


def compose_otp_email(app_name: str, user: User, code: str, expiry_minutes: int) -> tuple[str, str]:
    greeting = f"Hi, {user.name}!" if user.name else "Hi!"
    body = (
        f"{greeting}\n\n"
        "Use the one-time password below to complete the sign-in process. "
        f"Note that it expires in up to {expiry_minutes} minutes.\n\n"
        f"{code}\n\n"
        "Never share your OTPs with anyone. Our employees will never ask this from you."
    )
    return f"{app_name} - OTP Verification", body


class SmtpOtpNotifier:
    def __init__(self, settings: Settings):
        self.settings = settings

    def __call__(self, user: User, code: str, expiry_minutes: int) -> bool:
        subject, body = compose_otp_email(self.settings.app_name, user, code, expiry_minutes)
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = f"{self.settings.app_name} <{self.settings.mail_from}>"
        msg["To"] = user.email
        msg.set_content(body)

        ctx = ssl.create_default_context()
        try:
            with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=10) as s:
                s.starttls(context=ctx)
                if self.settings.smtp_user and self.settings.smtp_password:
                    s.login(self.settings.smtp_user, self.settings.smtp_password)
                s.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send OTP email to user {user.id}: {e}", exc_info=True)
            raise DependencyFailureError("Unable to deliver the verification code") from e
        return True


class LoggingOtpNotifier:
    """Development sink used when no SMTP host is configured."""

    def __call__(self, user: User, code: str, expiry_minutes: int) -> bool:
        logger.debug(f"OTP for {user.email} (expires in up to {expiry_minutes} minutes): {code}")
        return True


def build_notifier(settings: Settings) -> OtpNotifier:
    if settings.smtp_host:
        return SmtpOtpNotifier(settings)
    logger.warning("ONEACCOUNT_SMTP_HOST is not set; one-time codes will only be logged at DEBUG")
    return LoggingOtpNotifier()
