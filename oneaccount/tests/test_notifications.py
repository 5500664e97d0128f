import logging
import smtplib

import pytest

from oneaccount.core.config import Settings
from oneaccount.core.errors import DependencyFailureError
from oneaccount.services import notification_service
from oneaccount.services.notification_service import (
    LoggingOtpNotifier,
    SmtpOtpNotifier,
    build_notifier,
    compose_otp_email,
)


class FakeSMTP:
    sent = []

    def __init__(self, host, port, timeout=None):
        self.host = host

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self, context=None):
        pass

    def login(self, user, password):
        pass

    def send_message(self, msg):
        FakeSMTP.sent.append(msg)


def test_otp_email_mentions_code_and_expiry(user):
    subject, body = compose_otp_email("OneAccount", user, "123456", 10)

    assert subject == "OneAccount - OTP Verification"
    assert "123456" in body
    assert "up to 10 minutes" in body
    assert body.startswith("Hi, Jane!")


def test_without_smtp_host_codes_are_logged():
    assert isinstance(build_notifier(Settings(smtp_host="")), LoggingOtpNotifier)
    assert isinstance(build_notifier(Settings(smtp_host="smtp.example.com")), SmtpOtpNotifier)


def test_smtp_notifier_sends_message(user, monkeypatch):
    FakeSMTP.sent = []
    monkeypatch.setattr(notification_service.smtplib, "SMTP", FakeSMTP)
    notifier = SmtpOtpNotifier(Settings(smtp_host="smtp.example.com", mail_from="auth@example.com"))

    assert notifier(user, "654321", 10)
    msg = FakeSMTP.sent[0]
    assert msg["To"] == user.email
    assert "654321" in msg.get_content()


def test_smtp_failure_is_a_dependency_error(user, monkeypatch):
    def broken(*args, **kwargs):
        raise smtplib.SMTPConnectError(421, "unavailable")

    monkeypatch.setattr(notification_service.smtplib, "SMTP", broken)
    notifier = SmtpOtpNotifier(Settings(smtp_host="smtp.example.com"))

    with pytest.raises(DependencyFailureError):
        notifier(user, "654321", 10)


def test_logged_codes_stay_out_of_info_logs(user, caplog):
    notifier = LoggingOtpNotifier()

    with caplog.at_level(logging.INFO, logger=notification_service.__name__):
        assert notifier(user, "111222", 10)
    assert "111222" not in caplog.text

    with caplog.at_level(logging.DEBUG, logger=notification_service.__name__):
        notifier(user, "333444", 10)
    assert "333444" in caplog.text
