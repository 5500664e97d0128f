from sqlalchemy.orm import Session

from oneaccount.core import mfa
from oneaccount.models import User, VerificationMethod

from .base import AppVerificationMethod


class GoogleAuthenticatorApp(AppVerificationMethod):
    method = VerificationMethod.GOOGLE_AUTHENTICATOR

    def provisioning_uri(self, db: Session, user: User) -> str:
        otpauth, _ = mfa.build_otpauth_and_qr(user.email, self.get_or_create_secret(db, user))
        return otpauth

    def generate_qr_code(self, db: Session, user: User) -> str:
        """Base64 PNG data URL the authenticator app scans."""
        secret = self.get_or_create_secret(db, user)
        _, qr_code = mfa.build_otpauth_and_qr(user.email, secret)
        return qr_code
