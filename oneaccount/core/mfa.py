import base64
import io
import secrets
import string

import pyotp
import qrcode

from .config import get_settings

BACKUP_CODE_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits
BACKUP_CODE_LENGTH = 12


def generate_totp_secret() -> str:
    return pyotp.random_base32(length=32)


def totp_from_secret(secret: str, interval: int = 30) -> pyotp.TOTP:
    settings = get_settings()
    return pyotp.TOTP(secret, interval=interval, issuer=settings.totp_issuer)


def verify_otp(secret: str, otp: str, interval: int = 30, valid_window: int = 1) -> bool:
    totp = totp_from_secret(secret, interval=interval)
    # valid_window=1 allows small clock skew for authenticator apps
    return totp.verify(str(otp).strip(), valid_window=valid_window)


def build_otpauth_and_qr(email: str, secret: str) -> tuple[str, str]:
    """Provisioning URI plus a base64 PNG data URL of its QR code."""
    settings = get_settings()
    otpauth = pyotp.TOTP(secret).provisioning_uri(name=email, issuer_name=settings.totp_issuer)
    qr = qrcode.QRCode(version=1, box_size=10, border=4)
    qr.add_data(otpauth)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    encoded = base64.b64encode(buf.getvalue()).decode("ascii")
    return otpauth, f"data:image/png;base64,{encoded}"


def generate_backup_code() -> str:
    return "".join(secrets.choice(BACKUP_CODE_ALPHABET) for _ in range(BACKUP_CODE_LENGTH))
