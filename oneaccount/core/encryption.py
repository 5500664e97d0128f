"""
Encryption at rest for verification secrets and backup codes
"""
import base64
from functools import lru_cache

from cryptography.fernet import Fernet
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from sqlalchemy import Text
from sqlalchemy.types import TypeDecorator

from .config import get_settings


@lru_cache(maxsize=1)
def _get_fernet() -> Fernet:
    """Derive the Fernet key from the configured encryption key"""
    settings = get_settings()
    if not settings.encryption_key:
        raise ValueError("ONEACCOUNT_ENCRYPTION_KEY must be set")
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=b"oneaccount-at-rest",
        iterations=100000,
    )
    key = base64.urlsafe_b64encode(kdf.derive(settings.encryption_key.encode()))
    return Fernet(key)


def encrypt_value(value: str) -> str:
    """
    Encrypt a secret string

    Args:
        value: Plaintext value

    Returns:
        Fernet token as text
    """
    return _get_fernet().encrypt(value.encode()).decode()


def decrypt_value(encrypted: str) -> str:
    """
    Decrypt a value produced by encrypt_value

    Raises:
        cryptography.fernet.InvalidToken: if the value was tampered with or the key changed
    """
    return _get_fernet().decrypt(encrypted.encode()).decode()


class EncryptedText(TypeDecorator):
    """Text column transparently encrypted with Fernet"""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return encrypt_value(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return decrypt_value(value)
