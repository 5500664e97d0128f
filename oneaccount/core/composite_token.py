"""
Composite credential tokens of the form ``{lookup_id}|{secret}``.

The lookup id is a plain row identifier so the row can be fetched directly;
only a salted hash of the secret is ever stored. The plaintext composite is
handed to the caller once, at creation, and cannot be rebuilt from storage.
"""
import logging
import secrets
from typing import NamedTuple, Optional

from .security import pwd_context

logger = logging.getLogger(__name__)

SEPARATOR = "|"


class CompositeToken(NamedTuple):
    lookup_id: str
    secret: str

    def encode(self) -> str:
        return f"{self.lookup_id}{SEPARATOR}{self.secret}"


def generate_secret() -> str:
    # token_urlsafe never emits the separator
    return secrets.token_urlsafe(32)


def hash_secret(secret: str) -> str:
    return pwd_context.hash(secret)


def verify_secret(secret: str, secret_hash: str | None) -> bool:
    if not secret_hash:
        return False
    try:
        return pwd_context.verify(secret, secret_hash)
    except ValueError:
        # unknown or corrupted hash format
        logger.warning("Stored token hash could not be identified")
        return False


def build_token(lookup_id: str, secret: str) -> str:
    return CompositeToken(str(lookup_id), secret).encode()


def parse_token(raw: str | None) -> Optional[CompositeToken]:
    """Split a raw composite token; None when it is not exactly two non-empty parts."""
    if not raw:
        return None
    parts = raw.split(SEPARATOR)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        logger.debug("Cannot separate the token id from the raw value")
        return None
    return CompositeToken(parts[0], parts[1])
