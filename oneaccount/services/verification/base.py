"""
Verification method strategies.

Every strategy owns the VerificationFactor row for its own (user, method)
pair and never touches another method's row. App-based methods are backed by
an authenticator app (QR provisioning, backup codes); delivery-based methods
send a short-lived code through a channel.
"""
import hmac
import logging
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from oneaccount.core import mfa
from oneaccount.core.time import utcnow
from oneaccount.models import MfaStepType, User, VerificationFactor, VerificationMethod, VfBackupCode

logger = logging.getLogger(__name__)


class VerificationMethodStrategy:
    method: VerificationMethod
    step_type: MfaStepType

    def verify_code(self, db: Session, user: User, code: str) -> bool:
        raise NotImplementedError

    def get_or_create_secret(self, db: Session, user: User, force_new: bool = False) -> str:
        raise NotImplementedError

    def _get_factor(self, db: Session, user: User, lock: bool = False) -> Optional[VerificationFactor]:
        query = db.query(VerificationFactor).filter(
            VerificationFactor.user_id == user.id,
            VerificationFactor.type == self.method,
        )
        if lock:
            query = query.with_for_update()
        return query.first()

    def _store_secret(self, db: Session, user: User, secret: str, enroll: bool) -> VerificationFactor:
        factor = self._get_factor(db, user, lock=True)
        if factor is None:
            factor = VerificationFactor(user_id=user.id, type=self.method, secret=secret)
        else:
            factor.secret = secret
        if enroll:
            factor.enrolled_at = utcnow()
        db.add(factor)
        db.commit()
        db.refresh(factor)
        return factor

    # enrollment is keyed by (user, method); a strategy only manages its own method

    def enroll_user(self, db: Session, user: User, method: VerificationMethod | None = None) -> bool:
        """
        App-based methods show the QR code only once. Flag the factor as enrolled
        so later logins skip the provisioning screen.
        """
        factor = self._factor_for(db, user, method)
        if factor is None:
            logger.debug(f"No {self.method.value} factor to enroll for user {user.id}")
            return False
        factor.enrolled_at = utcnow()
        db.add(factor)
        db.commit()
        return True

    def un_enroll_user(self, db: Session, user: User, method: VerificationMethod | None = None) -> bool:
        """Clear enrollment so the QR code and backup codes can be issued again."""
        factor = self._factor_for(db, user, method)
        if factor is None:
            logger.debug(f"No {self.method.value} factor to un-enroll for user {user.id}")
            return False
        factor.enrolled_at = None
        db.add(factor)
        db.commit()
        return True

    def user_is_enrolled(self, db: Session, user: User, method: VerificationMethod | None = None) -> bool:
        factor = self._factor_for(db, user, method)
        return bool(factor and factor.enrolled_at)

    def _factor_for(self, db: Session, user: User, method: VerificationMethod | None) -> Optional[VerificationFactor]:
        if method is not None and VerificationMethod(method) != self.method:
            raise ValueError(f"{type(self).__name__} cannot manage enrollment for {method}")
        return self._get_factor(db, user)


class AppVerificationMethod(VerificationMethodStrategy):
    step_type = MfaStepType.APP

    def __init__(self, backup_code_count: int = 10):
        self.backup_code_count = backup_code_count

    def verify_code(self, db: Session, user: User, code: str) -> bool:
        secret = self.get_or_create_secret(db, user)
        return mfa.verify_otp(secret, code)

    def get_or_create_secret(self, db: Session, user: User, force_new: bool = False) -> str:
        factor = self._get_factor(db, user)
        if factor and not force_new:
            return factor.secret
        # replaces the seed; enrollment is left to QR provisioning
        return self._store_secret(db, user, mfa.generate_totp_secret(), enroll=False).secret

    def generate_qr_code(self, db: Session, user: User) -> str:
        raise NotImplementedError

    def generate_backup_codes(self, db: Session, user: User, count: int | None = None) -> List[str]:
        """
        Replace the factor's backup codes with a fresh set.

        The delete and the inserts commit together; any failure rolls the whole
        set back. The plaintext list is only ever returned here.
        """
        if count is None:
            count = self.backup_code_count
        factor = self._get_factor(db, user)
        if factor is None:
            self.get_or_create_secret(db, user)
            factor = self._get_factor(db, user)

        codes = [mfa.generate_backup_code() for _ in range(count)]
        try:
            db.query(VfBackupCode).filter(VfBackupCode.verification_factor_id == factor.id).delete(
                synchronize_session=False
            )
            db.add_all(VfBackupCode(verification_factor_id=factor.id, code=code) for code in codes)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.expire(factor, ["backup_codes"])
        return codes

    def verify_backup_code(self, db: Session, user: User, code: str) -> bool:
        factor = self._get_factor(db, user)
        if factor is None:
            return False

        unused = (
            db.query(VfBackupCode)
            .filter(VfBackupCode.verification_factor_id == factor.id, VfBackupCode.used_at.is_(None))
            .all()
        )
        match = next((bc for bc in unused if hmac.compare_digest(bc.code.encode(), code.encode())), None)
        if match is None:
            return False

        # conditional update: a concurrent redemption of the same code updates zero rows
        result = db.execute(
            update(VfBackupCode)
            .where(VfBackupCode.id == match.id, VfBackupCode.used_at.is_(None))
            .values(used_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        db.commit()
        db.expire(match)
        if result.rowcount != 1:
            logger.debug(f"Backup code {match.id} was redeemed concurrently")
            return False
        return True


class DeliveryVerificationMethod(VerificationMethodStrategy):
    step_type = MfaStepType.DELIVERY
    # delivered codes are never shown for scanning, so creation counts as enrollment
    auto_enroll = True

    def __init__(self, code_expiration_seconds: int = 10 * 60):
        self.code_expiration_seconds = code_expiration_seconds

    @property
    def code_expiration_minutes(self) -> int:
        return max(1, self.code_expiration_seconds // 60)

    def generate_code(self, db: Session, user: User) -> str:
        secret = self.get_or_create_secret(db, user)
        return mfa.totp_from_secret(secret, interval=self.code_expiration_seconds).now()

    def verify_code(self, db: Session, user: User, code: str) -> bool:
        secret = self.get_or_create_secret(db, user)
        valid = mfa.verify_otp(secret, code, interval=self.code_expiration_seconds, valid_window=0)
        if valid:
            # rotate so the delivered code cannot be replayed
            self.get_or_create_secret(db, user, force_new=True)
        return valid

    def get_or_create_secret(self, db: Session, user: User, force_new: bool = False) -> str:
        factor = self._get_factor(db, user)
        if factor and not force_new:
            return factor.secret
        return self._store_secret(db, user, mfa.generate_totp_secret(), enroll=self.auto_enroll).secret

    def send_code(self, user: User, code: str) -> bool:
        raise NotImplementedError
