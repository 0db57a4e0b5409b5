import enum
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Type

from sqlalchemy.orm import Session

from fileshare import crud
from fileshare.core import security
from fileshare.core.errors import (
    BadPasswordError,
    ExpiredError,
    FileShareError,
    LimitExceededError,
    NotFoundError,
)
from fileshare.models.file import FileRecord
from fileshare.models.share import Share
from fileshare.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)


class ValidationReason(str, enum.Enum):
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    LIMIT_EXCEEDED = "limit_exceeded"
    BAD_PASSWORD = "bad_password"


_ERRORS: Dict[ValidationReason, Type[FileShareError]] = {
    ValidationReason.NOT_FOUND: NotFoundError,
    ValidationReason.EXPIRED: ExpiredError,
    ValidationReason.LIMIT_EXCEEDED: LimitExceededError,
    ValidationReason.BAD_PASSWORD: BadPasswordError,
}


@dataclass
class ValidationResult:
    valid: bool
    share: Optional[Share] = None
    file: Optional[FileRecord] = None
    reason: Optional[ValidationReason] = None

    def ensure_valid(self) -> Share:
        if not self.valid:
            error = _ERRORS[self.reason]
            if self.reason is ValidationReason.NOT_FOUND:
                raise error("Share not found")
            raise error()
        return self.share


class AccessValidator:
    """
    Decides whether a token (and optional password) grants access right now.

    Reads current state on every call and never writes, so it is safe for
    preview pages that must not count as downloads.
    """

    def __init__(self, db: Session, *, clock: Clock = utcnow):
        self.db = db
        self.clock = clock

    def _reject(self, reason: ValidationReason, share: Optional[Share] = None) -> ValidationResult:
        logger.info(
            "Share validation rejected: %s (share=%s)", reason.value, share.id if share else None
        )
        return ValidationResult(valid=False, share=share, reason=reason)

    def validate(self, token: str, supplied_password: Optional[str] = None) -> ValidationResult:
        if not token:
            return self._reject(ValidationReason.NOT_FOUND)
        share = crud.share.get_by_token(self.db, token=token)
        if share is None:
            return self._reject(ValidationReason.NOT_FOUND)

        now = self.clock()
        # Enforced here as well because the sweep may not have run yet
        if share.expires_at is not None and share.expires_at <= now:
            return self._reject(ValidationReason.EXPIRED, share)

        if share.download_limit is not None and share.download_count >= share.download_limit:
            return self._reject(ValidationReason.LIMIT_EXCEEDED, share)

        if share.password_hash is not None:
            if not supplied_password or not security.verify_password(supplied_password, share.password_hash):
                return self._reject(ValidationReason.BAD_PASSWORD, share)

        file = crud.file.get_active(self.db, id=share.file_id) if share.file_id is not None else None
        if file is None:
            return self._reject(ValidationReason.NOT_FOUND, share)

        return ValidationResult(valid=True, share=share, file=file)
