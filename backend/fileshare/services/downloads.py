import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from sqlalchemy.orm import Session

from fileshare import crud
from fileshare.core.errors import AccessDeniedError, ExpiredError, LimitExceededError, NotFoundError
from fileshare.models.file import FileRecord
from fileshare.models.share import Share
from fileshare.services.share_access import AccessValidator
from fileshare.services.storage import LocalBlobStore
from fileshare.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)


class DownloadAccountant:
    """
    Counts share downloads.

    The limit check and the increment run as one conditional UPDATE, so for a
    share with limit L at most L concurrent callers ever succeed, whatever
    order their requests arrived in.
    """

    def __init__(self, db: Session, *, clock: Clock = utcnow):
        self.db = db
        self.clock = clock

    def record_download(self, share_id: int) -> None:
        now = self.clock()
        if crud.share.try_increment_download(self.db, share_id=share_id, now=now):
            logger.info("Counted download for share %s", share_id)
            return

        # Lost the race or the share changed since validation; report why
        share = crud.share.get(self.db, id=share_id)
        if share is None or not share.is_active or share.deleted_at is not None:
            raise NotFoundError("Share not found")
        if share.expires_at is not None and share.expires_at <= now:
            raise ExpiredError()
        logger.info("Download limit reached for share %s", share_id)
        raise LimitExceededError()


@dataclass
class PreparedDownload:
    share: Share
    file: FileRecord
    stream: Iterator[bytes]


class ShareDownloadService:
    def __init__(
        self,
        validator: AccessValidator,
        accountant: DownloadAccountant,
        blob_store: LocalBlobStore,
    ):
        self.validator = validator
        self.accountant = accountant
        self.blob_store = blob_store

    def prepare(self, token: str, password: Optional[str] = None) -> PreparedDownload:
        """Validate, count the download, then open the byte stream."""
        result = self.validator.validate(token, password)
        share = result.ensure_valid()
        file = result.file
        if not self.blob_store.exists(file.stored_key):
            logger.error("Blob missing for file %s behind share %s", file.id, share.id)
            raise NotFoundError("Physical file not found")
        self.accountant.record_download(share.id)
        return PreparedDownload(share=share, file=file, stream=self.blob_store.stream_bytes(file.stored_key))

    def preview(self, token: str, password: Optional[str] = None) -> PreparedDownload:
        """Like ``prepare`` but for inline previews: nothing is counted."""
        result = self.validator.validate(token, password)
        share = result.ensure_valid()
        if not share.allow_preview:
            raise AccessDeniedError("Preview is disabled for this share")
        file = result.file
        return PreparedDownload(share=share, file=file, stream=self.blob_store.stream_bytes(file.stored_key))
