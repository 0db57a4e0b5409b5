"""
Share lifecycle: creation, metadata updates, soft deletion and the expiry sweep.

Metadata goes through this module and counters through
``services.downloads``; nothing else writes to the ``share`` table.
"""
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from fileshare import crud, schemas
from fileshare.core import security
from fileshare.core.config import settings
from fileshare.core.errors import AccessDeniedError, ConflictError, InvalidArgumentError, NotFoundError
from fileshare.models.share import Share
from fileshare.services.audit import AuditLog
from fileshare.services.file_access import AccessLevel, FileAccessGate
from fileshare.services.tokens import TokenGenerator
from fileshare.utils.clock import Clock, as_naive_utc, utcnow

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"expires_at", "download_limit", "allow_preview", "password"})


@dataclass
class ShareHandle:
    share: Share
    share_url: str


def _check_download_limit(value: Any) -> Optional[int]:
    if value is None:
        return None
    # bool is an int subclass but never a meaningful limit
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidArgumentError("download_limit must be a positive integer")
    return value


def _check_expiry(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if not isinstance(value, datetime):
        raise InvalidArgumentError("expires_at must be a datetime")
    return as_naive_utc(value)


class ShareLifecycleManager:
    def __init__(
        self,
        db: Session,
        *,
        gate: FileAccessGate,
        audit: AuditLog,
        tokens: Optional[TokenGenerator] = None,
        clock: Clock = utcnow,
        base_url: str = settings.BASE_URL,
        share_path: str = settings.SHARE_PATH,
    ):
        self.db = db
        self.gate = gate
        self.audit = audit
        self.tokens = tokens or TokenGenerator()
        self.clock = clock
        self.base_url = base_url.rstrip("/")
        self.share_path = "/" + share_path.strip("/")

    def share_url(self, token: str) -> str:
        return f"{self.base_url}{self.share_path}/{token}"

    def _get_managed_share(self, share_id: int, requesting_user_id: int) -> Share:
        share = crud.share.get(self.db, id=share_id)
        if share is None:
            raise NotFoundError("Share not found")
        if share.owner_id != requesting_user_id and not self.gate.is_admin(requesting_user_id):
            logger.warning("User %s denied management of share %s", requesting_user_id, share_id)
            raise AccessDeniedError()
        return share

    def create_share(
        self,
        file_id: int,
        requesting_user_id: int,
        *,
        expires_at: Optional[datetime] = None,
        password: Optional[str] = None,
        download_limit: Optional[int] = None,
        allow_preview: bool = True,
    ) -> ShareHandle:
        if not self.gate.can_access(file_id, requesting_user_id, AccessLevel.WRITE):
            self.audit.record(
                "share_creation_failed",
                {"file_id": file_id, "error": "access denied"},
                user_id=requesting_user_id,
                resource_type="file",
                resource_id=file_id,
                success=False,
            )
            raise AccessDeniedError("Access denied to file")

        download_limit = _check_download_limit(download_limit)
        expires_at = _check_expiry(expires_at)
        now = self.clock()
        if expires_at is not None and expires_at <= now:
            raise InvalidArgumentError("expires_at must be in the future")
        password_hash = security.get_password_hash(password) if password else None

        share = None
        for attempt in range(2):
            record = Share(
                token=self.tokens.generate(),
                file_id=file_id,
                owner_id=requesting_user_id,
                password_hash=password_hash,
                expires_at=expires_at,
                download_limit=download_limit,
                download_count=0,
                allow_preview=bool(allow_preview),
                is_active=True,
                created_at=now,
            )
            try:
                share = crud.share.insert(self.db, db_obj=record)
                break
            except ConflictError:
                if attempt == 1:
                    raise
                logger.warning("Regenerating share token after collision")

        self.audit.record(
            "share_created",
            {
                "file_id": file_id,
                "expires_at": expires_at.isoformat() if expires_at else None,
                "download_limit": download_limit,
                "password_protected": password_hash is not None,
            },
            user_id=requesting_user_id,
            resource_type="share",
            resource_id=share.id,
        )
        return ShareHandle(share=share, share_url=self.share_url(share.token))

    def update_share(
        self, share_id: int, requesting_user_id: int, updates: Mapping[str, Any]
    ) -> Share:
        share = self._get_managed_share(share_id, requesting_user_id)
        if share.deleted_at is not None:
            raise NotFoundError("Share not found")

        rejected = sorted(set(updates) - UPDATABLE_FIELDS)
        if rejected:
            raise InvalidArgumentError(f"Fields cannot be updated: {', '.join(rejected)}")
        if not updates:
            raise InvalidArgumentError("No valid fields to update")

        fields: Dict[str, Any] = {}
        if "expires_at" in updates:
            fields["expires_at"] = _check_expiry(updates["expires_at"])
        if "download_limit" in updates:
            limit = _check_download_limit(updates["download_limit"])
            if limit is not None and limit < share.download_count:
                raise InvalidArgumentError("download_limit cannot be below the current download count")
            fields["download_limit"] = limit
        if "allow_preview" in updates:
            if updates["allow_preview"] is None:
                raise InvalidArgumentError("allow_preview must be true or false")
            fields["allow_preview"] = bool(updates["allow_preview"])
        if "password" in updates:
            password = updates["password"]
            fields["password_hash"] = security.get_password_hash(password) if password else None

        if not crud.share.update_fields(self.db, share_id=share.id, fields=fields):
            current = crud.share.get(self.db, id=share.id)
            if current is None or current.deleted_at is not None:
                raise NotFoundError("Share not found")
            logger.info("Limit update for share %s lost a race with a download", share.id)
            raise InvalidArgumentError("download_limit cannot be below the current download count")
        self.audit.record(
            "share_updated",
            {"fields": sorted(updates)},
            user_id=requesting_user_id,
            resource_type="share",
            resource_id=share.id,
        )
        return crud.share.get(self.db, id=share.id)

    def delete_share(self, share_id: int, requesting_user_id: int) -> None:
        share = self._get_managed_share(share_id, requesting_user_id)
        if share.deleted_at is not None:
            return
        if crud.share.soft_delete(self.db, share_id=share.id, now=self.clock()):
            self.audit.record(
                "share_deleted",
                user_id=requesting_user_id,
                resource_type="share",
                resource_id=share.id,
            )

    def cleanup_expired_shares(self) -> int:
        now = self.clock()
        expired = crud.share.find_expired_active(self.db, now=now)
        count = crud.share.soft_delete_many(self.db, share_ids=[s.id for s in expired], now=now)
        if count > 0:
            logger.info("Expired %d shares", count)
            self.audit.record("expired_shares_cleanup", {"deleted_count": count}, resource_type="share")
        return count

    def list_shares(self, requesting_user_id: int, *, page: int = 1, limit: int = 20) -> schemas.ShareList:
        if page < 1 or limit < 1:
            raise InvalidArgumentError("page and limit must be positive")
        shares = crud.share.get_multi_by_owner(
            self.db, owner_id=requesting_user_id, skip=(page - 1) * limit, limit=limit
        )
        total = crud.share.count_by_owner(self.db, owner_id=requesting_user_id)
        items = [self.to_schema(share) for share in shares]
        return schemas.ShareList(items=items, total=total, page=page, pages=math.ceil(total / limit))

    def get_share_analytics(self, requesting_user_id: int, *, days: int = 30) -> List[schemas.ShareAnalytics]:
        if days < 1:
            raise InvalidArgumentError("days must be positive")
        since = self.clock() - timedelta(days=days)
        rows = crud.share.analytics(self.db, owner_id=requesting_user_id, since=since)
        return [
            schemas.ShareAnalytics(
                day=row.day, shares_created=row.shares_created, total_downloads=row.total_downloads
            )
            for row in rows
        ]

    def to_schema(self, share: Share) -> schemas.Share:
        out = schemas.Share.model_validate(share)
        out.share_url = self.share_url(share.token)
        return out
