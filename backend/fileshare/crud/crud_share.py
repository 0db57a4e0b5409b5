import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from sqlalchemy.orm import Session
from sqlalchemy import update, func, or_
from sqlalchemy.exc import IntegrityError
from fileshare.core.errors import ConflictError
from fileshare.crud.base import CRUDBase
from fileshare.models.share import Share
from fileshare.schemas.share import ShareCreate, ShareUpdate

logger = logging.getLogger(__name__)

# Columns a metadata update may touch; the counter is never among them
UPDATABLE_COLUMNS = frozenset({"expires_at", "download_limit", "allow_preview", "password_hash"})


def _is_live():
    return (Share.is_active.is_(True), Share.deleted_at.is_(None))


class CRUDShare(CRUDBase[Share, ShareCreate, ShareUpdate]):
    def insert(self, db: Session, *, db_obj: Share) -> Share:
        db.add(db_obj)
        try:
            db.commit()
        except IntegrityError:
            # Token uniqueness is enforced by the table
            db.rollback()
            logger.warning("Share token collision on insert")
            raise ConflictError("Share token already issued")
        db.refresh(db_obj)
        return db_obj

    def get_by_token(self, db: Session, *, token: str) -> Optional[Share]:
        return db.query(Share).filter(Share.token == token, *_is_live()).first()

    def get_multi_by_owner(
        self, db: Session, *, owner_id: int, skip: int = 0, limit: int = 20
    ) -> List[Share]:
        return (
            db.query(Share)
            .filter(Share.owner_id == owner_id, *_is_live())
            .order_by(Share.created_at.desc(), Share.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def count_by_owner(self, db: Session, *, owner_id: int) -> int:
        return db.query(Share).filter(Share.owner_id == owner_id, *_is_live()).count()

    def update_fields(self, db: Session, *, share_id: int, fields: Dict[str, Any]) -> bool:
        """
        Apply allow-listed column changes. A new download limit is checked
        against the counter inside the same statement, so a download that
        lands first makes this return False instead of leaving count > limit.
        """
        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Columns not updatable: {sorted(unknown)}")
        conditions = [Share.id == share_id, Share.deleted_at.is_(None)]
        if fields.get("download_limit") is not None:
            conditions.append(Share.download_count <= fields["download_limit"])
        stmt = (
            update(Share)
            .where(*conditions)
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        result = db.execute(stmt)
        db.commit()
        return result.rowcount == 1

    def soft_delete(self, db: Session, *, share_id: int, now: datetime) -> bool:
        """
        Deactivate one share. Returns False when it was already deleted.
        """
        stmt = (
            update(Share)
            .where(Share.id == share_id, Share.deleted_at.is_(None))
            .values(is_active=False, deleted_at=now)
            .execution_options(synchronize_session=False)
        )
        result = db.execute(stmt)
        db.commit()
        return result.rowcount == 1

    def find_expired_active(self, db: Session, *, now: datetime) -> List[Share]:
        return db.query(Share).filter(
            *_is_live(),
            Share.expires_at.isnot(None),
            Share.expires_at <= now
        ).all()

    def soft_delete_many(self, db: Session, *, share_ids: Sequence[int], now: datetime) -> int:
        if not share_ids:
            return 0
        stmt = (
            update(Share)
            .where(Share.id.in_(list(share_ids)), *_is_live())
            .values(is_active=False, deleted_at=now)
            .execution_options(synchronize_session=False)
        )
        result = db.execute(stmt)
        db.commit()
        return result.rowcount

    def try_increment_download(self, db: Session, *, share_id: int, now: datetime) -> bool:
        """
        Count one download if the share is still live, unexpired and under its
        limit. The guard and the increment are a single statement.
        """
        stmt = (
            update(Share)
            .where(
                Share.id == share_id,
                *_is_live(),
                or_(Share.download_limit.is_(None), Share.download_count < Share.download_limit),
                or_(Share.expires_at.is_(None), Share.expires_at > now)
            )
            .values(download_count=Share.download_count + 1, last_accessed_at=now)
            .execution_options(synchronize_session=False)
        )
        result = db.execute(stmt)
        db.commit()
        return result.rowcount == 1

    def analytics(self, db: Session, *, owner_id: int, since: datetime) -> List[Any]:
        day = func.date(Share.created_at)
        return (
            db.query(
                day.label("day"),
                func.count(Share.id).label("shares_created"),
                func.coalesce(func.sum(Share.download_count), 0).label("total_downloads")
            )
            .filter(Share.owner_id == owner_id, Share.created_at >= since)
            .group_by(day)
            .order_by(day.desc())
            .all()
        )

share = CRUDShare(Share)
