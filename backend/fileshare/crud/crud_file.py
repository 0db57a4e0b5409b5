from datetime import datetime
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import func, or_, update
from fileshare.crud.base import CRUDBase
from fileshare.models.file import FileRecord, FilePermission
from fileshare.models.share import Share
from fileshare.schemas.file import FileRecordCreate, FileRecordUpdate, FilePermissionCreate
from fileshare.utils.clock import utcnow

class CRUDFileRecord(CRUDBase[FileRecord, FileRecordCreate, FileRecordUpdate]):
    def create_with_owner(
        self, db: Session, *, obj_in: FileRecordCreate, owner_id: int
    ) -> FileRecord:
        now = utcnow()
        db_obj = FileRecord(
            owner_id=owner_id,
            stored_key=obj_in.stored_key,
            original_name=obj_in.original_name,
            size_bytes=obj_in.size_bytes,
            mime_type=obj_in.mime_type,
            content_hash=obj_in.content_hash,
            created_at=now,
            updated_at=now
        )
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def get_active(self, db: Session, *, id: int) -> Optional[FileRecord]:
        return db.query(FileRecord).filter(
            FileRecord.id == id,
            FileRecord.deleted_at.is_(None)
        ).first()

    def get_multi_by_owner(
        self, db: Session, *, owner_id: int, search: Optional[str] = None,
        trash: bool = False, skip: int = 0, limit: int = 100
    ) -> List[FileRecord]:
        query = db.query(FileRecord).filter(FileRecord.owner_id == owner_id)
        if trash:
            query = query.filter(FileRecord.deleted_at.isnot(None))
        else:
            query = query.filter(FileRecord.deleted_at.is_(None))
        if search:
            query = query.filter(FileRecord.original_name.like(f"%{search}%"))
        return query.order_by(FileRecord.created_at.desc(), FileRecord.id.desc()).offset(skip).limit(limit).all()

    def get_multi_active(self, db: Session, *, skip: int = 0, limit: int = 100) -> List[FileRecord]:
        return (
            db.query(FileRecord)
            .filter(FileRecord.deleted_at.is_(None))
            .order_by(FileRecord.id)
            .offset(skip)
            .limit(limit)
            .all()
        )

    def count_by_key(self, db: Session, *, stored_key: str) -> int:
        return db.query(FileRecord).filter(FileRecord.stored_key == stored_key).count()

    def remove(self, db: Session, *, file: FileRecord) -> FileRecord:
        """
        Soft delete: Mark as deleted. Already deleted files keep their timestamp.
        """
        if file.deleted_at is None:
            now = utcnow()
            file.deleted_at = now
            file.updated_at = now
            db.add(file)
            db.commit()
            db.refresh(file)
        return file

    def restore(self, db: Session, *, file: FileRecord) -> FileRecord:
        file.deleted_at = None
        file.updated_at = utcnow()
        db.add(file)
        db.commit()
        db.refresh(file)
        return file

    def permanent_remove(self, db: Session, *, file: FileRecord) -> None:
        """
        Hard delete: drop the record and its grants. Shares pointing at it are
        detached and soft deleted in the same transaction.
        """
        now = utcnow()
        db.execute(
            update(Share)
            .where(Share.file_id == file.id)
            .values(file_id=None, is_active=False, deleted_at=func.coalesce(Share.deleted_at, now))
            .execution_options(synchronize_session=False)
        )
        db.query(FilePermission).filter(FilePermission.file_id == file.id).delete(synchronize_session=False)
        db.delete(file)
        db.commit()

    def storage_stats(self, db: Session, *, owner_id: Optional[int] = None) -> Tuple[int, int]:
        query = db.query(
            func.count(FileRecord.id),
            func.coalesce(func.sum(FileRecord.size_bytes), 0)
        ).filter(FileRecord.deleted_at.is_(None))
        if owner_id is not None:
            query = query.filter(FileRecord.owner_id == owner_id)
        total_files, total_size = query.one()
        return int(total_files), int(total_size)

file = CRUDFileRecord(FileRecord)


class CRUDFilePermission(CRUDBase[FilePermission, FilePermissionCreate, FilePermissionCreate]):
    def create_grant(
        self, db: Session, *, file_id: int, obj_in: FilePermissionCreate, granted_by: int
    ) -> FilePermission:
        db_obj = FilePermission(
            file_id=file_id,
            user_id=obj_in.user_id,
            role=obj_in.role,
            permission_type=obj_in.permission_type,
            granted_by=granted_by,
            expires_at=obj_in.expires_at,
            created_at=utcnow()
        )
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def get_active_grants(
        self, db: Session, *, file_id: int, user_id: int, role: Optional[str], now: datetime
    ) -> List[FilePermission]:
        subject = FilePermission.user_id == user_id
        if role:
            subject = or_(subject, FilePermission.role == role)
        return db.query(FilePermission).filter(
            FilePermission.file_id == file_id,
            subject,
            or_(FilePermission.expires_at.is_(None), FilePermission.expires_at > now)
        ).all()

    def get_multi_by_file(self, db: Session, *, file_id: int) -> List[FilePermission]:
        return db.query(FilePermission).filter(FilePermission.file_id == file_id).order_by(FilePermission.id).all()

    def remove(self, db: Session, *, grant: FilePermission) -> None:
        db.delete(grant)
        db.commit()

permission = CRUDFilePermission(FilePermission)
