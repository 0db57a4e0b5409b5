from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session
from fileshare.models.audit import AuditLog
from fileshare.utils.clock import utcnow

class CRUDAuditLog:
    def create(
        self, db: Session, *, action: str, details: Optional[Dict[str, Any]] = None,
        user_id: Optional[int] = None, resource_type: Optional[str] = None,
        resource_id: Optional[int] = None, success: bool = True
    ) -> AuditLog:
        db_obj = AuditLog(
            user_id=user_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=details,
            success=success,
            created_at=utcnow()
        )
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def get_multi(
        self, db: Session, *, action: Optional[str] = None, user_id: Optional[int] = None,
        skip: int = 0, limit: int = 100
    ) -> Tuple[List[AuditLog], int]:
        query = db.query(AuditLog)
        if action:
            query = query.filter(AuditLog.action == action)
        if user_id is not None:
            query = query.filter(AuditLog.user_id == user_id)
        total = query.count()
        items = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(skip).limit(limit).all()
        return items, total

    def purge_older_than(self, db: Session, *, cutoff: datetime) -> int:
        deleted = db.query(AuditLog).filter(AuditLog.created_at < cutoff).delete(synchronize_session=False)
        db.commit()
        return deleted

audit = CRUDAuditLog()
