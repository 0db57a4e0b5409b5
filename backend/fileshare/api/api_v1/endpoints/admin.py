from datetime import timedelta
from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fileshare import crud, models, schemas
from fileshare.api import deps
from fileshare.core.config import settings
from fileshare.services.shares import ShareLifecycleManager
from fileshare.utils.clock import utcnow

router = APIRouter()

@router.get("/files", response_model=List[schemas.FileRecord])
def read_all_files(
    db: Session = Depends(deps.get_db),
    skip: int = 0,
    limit: int = 100,
    current_user: models.User = Depends(deps.get_current_admin),
) -> Any:
    """
    Retrieve every active file. (Admin only)
    """
    return crud.file.get_multi_active(db, skip=skip, limit=limit)

@router.get("/stats", response_model=schemas.StorageStats)
def read_storage_stats(
    db: Session = Depends(deps.get_db),
    owner_id: Optional[int] = None,
    current_user: models.User = Depends(deps.get_current_admin),
) -> Any:
    total_files, total_size = crud.file.storage_stats(db, owner_id=owner_id)
    return {"total_files": total_files, "total_size": total_size}

@router.get("/logs", response_model=schemas.AuditLogList)
def read_audit_logs(
    db: Session = Depends(deps.get_db),
    action: Optional[str] = None,
    user_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
    current_user: models.User = Depends(deps.get_current_admin),
) -> Any:
    items, total = crud.audit.get_multi(db, action=action, user_id=user_id, skip=skip, limit=limit)
    return {"items": items, "total": total}

@router.delete("/logs", response_model=schemas.PurgeResult)
def purge_audit_logs(
    db: Session = Depends(deps.get_db),
    older_than_days: int = settings.AUDIT_LOG_RETENTION_DAYS,
    current_user: models.User = Depends(deps.get_current_admin),
) -> Any:
    """
    Drop audit entries older than the retention window.
    """
    cutoff = utcnow() - timedelta(days=max(older_than_days, 0))
    return {"deleted": crud.audit.purge_older_than(db, cutoff=cutoff)}

@router.post("/shares/cleanup", response_model=schemas.CleanupResult)
def cleanup_expired_shares(
    manager: ShareLifecycleManager = Depends(deps.get_share_manager),
    current_user: models.User = Depends(deps.get_current_admin),
) -> Any:
    return {"expired": manager.cleanup_expired_shares()}
