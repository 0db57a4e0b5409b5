import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from fileshare import crud

logger = logging.getLogger(__name__)


class AuditLog:
    """
    Fire-and-forget audit trail stored in the ``audit_log`` table.

    Callers commit their own work before recording, so a failed audit write
    only rolls back the audit row itself.
    """

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        event: str,
        metadata: Optional[Dict[str, Any]] = None,
        *,
        user_id: Optional[int] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[int] = None,
        success: bool = True,
    ) -> None:
        logger.info("audit %s user=%s %s=%s", event, user_id, resource_type, resource_id)
        try:
            crud.audit.create(
                self.db,
                action=event,
                details=metadata,
                user_id=user_id,
                resource_type=resource_type,
                resource_id=resource_id,
                success=success,
            )
        except Exception:
            self.db.rollback()
            logger.warning("Audit log write failed for %s", event, exc_info=True)
