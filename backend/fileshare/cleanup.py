"""Run one expired-share sweep; meant to be invoked by cron or a similar scheduler."""
import logging

from fileshare.db.session import SessionLocal
from fileshare.services.audit import AuditLog
from fileshare.services.file_access import FileAccessGate
from fileshare.services.shares import ShareLifecycleManager

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

def run() -> int:
    db = SessionLocal()
    try:
        manager = ShareLifecycleManager(db, gate=FileAccessGate(db), audit=AuditLog(db))
        return manager.cleanup_expired_shares()
    finally:
        db.close()

if __name__ == "__main__":
    logger.info("Expired shares cleaned up: %d", run())
