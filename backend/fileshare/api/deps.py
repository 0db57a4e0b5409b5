from typing import Generator

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from fileshare import crud, models
from fileshare.core import security
from fileshare.core.config import settings
from fileshare.db.session import SessionLocal
from fileshare.services.audit import AuditLog
from fileshare.services.downloads import DownloadAccountant, ShareDownloadService
from fileshare.services.file_access import FileAccessGate
from fileshare.services.share_access import AccessValidator
from fileshare.services.shares import ShareLifecycleManager
from fileshare.services.storage import LocalBlobStore

reusable_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/login/access-token"
)


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(
    db: Session = Depends(get_db), token: str = Depends(reusable_oauth2)
) -> models.User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    subject = security.decode_access_token(token)
    if subject is None or not subject.isdigit():
        raise credentials_exception
    user = crud.user.get(db, id=int(subject))
    if user is None:
        raise credentials_exception
    if not user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")
    return user


def get_current_admin(
    current_user: models.User = Depends(get_current_user),
) -> models.User:
    if not crud.user.is_admin(current_user):
        raise HTTPException(status_code=403, detail="Not enough permissions")
    return current_user


def get_blob_store() -> LocalBlobStore:
    return LocalBlobStore(settings.STORAGE_PATHS)


def get_audit_log(db: Session = Depends(get_db)) -> AuditLog:
    return AuditLog(db)


def get_access_gate(db: Session = Depends(get_db)) -> FileAccessGate:
    return FileAccessGate(db)


def get_share_manager(
    db: Session = Depends(get_db),
    gate: FileAccessGate = Depends(get_access_gate),
    audit: AuditLog = Depends(get_audit_log),
) -> ShareLifecycleManager:
    return ShareLifecycleManager(db, gate=gate, audit=audit)


def get_share_download_service(
    db: Session = Depends(get_db),
    blob_store: LocalBlobStore = Depends(get_blob_store),
) -> ShareDownloadService:
    return ShareDownloadService(AccessValidator(db), DownloadAccountant(db), blob_store)
