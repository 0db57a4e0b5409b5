import logging
from typing import Any, List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from fileshare import crud, models, schemas
from fileshare.api import deps
from fileshare.services.audit import AuditLog
from fileshare.services.file_access import AccessLevel, FileAccessGate
from fileshare.services.storage import LocalBlobStore, guess_mime_type

logger = logging.getLogger(__name__)

router = APIRouter()


def attachment_headers(file_name: str, size: int) -> dict:
    # URL encode the filename to handle non-ASCII characters
    encoded_filename = quote(file_name)
    return {
        "Content-Disposition": f"attachment; filename*=UTF-8''{encoded_filename}",
        "Content-Length": str(size),
    }


def _release_blob(db: Session, blob_store: LocalBlobStore, stored_key: str) -> None:
    # Blobs are shared between identical uploads
    if crud.file.count_by_key(db, stored_key=stored_key) == 0:
        blob_store.delete(stored_key)


@router.post("/upload", response_model=schemas.FileRecord)
def upload_file(
    *,
    db: Session = Depends(deps.get_db),
    current_user: models.User = Depends(deps.get_current_user),
    blob_store: LocalBlobStore = Depends(deps.get_blob_store),
    audit: AuditLog = Depends(deps.get_audit_log),
    file: UploadFile = File(...),
) -> Any:
    if not file.filename:
        raise HTTPException(status_code=400, detail="File name is required")

    blob = blob_store.store(file.file)
    if current_user.quota_used + blob.size_bytes > current_user.quota_total:
        _release_blob(db, blob_store, blob.key)
        raise HTTPException(status_code=400, detail="Storage quota exceeded")

    record = crud.file.create_with_owner(
        db,
        obj_in=schemas.FileRecordCreate(
            stored_key=blob.key,
            original_name=file.filename,
            size_bytes=blob.size_bytes,
            mime_type=guess_mime_type(file.filename, file.content_type),
            content_hash=blob.content_hash,
        ),
        owner_id=current_user.id,
    )
    crud.user.update_quota_used(db, user=current_user, size_delta=record.size_bytes)
    audit.record(
        "file_upload",
        {"file_name": record.original_name, "size": record.size_bytes},
        user_id=current_user.id,
        resource_type="file",
        resource_id=record.id,
    )
    return record


@router.get("", response_model=List[schemas.FileRecord])
def read_files(
        db: Session = Depends(deps.get_db),
        current_user: models.User = Depends(deps.get_current_user),
        search: Optional[str] = None,
        trash: bool = False,
        skip: int = 0,
        limit: int = 100,
) -> Any:
    files = crud.file.get_multi_by_owner(
        db, owner_id=current_user.id, search=search, trash=trash, skip=skip, limit=limit
    )
    return files


@router.get("/{file_id}", response_model=schemas.FileRecord)
def read_file(
        file_id: int,
        current_user: models.User = Depends(deps.get_current_user),
        gate: FileAccessGate = Depends(deps.get_access_gate),
) -> Any:
    return gate.require(file_id, current_user.id, AccessLevel.READ)


@router.get("/{file_id}/download")
def download_file(
        file_id: int,
        current_user: models.User = Depends(deps.get_current_user),
        gate: FileAccessGate = Depends(deps.get_access_gate),
        blob_store: LocalBlobStore = Depends(deps.get_blob_store),
        audit: AuditLog = Depends(deps.get_audit_log),
) -> Any:
    file = gate.require(file_id, current_user.id, AccessLevel.READ)
    stream = blob_store.stream_bytes(file.stored_key)
    audit.record(
        "file_download",
        {"file_name": file.original_name},
        user_id=current_user.id,
        resource_type="file",
        resource_id=file.id,
    )
    return StreamingResponse(
        stream,
        media_type=file.mime_type,
        headers=attachment_headers(file.original_name, file.size_bytes),
    )


@router.delete("/{file_id}", response_model=schemas.FileRecord)
def delete_file(
        file_id: int,
        db: Session = Depends(deps.get_db),
        current_user: models.User = Depends(deps.get_current_user),
        gate: FileAccessGate = Depends(deps.get_access_gate),
        audit: AuditLog = Depends(deps.get_audit_log),
) -> Any:
    """
    Move a file to the trash.
    """
    file = gate.require(file_id, current_user.id, AccessLevel.DELETE, include_deleted=True)
    file = crud.file.remove(db, file=file)
    audit.record("file_delete", user_id=current_user.id, resource_type="file", resource_id=file.id)
    return file


@router.post("/{file_id}/restore", response_model=schemas.FileRecord)
def restore_file(
        file_id: int,
        db: Session = Depends(deps.get_db),
        current_user: models.User = Depends(deps.get_current_user),
        gate: FileAccessGate = Depends(deps.get_access_gate),
        audit: AuditLog = Depends(deps.get_audit_log),
) -> Any:
    file = gate.require(file_id, current_user.id, AccessLevel.DELETE, include_deleted=True)
    file = crud.file.restore(db, file=file)
    audit.record("file_restore", user_id=current_user.id, resource_type="file", resource_id=file.id)
    return file


@router.delete("/{file_id}/purge")
def purge_file(
        file_id: int,
        db: Session = Depends(deps.get_db),
        current_user: models.User = Depends(deps.get_current_user),
        gate: FileAccessGate = Depends(deps.get_access_gate),
        blob_store: LocalBlobStore = Depends(deps.get_blob_store),
        audit: AuditLog = Depends(deps.get_audit_log),
) -> Any:
    """
    Permanently remove a file record and, when unreferenced, its bytes.
    """
    file = gate.require(file_id, current_user.id, AccessLevel.DELETE, include_deleted=True)
    owner = crud.user.get(db, id=file.owner_id)
    stored_key, size, name = file.stored_key, file.size_bytes, file.original_name
    crud.file.permanent_remove(db, file=file)
    _release_blob(db, blob_store, stored_key)
    if owner:
        crud.user.update_quota_used(db, user=owner, size_delta=-size)
    audit.record(
        "file_purge",
        {"file_name": name},
        user_id=current_user.id,
        resource_type="file",
        resource_id=file_id,
    )
    return {"message": "File permanently deleted"}


@router.get("/{file_id}/permissions", response_model=List[schemas.FilePermission])
def read_file_permissions(
        file_id: int,
        db: Session = Depends(deps.get_db),
        current_user: models.User = Depends(deps.get_current_user),
        gate: FileAccessGate = Depends(deps.get_access_gate),
) -> Any:
    gate.require(file_id, current_user.id, AccessLevel.ADMIN)
    return crud.permission.get_multi_by_file(db, file_id=file_id)


@router.post("/{file_id}/permissions", response_model=schemas.FilePermission)
def grant_file_permission(
        file_id: int,
        grant_in: schemas.FilePermissionCreate,
        db: Session = Depends(deps.get_db),
        current_user: models.User = Depends(deps.get_current_user),
        gate: FileAccessGate = Depends(deps.get_access_gate),
        audit: AuditLog = Depends(deps.get_audit_log),
) -> Any:
    gate.require(file_id, current_user.id, AccessLevel.ADMIN)
    if (grant_in.user_id is None) == (grant_in.role is None):
        raise HTTPException(status_code=400, detail="Grant either a user_id or a role")
    if grant_in.permission_type not in {level.value for level in AccessLevel}:
        raise HTTPException(status_code=400, detail="Unknown permission type")
    grant = crud.permission.create_grant(db, file_id=file_id, obj_in=grant_in, granted_by=current_user.id)
    audit.record(
        "permission_granted",
        {"user_id": grant.user_id, "role": grant.role, "permission_type": grant.permission_type},
        user_id=current_user.id,
        resource_type="file",
        resource_id=file_id,
    )
    return grant


@router.delete("/{file_id}/permissions/{permission_id}")
def revoke_file_permission(
        file_id: int,
        permission_id: int,
        db: Session = Depends(deps.get_db),
        current_user: models.User = Depends(deps.get_current_user),
        gate: FileAccessGate = Depends(deps.get_access_gate),
        audit: AuditLog = Depends(deps.get_audit_log),
) -> Any:
    gate.require(file_id, current_user.id, AccessLevel.ADMIN)
    grant = crud.permission.get(db, id=permission_id)
    if not grant or grant.file_id != file_id:
        raise HTTPException(status_code=404, detail="Permission not found")
    crud.permission.remove(db, grant=grant)
    audit.record("permission_revoked", user_id=current_user.id, resource_type="file", resource_id=file_id)
    return {"message": "Permission revoked"}
