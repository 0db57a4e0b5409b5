import io
import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Body
from fastapi.responses import StreamingResponse
from PIL import Image

from fileshare import models, schemas
from fileshare.api import deps
from fileshare.api.api_v1.endpoints.files import attachment_headers
from fileshare.core.config import settings
from fileshare.core.errors import ExpiredError, FileShareError, LimitExceededError, NotFoundError
from fileshare.services.audit import AuditLog
from fileshare.services.downloads import ShareDownloadService
from fileshare.services.shares import ShareLifecycleManager

logger = logging.getLogger(__name__)

router = APIRouter()

THUMBNAIL_SIZE = (200, 200)


def _public_error(exc: FileShareError) -> FileShareError:
    """Hide why a link stopped working when strict share errors are on."""
    if settings.STRICT_SHARE_ERRORS and isinstance(exc, (NotFoundError, ExpiredError, LimitExceededError)):
        return NotFoundError("This link is no longer valid")
    return exc


@router.post("/", response_model=schemas.Share)
def create_share(
    *,
    current_user: models.User = Depends(deps.get_current_user),
    manager: ShareLifecycleManager = Depends(deps.get_share_manager),
    share_in: schemas.ShareCreate,
) -> Any:
    """
    Create a share link.
    """
    handle = manager.create_share(
        share_in.file_id,
        current_user.id,
        expires_at=share_in.expires_at,
        password=share_in.password,
        download_limit=share_in.download_limit,
        allow_preview=share_in.allow_preview,
    )
    return manager.to_schema(handle.share)

@router.get("/", response_model=schemas.ShareList)
def read_shares(
    *,
    current_user: models.User = Depends(deps.get_current_user),
    manager: ShareLifecycleManager = Depends(deps.get_share_manager),
    page: int = 1,
    limit: int = 20,
) -> Any:
    """
    List the current user's active shares, newest first.
    """
    return manager.list_shares(current_user.id, page=page, limit=limit)

@router.get("/analytics", response_model=List[schemas.ShareAnalytics])
def read_share_analytics(
    *,
    current_user: models.User = Depends(deps.get_current_user),
    manager: ShareLifecycleManager = Depends(deps.get_share_manager),
    days: int = 30,
) -> Any:
    return manager.get_share_analytics(current_user.id, days=days)

@router.put("/{share_id}", response_model=schemas.Share)
def update_share(
    *,
    share_id: int,
    current_user: models.User = Depends(deps.get_current_user),
    manager: ShareLifecycleManager = Depends(deps.get_share_manager),
    share_in: schemas.ShareUpdate,
) -> Any:
    """
    Change expiry, download limit, preview flag or password of a share.
    """
    share = manager.update_share(share_id, current_user.id, share_in.model_dump(exclude_unset=True))
    return manager.to_schema(share)

@router.delete("/{share_id}")
def delete_share(
    *,
    share_id: int,
    current_user: models.User = Depends(deps.get_current_user),
    manager: ShareLifecycleManager = Depends(deps.get_share_manager),
) -> Any:
    manager.delete_share(share_id, current_user.id)
    return {"message": "Share deleted"}

@router.get("/public/{token}", response_model=schemas.ShareInfo)
def get_share_info(
    *,
    token: str,
    password: Optional[str] = None,
    service: ShareDownloadService = Depends(deps.get_share_download_service),
) -> Any:
    """
    Get public share info. Does not count as a download.
    """
    result = service.validator.validate(token, password)
    try:
        share = result.ensure_valid()
    except FileShareError as exc:
        raise _public_error(exc)
    file = result.file
    return {
        "token": share.token,
        "file_name": file.original_name,
        "file_size": file.size_bytes,
        "mime_type": file.mime_type,
        "allow_preview": share.allow_preview,
        "expires_at": share.expires_at,
        "download_limit": share.download_limit,
        "download_count": share.download_count,
    }

@router.post("/public/{token}/download")
def download_shared_file(
    *,
    token: str,
    access: Optional[schemas.ShareAccess] = Body(None),
    service: ShareDownloadService = Depends(deps.get_share_download_service),
    audit: AuditLog = Depends(deps.get_audit_log),
) -> Any:
    """
    Download a shared file (Check password if protected).
    """
    password = access.password if access else None
    try:
        prepared = service.prepare(token, password)
    except FileShareError as exc:
        raise _public_error(exc)

    audit.record(
        "share_download",
        {"file_id": prepared.file.id},
        resource_type="share",
        resource_id=prepared.share.id,
    )
    return StreamingResponse(
        prepared.stream,
        media_type="application/octet-stream",
        headers=attachment_headers(prepared.file.original_name, prepared.file.size_bytes),
    )

@router.get("/public/{token}/preview")
def preview_shared_file(
    *,
    token: str,
    password: Optional[str] = None,
    thumbnail: bool = False,
    service: ShareDownloadService = Depends(deps.get_share_download_service),
) -> Any:
    """
    Inline preview of a shared file; images can be shrunk to a thumbnail.
    """
    try:
        prepared = service.preview(token, password)
    except FileShareError as exc:
        raise _public_error(exc)

    mime_type = prepared.file.mime_type
    if thumbnail and mime_type.startswith("image/"):
        try:
            img = Image.open(io.BytesIO(b"".join(prepared.stream)))
            img.thumbnail(THUMBNAIL_SIZE)
            img_io = io.BytesIO()
            img.save(img_io, format=img.format or "PNG")
            img_io.seek(0)
            return StreamingResponse(img_io, media_type=mime_type)
        except (OSError, Image.DecompressionBombError):
            logger.warning("Thumbnail generation failed for file %s", prepared.file.id, exc_info=True)
            prepared = service.preview(token, password)

    return StreamingResponse(
        prepared.stream,
        media_type=mime_type,
        headers={"Content-Disposition": "inline"},
    )
