from typing import Optional, List
from pydantic import BaseModel, Field
from datetime import date, datetime

class ShareCreate(BaseModel):
    file_id: int
    password: Optional[str] = None
    expires_at: Optional[datetime] = None
    download_limit: Optional[int] = None
    allow_preview: bool = True

class ShareUpdate(BaseModel):
    expires_at: Optional[datetime] = None
    download_limit: Optional[int] = None
    allow_preview: Optional[bool] = None
    password: Optional[str] = None

    class Config:
        # Unknown keys are passed through so the service can reject them
        extra = "allow"

class Share(BaseModel):
    id: int
    token: str
    file_id: Optional[int] = None
    owner_id: int
    requires_password: bool
    allow_preview: bool
    expires_at: Optional[datetime] = None
    download_limit: Optional[int] = None
    download_count: int
    is_active: bool
    created_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    share_url: Optional[str] = None

    class Config:
        from_attributes = True

class ShareList(BaseModel):
    items: List[Share]
    total: int
    page: int
    pages: int

# Public info for share page (hide sensitive info)
class ShareInfo(BaseModel):
    token: str
    file_name: str
    file_size: int
    mime_type: str
    allow_preview: bool
    expires_at: Optional[datetime] = None
    download_limit: Optional[int] = None
    download_count: int

class ShareAccess(BaseModel):
    password: Optional[str] = None

class ShareAnalytics(BaseModel):
    day: date
    shares_created: int
    total_downloads: int

class CleanupResult(BaseModel):
    expired: int = Field(..., ge=0)
