from typing import Optional, List
from pydantic import BaseModel
from datetime import datetime

# Properties to receive on item creation
class FileRecordCreate(BaseModel):
    stored_key: str
    original_name: str
    size_bytes: int = 0
    mime_type: str = "application/octet-stream"
    content_hash: str

# Properties to receive on item update
class FileRecordUpdate(BaseModel):
    original_name: Optional[str] = None

# Properties to return to client
class FileRecord(BaseModel):
    id: int
    owner_id: int
    original_name: str
    size_bytes: int
    mime_type: str
    content_hash: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    class Config:
        from_attributes = True

# Response for file list
class FileList(BaseModel):
    items: List[FileRecord]
    total: int

class FilePermissionCreate(BaseModel):
    user_id: Optional[int] = None
    role: Optional[str] = None
    permission_type: str
    expires_at: Optional[datetime] = None

class FilePermission(BaseModel):
    id: int
    file_id: int
    user_id: Optional[int] = None
    role: Optional[str] = None
    permission_type: str
    granted_by: int
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class StorageStats(BaseModel):
    total_files: int
    total_size: int
