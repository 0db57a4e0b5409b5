from typing import Any, Dict, Optional, List
from datetime import datetime
from pydantic import BaseModel

class AuditLogEntry(BaseModel):
    id: int
    user_id: Optional[int] = None
    action: str
    resource_type: Optional[str] = None
    resource_id: Optional[int] = None
    details: Optional[Dict[str, Any]] = None
    success: bool
    created_at: datetime

    class Config:
        from_attributes = True

class AuditLogList(BaseModel):
    items: List[AuditLogEntry]
    total: int

class PurgeResult(BaseModel):
    deleted: int
