from .user import User
from .file import FileRecord, FilePermission
from .share import Share
from .audit import AuditLog
