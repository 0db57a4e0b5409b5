from .token import Token, TokenPayload
from .user import User, UserCreate, UserInDB, UserUpdate, UserUpdatePassword
from .file import FileRecord, FileRecordCreate, FileRecordUpdate, FileList, FilePermission, FilePermissionCreate, StorageStats
from .share import Share, ShareCreate, ShareUpdate, ShareList, ShareInfo, ShareAccess, ShareAnalytics, CleanupResult
from .audit import AuditLogEntry, AuditLogList, PurgeResult
