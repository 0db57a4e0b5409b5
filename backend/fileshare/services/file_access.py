"""
Authorization for direct (non-share) access to file records.

This module is the only place that decides who may act on a file. Owners and
admins always pass; everyone else needs an unexpired grant in the
``file_permission`` table for their user id or role.
"""
import enum
import logging
from typing import Dict, FrozenSet, Optional

from sqlalchemy.orm import Session

from fileshare import crud
from fileshare.core.errors import AccessDeniedError, NotFoundError
from fileshare.models.file import FileRecord
from fileshare.models.user import User
from fileshare.utils.clock import Clock, utcnow

logger = logging.getLogger(__name__)


class AccessLevel(str, enum.Enum):
    READ = "read"
    WRITE = "write"
    DELETE = "delete"
    ADMIN = "admin"


# Grant types that satisfy each requested level
_SATISFIED_BY: Dict[AccessLevel, FrozenSet[str]] = {
    AccessLevel.READ: frozenset({"read", "write", "admin"}),
    AccessLevel.WRITE: frozenset({"write", "admin"}),
    AccessLevel.DELETE: frozenset({"delete", "admin"}),
    AccessLevel.ADMIN: frozenset({"admin"}),
}


class FileAccessGate:
    def __init__(self, db: Session, *, clock: Clock = utcnow):
        self.db = db
        self.clock = clock

    def _active_user(self, user_id: int) -> Optional[User]:
        user = crud.user.get(self.db, id=user_id)
        if user is None or not user.is_active:
            return None
        return user

    def is_admin(self, user_id: int) -> bool:
        user = self._active_user(user_id)
        return user is not None and user.is_admin

    def _allowed(self, file: FileRecord, user_id: int, required_level: AccessLevel) -> bool:
        if file.owner_id == user_id:
            return True
        user = self._active_user(user_id)
        if user is None:
            return False
        if user.is_admin:
            return True
        grants = crud.permission.get_active_grants(
            self.db, file_id=file.id, user_id=user_id, role=user.role, now=self.clock()
        )
        accepted = _SATISFIED_BY[AccessLevel(required_level)]
        return any(grant.permission_type in accepted for grant in grants)

    def can_access(
        self, file_id: int, user_id: int, required_level: AccessLevel = AccessLevel.READ
    ) -> bool:
        file = crud.file.get_active(self.db, id=file_id)
        if file is None:
            return False
        return self._allowed(file, user_id, required_level)

    def require(
        self,
        file_id: int,
        user_id: int,
        required_level: AccessLevel = AccessLevel.READ,
        *,
        include_deleted: bool = False,
    ) -> FileRecord:
        """Return the file or raise NotFoundError / AccessDeniedError."""
        if include_deleted:
            file = crud.file.get(self.db, id=file_id)
        else:
            file = crud.file.get_active(self.db, id=file_id)
        if file is None:
            raise NotFoundError("File not found")
        if not self._allowed(file, user_id, required_level):
            logger.warning(
                "User %s denied %s access to file %s", user_id, AccessLevel(required_level).value, file_id
            )
            raise AccessDeniedError()
        return file
