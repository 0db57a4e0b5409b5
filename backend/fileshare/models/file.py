from sqlalchemy import Column, Integer, String, BigInteger, ForeignKey, DateTime, CheckConstraint
from sqlalchemy.orm import relationship
from fileshare.db.base_class import Base
from fileshare.utils.clock import utcnow

class FileRecord(Base):
    __tablename__ = "file_record"

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("sys_user.id"), nullable=False, index=True)
    stored_key = Column(String(512), nullable=False)
    original_name = Column(String(255), nullable=False)
    size_bytes = Column(BigInteger, nullable=False, default=0)
    mime_type = Column(String(100), nullable=False, default="application/octet-stream")
    # sha256 of the bytes at upload time, never re-verified
    content_hash = Column(String(64), nullable=False, index=True)

    # Recycle Bin field
    deleted_at = Column(DateTime, nullable=True, index=True)

    # Time fields
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    owner = relationship("User")

    __table_args__ = (
        CheckConstraint("size_bytes >= 0", name="ck_file_record_size_non_negative"),
        # Ids of purged files are never handed out again
        {"sqlite_autoincrement": True},
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

class FilePermission(Base):
    """Explicit per-file grant to a user or to every user holding a role."""
    __tablename__ = "file_permission"

    id = Column(Integer, primary_key=True, index=True)
    file_id = Column(Integer, ForeignKey("file_record.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("sys_user.id"), nullable=True, index=True)
    role = Column(String(20), nullable=True, index=True)
    permission_type = Column(String(20), nullable=False)
    granted_by = Column(Integer, ForeignKey("sys_user.id"), nullable=False)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
