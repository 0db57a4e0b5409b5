from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from fileshare.db.base_class import Base
from fileshare.utils.clock import utcnow

class Share(Base):
    __tablename__ = "share"

    id = Column(Integer, primary_key=True, index=True)
    # Unique across live and soft-deleted rows; rows are never hard-deleted
    token = Column(String(64), unique=True, index=True, nullable=False)
    # Left dangling (or nulled) when the file is purged
    file_id = Column(Integer, ForeignKey("file_record.id", ondelete="SET NULL"), nullable=True, index=True)
    owner_id = Column(Integer, ForeignKey("sys_user.id"), nullable=False, index=True) # Creator

    password_hash = Column(String(255), nullable=True)
    allow_preview = Column(Boolean, default=True, nullable=False)

    expires_at = Column(DateTime, nullable=True, index=True)
    download_limit = Column(Integer, nullable=True) # None for unlimited
    download_count = Column(Integer, default=0, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow)
    last_accessed_at = Column(DateTime, nullable=True)
    deleted_at = Column(DateTime, nullable=True)

    owner = relationship("User")

    @property
    def requires_password(self) -> bool:
        return self.password_hash is not None
