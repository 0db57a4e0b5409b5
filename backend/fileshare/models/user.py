from sqlalchemy import Column, Integer, String, BigInteger, Boolean, DateTime
from fileshare.db.base_class import Base
from fileshare.utils.clock import utcnow

ROLE_USER = "user"
ROLE_ADMIN = "admin"

class User(Base):
    __tablename__ = "sys_user"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), default=ROLE_USER, nullable=False)
    is_active = Column(Boolean, default=True)
    quota_total = Column(BigInteger, default=1073741824)
    quota_used = Column(BigInteger, default=0)
    created_at = Column(DateTime, default=utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
