from typing import Any, Dict, Optional, Union
from sqlalchemy.orm import Session
from sqlalchemy import or_

from fileshare.core.config import settings
from fileshare.core.security import get_password_hash, verify_password
from fileshare.crud.base import CRUDBase
from fileshare.models.user import User, ROLE_ADMIN, ROLE_USER
from fileshare.schemas.user import UserCreate, UserUpdate


class CRUDUser(CRUDBase[User, UserCreate, UserUpdate]):
    def get_by_username(self, db: Session, *, username: str) -> Optional[User]:
        return db.query(User).filter(User.username == username).first()

    def get_by_email(self, db: Session, *, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email).first()

    def create(self, db: Session, *, obj_in: UserCreate, role: str = ROLE_USER) -> User:
        db_obj = User(
            username=obj_in.username,
            email=obj_in.email,
            password_hash=get_password_hash(obj_in.password),
            role=role,
            quota_total=settings.DEFAULT_QUOTA_BYTES,
        )
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def update(
        self, db: Session, *, db_obj: User, obj_in: Union[UserUpdate, Dict[str, Any]]
    ) -> User:
        if isinstance(obj_in, dict):
            update_data = dict(obj_in)
        else:
            update_data = obj_in.model_dump(exclude_unset=True)
        # Passwords are only ever stored hashed
        password = update_data.pop("password", None)
        if password:
            update_data["password_hash"] = get_password_hash(password)
        return super().update(db, db_obj=db_obj, obj_in=update_data)

    def authenticate(
        self, db: Session, *, login: str, password: str
    ) -> Optional[User]:
        # Authenticate by username or email
        user = db.query(User).filter(or_(User.username == login, User.email == login)).first()
        if not user:
            return None
        if not verify_password(password, user.password_hash):
            return None
        return user

    def update_quota_used(self, db: Session, *, user: User, size_delta: int) -> User:
        user.quota_used = max(0, (user.quota_used or 0) + size_delta)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    def is_admin(self, user: User) -> bool:
        return user.role == ROLE_ADMIN

    def count(self, db: Session) -> int:
        return db.query(User).count()

    def update_password(self, db: Session, *, user: User, new_password: str) -> User:
        user.password_hash = get_password_hash(new_password)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

user = CRUDUser(User)
