from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from fileshare import crud, models, schemas
from fileshare.api import deps
from fileshare.core.security import verify_password
from fileshare.models.user import ROLE_ADMIN, ROLE_USER
from fileshare.services.audit import AuditLog

router = APIRouter()

@router.post("/", response_model=schemas.User)
def create_user(
    *,
    db: Session = Depends(deps.get_db),
    audit: AuditLog = Depends(deps.get_audit_log),
    user_in: schemas.UserCreate,
) -> Any:
    """
    Create new user.
    """
    if crud.user.get_by_username(db, username=user_in.username):
        raise HTTPException(
            status_code=400,
            detail="The user with this username already exists in the system.",
        )
    if crud.user.get_by_email(db, email=user_in.email):
        raise HTTPException(
            status_code=400,
            detail="The user with this email already exists in the system.",
        )

    # The first account becomes the administrator
    role = ROLE_ADMIN if crud.user.count(db) == 0 else ROLE_USER
    user = crud.user.create(db, obj_in=user_in, role=role)
    audit.record("user_registered", {"role": role}, user_id=user.id, resource_type="user", resource_id=user.id)
    return user

@router.get("/me", response_model=schemas.User)
def read_user_me(
    current_user: models.User = Depends(deps.get_current_user),
) -> Any:
    """
    Get current user.
    """
    return current_user

@router.put("/me/password", response_model=schemas.User)
def update_user_me_password(
    *,
    db: Session = Depends(deps.get_db),
    audit: AuditLog = Depends(deps.get_audit_log),
    password_in: schemas.UserUpdatePassword,
    current_user: models.User = Depends(deps.get_current_user),
) -> Any:
    """
    Update current user's password.
    """
    if not verify_password(password_in.current_password, current_user.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")

    user = crud.user.update_password(db, user=current_user, new_password=password_in.new_password)
    audit.record("password_changed", user_id=user.id, resource_type="user", resource_id=user.id)
    return user

@router.get("/", response_model=List[schemas.User])
def read_users(
    db: Session = Depends(deps.get_db),
    skip: int = 0,
    limit: int = 100,
    current_user: models.User = Depends(deps.get_current_admin),
) -> Any:
    """
    Retrieve users. (Admin only)
    """
    return crud.user.get_multi(db, skip=skip, limit=limit)

@router.put("/{user_id}", response_model=schemas.User)
def update_user(
    *,
    db: Session = Depends(deps.get_db),
    audit: AuditLog = Depends(deps.get_audit_log),
    user_id: int,
    user_in: schemas.UserUpdate,
    current_user: models.User = Depends(deps.get_current_admin),
) -> Any:
    """
    Update a user. (Admin only)
    """
    user = crud.user.get(db, id=user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    user = crud.user.update(db, db_obj=user, obj_in=user_in)
    audit.record(
        "user_updated",
        {"fields": sorted(user_in.model_dump(exclude_unset=True))},
        user_id=current_user.id,
        resource_type="user",
        resource_id=user.id,
    )
    return user
