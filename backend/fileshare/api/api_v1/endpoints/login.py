import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from fileshare import crud, schemas
from fileshare.api import deps
from fileshare.core import security
from fileshare.services.audit import AuditLog

logger = logging.getLogger(__name__)

router = APIRouter()

@router.post("/access-token", response_model=schemas.Token)
def login_access_token(
    db: Session = Depends(deps.get_db),
    audit: AuditLog = Depends(deps.get_audit_log),
    form_data: OAuth2PasswordRequestForm = Depends(),
) -> Any:
    """
    OAuth2 compatible token login, get an access token for future requests.
    The username field accepts either a username or an email.
    """
    user = crud.user.authenticate(db, login=form_data.username, password=form_data.password)
    if not user:
        audit.record("login_failed", {"login": form_data.username}, success=False)
        raise HTTPException(status_code=400, detail="Incorrect username or password")
    if not user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")
    audit.record("login", user_id=user.id, resource_type="user", resource_id=user.id)
    return {
        "access_token": security.create_access_token(user.id),
        "token_type": "bearer",
    }
