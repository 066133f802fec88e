import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..auth import get_current_user, require_leadership
from ..database import get_db
from ..identity import IdentityError, IdentityProvider, get_identity_provider
from .. import models, schemas
from ._deps import require_fields

logger = logging.getLogger(__name__)

router = APIRouter(tags=["users"])

ASSIGNABLE_ROLES = {models.Role.technician.value, models.Role.leadership.value}

USER_NOT_FOUND = (
    "User not found. The user must have a Google account with this email address, "
    "but they do not need to have logged into the kiosk app."
)


@router.post("/preauthorizeUser", response_model=schemas.PreauthorizeResult)
def preauthorize_user(
    payload: schemas.PreauthorizeRequest,
    db: Session = Depends(get_db),
    provider: IdentityProvider = Depends(get_identity_provider),
    leader: models.User = Depends(require_leadership),
):
    require_fields(
        "Missing required fields: email, name, or role.",
        email=payload.email,
        name=payload.name,
        role=payload.role,
    )
    if payload.role not in ASSIGNABLE_ROLES:
        raise HTTPException(status_code=400, detail="Invalid role specified.")
    try:
        account = provider.get_user_by_email(payload.email)
    except IdentityError:
        logger.exception("Error in preauthorizeUser")
        raise HTTPException(status_code=500, detail="Internal Server Error.")
    if account is None:
        raise HTTPException(status_code=404, detail=USER_NOT_FOUND)

    user = db.get(models.User, account.uid) or models.User(id=account.uid)
    user.email = payload.email
    user.name = payload.name
    user.role = models.Role(payload.role)
    db.add(user)
    db.commit()
    logger.info("%s authorized %s as %s", leader.email, payload.email, payload.role)
    return schemas.PreauthorizeResult(
        success=True,
        message=f"User {payload.email} has been authorized with the role: {payload.role}.",
    )


@router.get("/users/me", response_model=schemas.UserOut)
async def read_profile(current_user: models.User = Depends(get_current_user)):
    return current_user


@router.get("/users", response_model=list[schemas.UserOut])
async def list_users(
    db: Session = Depends(get_db),
    leader: models.User = Depends(require_leadership),
):
    return (
        db.query(models.User)
        .filter(models.User.role != models.Role.guest)
        .order_by(models.User.email)
        .all()
    )


@router.post("/users/{user_id}/revoke", response_model=schemas.UserOut)
async def revoke_user(
    user_id: str,
    db: Session = Depends(get_db),
    leader: models.User = Depends(require_leadership),
):
    user = db.get(models.User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    user.role = models.Role.guest
    db.commit()
    db.refresh(user)
    return user
