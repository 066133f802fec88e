import hmac
import logging

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from .config import Settings, get_settings
from .database import get_db
from .identity import Identity, IdentityProvider, InvalidToken, get_identity_provider
from . import models

logger = logging.getLogger(__name__)


def get_current_identity(
    authorization: str | None = Header(default=None),
    provider: IdentityProvider = Depends(get_identity_provider),
) -> Identity:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=403, detail="Unauthorized: No token provided.")
    token = authorization.split("Bearer ", 1)[1]
    try:
        return provider.verify_token(token)
    except InvalidToken as exc:
        logger.info("Rejected identity token: %s", exc)
        raise HTTPException(status_code=403, detail="Unauthorized: Invalid token.")


def get_current_user(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> models.User:
    """Stored profile for the caller, or an unsaved guest when none exists yet."""
    user = db.get(models.User, identity.uid)
    if user is None:
        user = models.User(id=identity.uid, email=identity.email or "", role=models.Role.guest)
    return user


def require_role(*roles: models.Role):
    def dependency(
        user: models.User = Depends(get_current_user),
        settings: Settings = Depends(get_settings),
    ) -> models.User:
        if user.role not in roles:
            raise HTTPException(status_code=403, detail="Forbidden: Insufficient permissions.")
        domain = settings.staff_email_domain
        if domain and not (user.email or "").lower().endswith("@" + domain.lower()):
            raise HTTPException(status_code=403, detail="Forbidden: Insufficient permissions.")
        return user

    return dependency


require_staff = require_role(*models.STAFF_ROLES)
require_leadership = require_role(models.Role.leadership)


def require_sync_key(
    x_api_key: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    expected = settings.sheet_sync_api_key
    if not expected or not x_api_key or not hmac.compare_digest(x_api_key, expected):
        raise HTTPException(status_code=401, detail="Unauthorized")
