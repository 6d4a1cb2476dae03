import logging

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.user import User
from .error_handlers import ForbiddenError, UnauthorizedError, get_error_message
from .jwt import decode_access_token

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    db: Session = Depends(get_db),
) -> dict:
    """
    Resolve the bearer token to {"sub", "role", "name"}.

    The role always comes from the stored user row, so a token minted before a
    role/status change can't act with stale privileges.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError(get_error_message("unauthorized"))

    payload = decode_access_token(credentials.credentials)
    if not payload or not payload.get("sub"):
        raise UnauthorizedError(get_error_message("session_expired"))

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise UnauthorizedError(get_error_message("session_expired"))

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise UnauthorizedError("Invalid user")
    if (user.status or "active") != "active":
        logger.info("Rejected request from %s account %s", user.status, user.id)
        raise ForbiddenError(get_error_message("account_disabled"))

    return {"sub": str(user.id), "role": user.role, "name": user.name, "email": user.email}
