import logging

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from detailing_api.api.responses import ApiError, ErrorCode
from detailing_api.auth import jwt_handler
from detailing_api.core import config
from detailing_api.database import get_db
from detailing_api.models.user import UserProfile

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
) -> UserProfile:
    if credentials is None:
        raise ApiError(ErrorCode.UNAUTHORIZED, "Authentication required")

    try:
        payload = jwt_handler.decode_access_token(credentials.credentials)
    except jwt.PyJWTError as exc:
        logger.info("Rejected access token: %s", exc)
        raise ApiError(ErrorCode.UNAUTHORIZED, "Invalid token") from exc

    user_id = payload.get("sub")
    if not user_id:
        raise ApiError(ErrorCode.UNAUTHORIZED, "Invalid token subject")

    user = db.query(UserProfile).filter(UserProfile.id == user_id).first()
    if user is None or not user.is_active:
        raise ApiError(ErrorCode.UNAUTHORIZED, "User not found")
    return user


def is_admin(user: UserProfile) -> bool:
    return (user.role or "").strip().lower() in config.ADMIN_ROLES


def require_admin(user: UserProfile = Depends(get_current_user)) -> UserProfile:
    if not is_admin(user):
        raise ApiError(ErrorCode.ADMIN_ACCESS_DENIED, "Admin access required")
    return user
