from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from ..api.dependencies import get_app_settings, get_db
from ..config import Settings
from ..core.errors import Forbidden, Unauthenticated
from ..models.models import User

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(settings: Settings, data: dict, expires_minutes: Optional[int] = None) -> str:
    expire = datetime.now(timezone.utc) + timedelta(
        minutes=expires_minutes if expires_minutes is not None else settings.access_token_expire_minutes
    )
    to_encode = data.copy()
    to_encode.setdefault("type", "access")
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(settings: Settings, token: str) -> dict:
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> User:
    if credentials is None:
        raise Unauthenticated()
    try:
        payload = decode_token(settings, credentials.credentials)
    except JWTError:
        raise Unauthenticated()

    user_id = payload.get("sub")
    if user_id is None or payload.get("type") not in (None, "access"):
        raise Unauthenticated()
    try:
        user = db.get(User, int(user_id))
    except (TypeError, ValueError):
        raise Unauthenticated()
    if user is None or not user.is_active:
        raise Unauthenticated()
    return user


def require_roles(*allowed_roles: str):
    allowed = set(allowed_roles)

    def role_checker(user: User = Depends(get_current_user)) -> User:
        if not allowed:
            return user
        if user.has_any_role(*allowed):
            return user
        raise Forbidden()

    return role_checker
