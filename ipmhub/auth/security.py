import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..config import settings
from ..logging import bind_user
from ..schemas.users import User
from ..services.data_context import DataContext


http_bearer = HTTPBearer(auto_error=False)


def get_context(request: Request) -> DataContext:
    return request.app.state.ctx


def create_access_token(user_key: str, role: str) -> str:
    now = datetime.now(tz=timezone.utc)
    payload = {
        "sub": user_key,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=settings.jwt_ttl_seconds)).timestamp()),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


def authenticate(ctx: DataContext, username: str, password: str) -> Optional[User]:
    """Case-insensitive username, exact password, active accounts only."""
    wanted = (username or "").strip().lower()
    for u in ctx.users:
        if u.username.lower() != wanted or not u.active:
            continue
        if secrets.compare_digest(u.password.encode("utf-8"), (password or "").encode("utf-8")):
            return u
    return None


def get_current_user(
    creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer),
    ctx: DataContext = Depends(get_context),
) -> User:
    if creds is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    payload = decode_token(creds.credentials)
    user = ctx.get_user(payload.get("sub"))
    if user is None or not user.active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not active")
    bind_user(user.key, user.role.value)
    return user


def require_roles(*allowed_roles: str):
    """Allow the request when the user holds any of the given roles."""
    def _dep(user: User = Depends(get_current_user)):
        if user.role.value not in allowed_roles:
            raise HTTPException(status_code=403, detail="Forbidden")
        return user

    return _dep
