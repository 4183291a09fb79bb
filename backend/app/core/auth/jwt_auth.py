"""
JWT utilities and FastAPI dependency for authenticated users.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from backend.app.core.config import Settings
from backend.app.core.errors import AuthenticationFailure
from backend.app.core.resources import AppResources, get_resources

security_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthenticatedUser:
    id: str
    name: str = ""


def create_access_token(settings: Settings, user_id: str, name: str = "", expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT token."""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    to_encode = {"sub": user_id, "name": name, "exp": expire, "iat": now}
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(settings: Settings, token: str) -> AuthenticatedUser:
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        raise AuthenticationFailure("Invalid authentication token") from exc

    user_id = str(payload.get("sub") or "").strip()
    if not user_id:
        raise AuthenticationFailure("Invalid authentication token")
    return AuthenticatedUser(id=user_id, name=str(payload.get("name") or ""))


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    resources: AppResources = Depends(get_resources),
) -> AuthenticatedUser:
    """FastAPI dependency to get the current user from Authorization: Bearer <token>."""
    if credentials is None:
        raise AuthenticationFailure("Missing authentication token")

    user = decode_access_token(resources.settings, credentials.credentials)
    request.state.user = user
    return user
