"""JWT bearer token validation."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from omihorizn.core.config import settings


class CurrentUser(BaseModel):
    """Authenticated caller as supplied by the identity service."""

    id: uuid.UUID
    role: str = "user"
    email: Optional[str] = None
    name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def create_access_token(
    user_id: uuid.UUID,
    role: str = "user",
    email: Optional[str] = None,
    expires_delta: timedelta = timedelta(minutes=60),
) -> str:
    """Create an access token.

    Args:
        user_id: User UUID
        role: Caller role ("user" or "admin")
        email: Optional email claim
        expires_delta: Token lifetime

    Returns:
        str: Encoded token
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "role": role,
        "type": "access",
        "iat": now,
        "exp": now + expires_delta,
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[CurrentUser]:
    """Decode and validate an access token.

    Returns:
        CurrentUser | None: Caller if the token is valid, None otherwise
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None

    if payload.get("type", "access") != "access":
        return None

    try:
        user_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        return None

    return CurrentUser(
        id=user_id,
        role=payload.get("role", "user"),
        email=payload.get("email"),
        name=payload.get("name"),
    )


security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """FastAPI dependency returning the authenticated caller.

    Raises:
        HTTPException: If the token is invalid or expired
    """
    user = decode_access_token(credentials.credentials)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def require_admin(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user
