from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from fastapi import HTTPException, status
from fastapi.security import HTTPBearer
from jose import JWTError, jwt

from app.core.config import settings

bearer_scheme = HTTPBearer(auto_error=True)


def _unauthorized(detail: str = "Invalid token") -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _clean_token(token: Optional[str]) -> str:
    # Swagger users paste quoted tokens or a second "Bearer " prefix
    t = (token or "").strip().strip("\"'").strip()
    if t.lower().startswith("bearer "):
        t = t[7:].strip()
    return t


def create_access_token(subject: str | uuid.UUID, expires_minutes: Optional[int] = None) -> str:
    """Signed HS256 token whose `sub` is a users.id."""
    issued = datetime.now(timezone.utc)
    expires = issued + timedelta(minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims: dict[str, Any] = {
        "sub": str(subject),
        "exp": int(expires.timestamp()),
        "iat": int(issued.timestamp()),
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> uuid.UUID:
    """Returns the user id in `sub`; any failure is a 401."""
    token = _clean_token(token)
    if not token:
        raise _unauthorized()

    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            options={"require_sub": True, "require_exp": True},
        )
    except JWTError:
        raise _unauthorized()

    try:
        return uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise _unauthorized("Invalid token subject")
