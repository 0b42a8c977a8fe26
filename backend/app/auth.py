"""Authentication utilities for TalentPay backend.

Requests carry the Supabase access token issued to the web app. The
token's ``sub`` is the profile ID; the marketplace role comes from
``app_metadata``, which only the service role can write. ``user_metadata``
is editable by the user and is never consulted.
"""

from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from .config import Settings, get_settings

# Bearer token scheme
security = HTTPBearer(auto_error=False)


def create_access_token(
    settings: Settings,
    user_id: str,
    role: str = "founder",
    expires_delta: timedelta | None = None,
) -> str:
    """Create a Supabase-compatible access token (used by tests and scripts)."""
    now = datetime.now(timezone.utc)
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.jwt_expire_minutes)

    to_encode = {
        "sub": user_id,
        "aud": settings.jwt_audience,
        "exp": expire,
        "iat": now,
        "role": "authenticated",
        "app_metadata": {"role": role},
    }
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict:
    """Decode and validate a JWT token."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
        return payload
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthContext:
    """Context from the access token."""

    def __init__(self, user_id: str, role: str | None = None):
        self.user_id = user_id
        self.role = role

    @property
    def is_founder(self) -> bool:
        return self.role == "founder"

    @property
    def is_talent(self) -> bool:
        return self.role == "talent"


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> AuthContext:
    """Get the authenticated user from the bearer token."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated - provide Authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(credentials.credentials, settings)
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )
    app_metadata = payload.get("app_metadata") or {}
    return AuthContext(user_id=user_id, role=app_metadata.get("role"))


# Type alias for dependency injection
CurrentUser = Annotated[AuthContext, Depends(get_current_user)]
