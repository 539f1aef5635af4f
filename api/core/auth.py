"""Bearer-token authentication.

Provides:
- bcrypt password hashing
- HS256 access tokens (PyJWT) carrying ``sub`` (user id) and ``role``
- FastAPI dependencies for authenticated and admin-only routes

Reads are public; every mutating resource route depends on AdminUser.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Annotated

import bcrypt
import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from core.config import get_settings
from core.database import DbSession
from core.logger import get_logger
from core.wide_event import set_wide_event_fields
from models import User, UserRole
from repositories.user_repository import UserRepository

logger = get_logger(__name__)

# bcrypt only looks at the first 72 bytes
_BCRYPT_MAX_BYTES = 72

_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True, slots=True)
class TokenPayload:
    user_id: str
    role: UserRole
    expires_at: datetime


class InvalidTokenError(Exception):
    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid access token: {reason}")


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """CPU-bound; call through asyncio.to_thread from request handlers."""
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def create_access_token(user_id: str, role: UserRole) -> tuple[str, int]:
    """Return ``(token, expires_in_seconds)``."""
    settings = get_settings()
    expires_in = settings.access_token_expire_minutes * 60
    now = datetime.now(UTC)
    claims = {
        "sub": user_id,
        "role": role.value,
        "iat": now,
        "exp": now + timedelta(seconds=expires_in),
    }
    token = jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return token, expires_in


def decode_access_token(token: str) -> TokenPayload:
    settings = get_settings()
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise InvalidTokenError("expired") from None
    except jwt.InvalidTokenError as e:
        raise InvalidTokenError(type(e).__name__) from None

    try:
        role = UserRole(claims.get("role", UserRole.USER.value))
    except ValueError:
        raise InvalidTokenError("unknown role") from None

    return TokenPayload(
        user_id=str(claims["sub"]),
        role=role,
        expires_at=datetime.fromtimestamp(claims["exp"], UTC),
    )


async def get_current_user(
    request: Request,
    db: DbSession,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)],
) -> User:
    """Raises 401 unless a valid token for an existing user is presented.

    The role is read from the stored user, not the token, so demoting or
    deleting an account takes effect immediately.
    """
    if credentials is None:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_access_token(credentials.credentials)
    except InvalidTokenError as e:
        set_wide_event_fields(auth_error=e.reason)
        raise HTTPException(
            status_code=401,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    user = await UserRepository(db).get_by_id(payload.user_id)
    if user is None:
        set_wide_event_fields(auth_error="unknown_user")
        raise HTTPException(
            status_code=401,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    request.state.user_id = user.id
    set_wide_event_fields(user_id=user.id, user_role=user.role.value)
    return user


async def require_admin(user: Annotated[User, Depends(get_current_user)]) -> User:
    """Raises 403 for authenticated non-admin users."""
    if not user.is_admin:
        logger.warning("auth.admin_required", user_id=user.id)
        raise HTTPException(status_code=403, detail="Admin role required")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
AdminUser = Annotated[User, Depends(require_admin)]
