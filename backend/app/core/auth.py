from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt
from fastapi import Depends, HTTPException, Request

from app.core.config import settings

MOCK_TOKEN_PREFIX = "mock-jwt-token-"
MOCK_REFRESH_PREFIX = "mock-refresh-token-"
MOCK_DEFAULT_USER_ID = "mock-user-1"


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity resolved from a request; the id is opaque to the coupon engine."""

    id: str
    role: str = "customer"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def create_access_token(
    user_id: str, role: str = "customer", expires_minutes: int | None = None
) -> str:
    """Issue a signed access token for a user."""
    minutes = expires_minutes if expires_minutes is not None else settings.JWT_EXPIRE_MINUTES
    payload = {
        "sub": str(user_id),
        "role": role,
        "exp": datetime.now(UTC) + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> AuthenticatedUser:
    """Decode and validate an access token.

    Raises jwt.ExpiredSignatureError or jwt.InvalidTokenError on failure.
    """
    payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    subject = payload.get("sub")
    if not subject:
        raise jwt.InvalidTokenError("Token has no subject")
    return AuthenticatedUser(id=str(subject), role=str(payload.get("role") or "customer"))


def resolve_mock_token(token: str, prefix: str) -> AuthenticatedUser | None:
    """Resolve a development token of the form {prefix}{userId}-{timestamp}."""
    if not token.startswith(prefix):
        return None
    parts = token.split("-")
    user_id = parts[3] if len(parts) > 3 and parts[3] else MOCK_DEFAULT_USER_ID
    role = "admin" if user_id in settings.mock_admin_users else "customer"
    return AuthenticatedUser(id=user_id, role=role)


def get_current_user(request: Request) -> AuthenticatedUser:
    """Resolve the caller from the Authorization header.

    With MOCK_AUTH_ENABLED, development tokens in the header or a mock
    refreshToken cookie are accepted as well.
    """
    token = None
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()

    if settings.MOCK_AUTH_ENABLED:
        user = resolve_mock_token(token, MOCK_TOKEN_PREFIX) if token else None
        if user is None:
            cookie = request.cookies.get("refreshToken")
            user = resolve_mock_token(cookie, MOCK_REFRESH_PREFIX) if cookie else None
        if user is not None:
            return user

    if not token:
        raise HTTPException(status_code=401, detail="Not authorized, no valid token")

    try:
        return decode_access_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired") from None
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Not authorized, no valid token") from None


def get_current_admin(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
    """Require an authenticated admin."""
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Not authorized as admin")
    return user
