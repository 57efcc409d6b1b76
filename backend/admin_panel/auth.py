"""Authentication helpers and FastAPI security dependencies.

This module decodes access tokens and provides the dependencies routes
use to require a logged-in admin. The token is read from the
`Authorization: Bearer` header first and from the `token` cookie set by
the login endpoints second.

Token verification raises HTTPExceptions on failure so the helpers can
be used directly inside route dependencies.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from . import models, repositories, services
from .database import get_session

TOKEN_COOKIE = "token"

bearer_scheme = HTTPBearer(auto_error=False)


def decode_token(token: str) -> dict:
    """Decode and verify an access token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure. Temp tokens from the OTP step are
    rejected here.
    """
    try:
        return services.read_token(token, services.PURPOSE_ACCESS)
    except services.AuthenticationError:
        raise HTTPException(status_code=401, detail="Invalid token")


def _extract_token(request: Request, credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(TOKEN_COOKIE)


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    db: Session = Depends(get_session),
) -> models.User:
    """FastAPI dependency that returns the authenticated user.

    Raises HTTPException(401) when no token is present, when it does not
    verify, or when its user no longer exists.
    """
    token = _extract_token(request, credentials)
    if not token:
        raise HTTPException(status_code=401, detail="Access denied. No token provided.")
    payload = decode_token(token)
    user = repositories.UserRepository(db).get(payload["id"])
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    db: Session = Depends(get_session),
) -> Optional[models.User]:
    """Like `get_current_user` but returns `None` for anonymous callers."""
    token = _extract_token(request, credentials)
    if not token:
        return None
    try:
        payload = services.read_token(token, services.PURPOSE_ACCESS)
    except services.AuthenticationError:
        return None
    return repositories.UserRepository(db).get(payload["id"])


def allow_roles(*roles: str):
    """Dependency factory admitting users whose role is one of `roles`."""
    def checker(user: models.User = Depends(get_current_user)) -> models.User:
        if user.role not in roles:
            raise HTTPException(status_code=403, detail="Access denied. Insufficient permissions.")
        return user
    return checker


def require_role(role: str):
    return allow_roles(role)


require_admin = allow_roles(models.ROLE_ADMIN, models.ROLE_SUPERADMIN)
require_superadmin = require_role(models.ROLE_SUPERADMIN)
