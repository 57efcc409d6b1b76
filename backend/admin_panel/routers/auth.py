"""Authentication endpoints.

- POST /register - create an account (bootstrap or superadmin only)
- POST /login - password step; either a token or an OTP challenge
- POST /verify-otp - second step for roles that require an OTP
- POST /resend-otp - issue a fresh OTP for a pending login
- POST /logout - clear the session cookie
- GET /me - current user
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlmodel import Session

from .. import models, services
from ..auth import TOKEN_COOKIE, get_current_user, get_optional_user
from ..config import settings
from ..database import get_session
from ..schemas import LoginIn, RegisterIn, ResendOtpIn, VerifyOtpIn
from ..serializers import user_out
from ..utils.rate_limit import InMemoryRateLimiter
from .common import client_ip

router = APIRouter()
logger = logging.getLogger("admin_panel.auth")

login_limiter = InMemoryRateLimiter()


def _enforce_rate_limit(request: Request) -> None:
    key = f"{client_ip(request)}:{request.url.path}"
    allowed, retry_after = login_limiter.allow(key, settings.LOGIN_RATE_LIMIT_PER_MIN, 60)
    if not allowed:
        logger.warning("rate limit hit %s", key)
        raise HTTPException(
            status_code=429,
            detail=f"Too many attempts. Try again in {retry_after}s",
            headers={"Retry-After": str(retry_after)},
        )


def _set_token_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        httponly=True,
        samesite="lax",
        secure=settings.COOKIE_SECURE,
        max_age=settings.JWT_EXPIRE_HOURS * 3600,
    )


@router.post("/register", status_code=201)
def register(
    payload: RegisterIn,
    db: Session = Depends(get_session),
    caller: Optional[models.User] = Depends(get_optional_user),
):
    """Register an admin account.

    Open while no superadmin exists so the first account can be created;
    afterwards only a logged-in superadmin may register accounts.
    """
    svc = services.AuthService(db)
    if svc.has_superadmin() and (caller is None or caller.role != models.ROLE_SUPERADMIN):
        raise HTTPException(status_code=403, detail="Registration is closed. Ask a superadmin to add your account.")
    try:
        user = svc.register(payload.name, payload.email, payload.password, payload.role)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"msg": "User registered successfully", "userId": user.id}


@router.post("/login")
def login(payload: LoginIn, request: Request, response: Response, db: Session = Depends(get_session)):
    """Password step of the login flow.

    Roles listed in `OTP_REQUIRED_ROLES` get `{requiresOtp, tempToken}`
    and an e-mailed code; other roles get the access token directly.
    """
    _enforce_rate_limit(request)
    svc = services.AuthService(db)
    user = svc.authenticate(payload.email, payload.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if svc.requires_otp(user):
        try:
            temp_token = svc.start_otp(user)
        except services.DeliveryError as e:
            raise HTTPException(status_code=502, detail=str(e))
        return {
            "msg": "OTP sent to your email",
            "requiresOtp": True,
            "tempToken": temp_token,
            "user": user_out(user),
        }
    token = svc.issue_access_token(user)
    _set_token_cookie(response, token)
    return {"msg": "Login successful", "token": token, "user": user_out(user)}


@router.post("/verify-otp")
def verify_otp(payload: VerifyOtpIn, request: Request, response: Response, db: Session = Depends(get_session)):
    _enforce_rate_limit(request)
    svc = services.AuthService(db)
    try:
        user, token = svc.verify_otp(payload.temp_token, payload.otp)
    except services.AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    _set_token_cookie(response, token)
    return {"msg": "Login successful", "token": token, "user": user_out(user)}


@router.post("/resend-otp")
def resend_otp(payload: ResendOtpIn, request: Request, db: Session = Depends(get_session)):
    _enforce_rate_limit(request)
    svc = services.AuthService(db)
    try:
        user, temp_token = svc.resend_otp(payload.temp_token)
    except services.AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except services.CooldownError as e:
        raise HTTPException(status_code=429, detail=str(e), headers={"Retry-After": str(e.retry_after)})
    except services.DeliveryError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"msg": "A new OTP has been sent to your email", "tempToken": temp_token, "user": user_out(user)}


@router.post("/logout")
def logout(response: Response, user: Optional[models.User] = Depends(get_optional_user)):
    response.delete_cookie(TOKEN_COOKIE)
    if user:
        logger.info("logout id=%s", user.id)
    return {"msg": "Logged out successfully"}


@router.get("/me")
def me(user: models.User = Depends(get_current_user)):
    return {"user": user_out(user)}
