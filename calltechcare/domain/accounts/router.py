"""Accounts router - sign up, both sign-in flows, password reset and profile"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ...auth import (
    AUTH_COOKIE_MAX_AGE,
    AUTH_COOKIE_NAME,
    SESSION_COOKIE_NAME,
    get_current_user,
    get_optional_user,
)
from ...config import COOKIE_SECURE
from ...database import get_db
from ...models import User
from ...rate_limiter import auth_rate_limit, password_reset_rate_limit, signup_rate_limit
from .schemas import (
    CredentialsRequest,
    ForgotPasswordRequest,
    ProfileUpdate,
    ResetPasswordRequest,
    SignInResponse,
    SignupRequest,
)
from .service import AccountService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Accounts"])


def get_account_service(db: Session = Depends(get_db)) -> AccountService:
    """Dependency injection for AccountService"""
    return AccountService(db)


def _set_cookie(response: Response, name: str, value: str):
    response.set_cookie(
        name,
        value,
        max_age=AUTH_COOKIE_MAX_AGE,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


# ============================================================================
# REGISTRATION & SIGN IN
# ============================================================================


@router.post("/signup", dependencies=[Depends(signup_rate_limit)])
async def signup(data: SignupRequest, service: AccountService = Depends(get_account_service)):
    await service.signup(data)
    return {"ok": True, "redirect": "/login"}


@router.post("/auth/signin", response_model=SignInResponse, dependencies=[Depends(auth_rate_limit)])
async def signin(
    data: CredentialsRequest,
    response: Response,
    service: AccountService = Depends(get_account_service),
):
    """Credential sign-in: session JWT in the body and in the session_token cookie"""
    user = service.authenticate(data)
    token = service.issue_session_token(user)
    _set_cookie(response, SESSION_COOKIE_NAME, token)
    logger.info(f"✅ User {user.id} signed in")
    return {"ok": True, "token": token, "user": service.to_response(user)}


@router.post("/login", dependencies=[Depends(auth_rate_limit)])
async def login(
    data: CredentialsRequest,
    response: Response,
    service: AccountService = Depends(get_account_service),
):
    """Custom login form: signed token in the auth cookie"""
    user = service.authenticate(data)
    _set_cookie(response, AUTH_COOKIE_NAME, service.issue_auth_cookie(user))
    return {"ok": True, "user": {"name": user.name, "email": user.email}}


@router.post("/logout")
async def logout(response: Response):
    for name in (AUTH_COOKIE_NAME, SESSION_COOKIE_NAME):
        response.delete_cookie(name, path="/", secure=COOKIE_SECURE, httponly=True, samesite="lax")
    return {"ok": True}


@router.get("/auth/session")
async def get_session(
    user: Optional[User] = Depends(get_optional_user),
    service: AccountService = Depends(get_account_service),
):
    return {"user": service.to_response(user) if user else None}


# ============================================================================
# PASSWORD RESET
# ============================================================================


@router.post("/auth/forgot", dependencies=[Depends(password_reset_rate_limit)])
async def forgot_password(
    data: ForgotPasswordRequest, service: AccountService = Depends(get_account_service)
):
    return await service.request_password_reset(data.email)


@router.post("/auth/reset", dependencies=[Depends(password_reset_rate_limit)])
async def reset_password(
    data: ResetPasswordRequest, service: AccountService = Depends(get_account_service)
):
    return service.reset_password(data.token, data.password)


# ============================================================================
# PROFILE
# ============================================================================


@router.patch("/profile")
async def update_profile(
    data: ProfileUpdate,
    user: User = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
):
    """Update name and/or phone for the signed-in user"""
    updated = service.update_profile(user, data)
    return {"user": service.to_response(updated)}
