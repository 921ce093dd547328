import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .config import SESSION_TOKEN_EXPIRE_DAYS
from .database import get_db
from .models import User
from .security_utils import verify_auth_cookie_token, verify_session_token

logger = logging.getLogger(__name__)

# Cookie set by credential sign-in (JWT) and by the custom login flow (signed token)
SESSION_COOKIE_NAME = "session_token"
AUTH_COOKIE_NAME = "auth"
AUTH_COOKIE_MAX_AGE = SESSION_TOKEN_EXPIRE_DAYS * 24 * 60 * 60

security = HTTPBearer(auto_error=False)


def _user_from_session_token(token: str, db: Session) -> Optional[User]:
    payload = verify_session_token(token)
    if not payload:
        return None
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        logger.warning("⚠️ Session token without a usable subject claim")
        return None
    return db.query(User).filter(User.id == user_id).first()


def _user_from_auth_cookie(token: str, db: Session) -> Optional[User]:
    payload = verify_auth_cookie_token(token, max_age=AUTH_COOKIE_MAX_AGE)
    if not payload:
        return None
    return db.query(User).filter(User.id == payload.get("uid")).first()


def resolve_user(
    request: Request, credentials: Optional[HTTPAuthorizationCredentials], db: Session
) -> Optional[User]:
    """
    Resolve the caller from, in order:
    1. Authorization: Bearer <session JWT>
    2. session_token cookie (session JWT)
    3. auth cookie (signed token from /api/login)
    The first credential present decides; an invalid one is not retried against the others.
    """
    if credentials and credentials.credentials:
        return _user_from_session_token(credentials.credentials, db)

    session_cookie = request.cookies.get(SESSION_COOKIE_NAME)
    if session_cookie:
        return _user_from_session_token(session_cookie, db)

    auth_cookie = request.cookies.get(AUTH_COOKIE_NAME)
    if auth_cookie:
        return _user_from_auth_cookie(auth_cookie, db)

    return None


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Current user or None for anonymous visitors"""
    return resolve_user(request, credentials, db)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """Current user; 401 when the request is not signed in"""
    user = resolve_user(request, credentials, db)
    if not user:
        logger.info(f"🔒 Unauthenticated request to {request.url.path}")
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user
