"""
Security Utilities
Password hashing, signed tokens and input sanitization shared by the API
"""

import logging
import re
import secrets
from datetime import datetime, timedelta
from typing import Any, Optional

import bleach
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from jose import JWTError
from jose import jwt as jose_jwt
from passlib.context import CryptContext

from .config import SECRET_KEY, SESSION_TOKEN_EXPIRE_DAYS

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
MIN_PASSWORD_LENGTH = 8

# Salt separating the login cookie from any other itsdangerous payloads
AUTH_COOKIE_SALT = "auth-cookie"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


# ============================================================================
# PASSWORD SECURITY
# ============================================================================


def hash_password(password: str) -> str:
    """Hash password using bcrypt"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against bcrypt hash"""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except Exception as e:
        logger.error(f"Password verification error: {e}")
        return False


def password_policy_error(password: str) -> Optional[str]:
    """Return a user-facing message when the password is unacceptable, else None"""
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
    if password.lower() in {"password", "12345678", "qwertyui", "letmein1"}:
        return "This is a commonly used password - choose something unique"
    return None


# ============================================================================
# TOKEN GENERATION & VALIDATION
# ============================================================================


def generate_reset_token() -> str:
    """32 random bytes, hex encoded"""
    return secrets.token_hex(32)


def create_session_token(user_id: int, email: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create the JWT issued by credential sign-in.

    Args:
        user_id: Database id of the signed-in user
        email: User email, copied into the claims for convenience
        expires_delta: Token lifetime (default SESSION_TOKEN_EXPIRE_DAYS)
    """
    expire = datetime.utcnow() + (expires_delta or timedelta(days=SESSION_TOKEN_EXPIRE_DAYS))
    claims = {"sub": str(user_id), "email": email, "exp": expire}
    return jose_jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def verify_session_token(token: str) -> Optional[dict[str, Any]]:
    """
    Verify and decode a session JWT

    Returns:
        Decoded payload if valid, None if invalid or expired
    """
    try:
        return jose_jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT verification failed: {e}")
        return None


def create_auth_cookie_token(user_id: int, email: str) -> str:
    """Signed token stored in the `auth` cookie by the custom login flow"""
    serializer = URLSafeTimedSerializer(SECRET_KEY)
    return serializer.dumps({"uid": user_id, "email": email}, salt=AUTH_COOKIE_SALT)


def verify_auth_cookie_token(token: str, max_age: int) -> Optional[dict[str, Any]]:
    serializer = URLSafeTimedSerializer(SECRET_KEY)
    try:
        return serializer.loads(token, salt=AUTH_COOKIE_SALT, max_age=max_age)
    except SignatureExpired:
        logger.warning("Auth cookie expired")
        return None
    except BadSignature:
        logger.warning("Invalid auth cookie signature")
        return None


def constant_time_equals(a: str, b: str) -> bool:
    if not a or not b:
        return False
    return secrets.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


# ============================================================================
# INPUT SANITIZATION
# ============================================================================


def sanitize_text(value: Optional[str], max_length: int = 1000) -> str:
    """Strip markup from free text and trim it to max_length"""
    if not value:
        return ""
    cleaned = bleach.clean(value, tags=[], attributes={}, strip=True)
    return cleaned.strip()[:max_length]


def sanitize_phone(phone: Optional[str]) -> str:
    """Keep digits and a single leading +"""
    if not phone:
        return ""
    phone = phone.strip()
    digits = re.sub(r"[^\d]", "", phone)
    return f"+{digits}" if phone.startswith("+") else digits
