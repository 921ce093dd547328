"""Account service - Registration, sign-in, password reset and profile"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config import BASE_URL
from ...email_service import EmailDeliveryError, send_password_reset_email
from ...models import User
from ...security_utils import (
    create_auth_cookie_token,
    create_session_token,
    generate_reset_token,
    hash_password,
    password_policy_error,
    sanitize_phone,
    sanitize_text,
    verify_password,
)
from ...services.mailchimp_service import MailchimpCustomer, sync_customer_best_effort
from ...shared.validators import is_valid_email
from .repository import UserRepository
from .schemas import CredentialsRequest, ProfileUpdate, SignupRequest

logger = logging.getLogger(__name__)

RESET_TOKEN_TTL = timedelta(minutes=15)


def split_name(name: str) -> tuple[str, str]:
    first, _, last = name.strip().partition(" ")
    return first, last.strip()


class AccountService:
    """Service layer for user accounts"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = UserRepository()

    async def signup(self, data: SignupRequest) -> User:
        if not data.name or not data.email or not data.password:
            raise HTTPException(status_code=400, detail="Missing fields")
        if not is_valid_email(data.email):
            raise HTTPException(status_code=400, detail="Invalid email")
        policy_error = password_policy_error(data.password)
        if policy_error:
            raise HTTPException(status_code=400, detail=policy_error)

        email = data.email.strip().lower()
        if self.repo.get_by_email(self.db, email):
            raise HTTPException(status_code=400, detail="Email already registered")

        try:
            user = self.repo.create(
                self.db,
                name=sanitize_text(data.name, max_length=255),
                email=email,
                password_hash=hash_password(data.password),
                phone=sanitize_phone(data.phone) or None,
            )
        except IntegrityError as e:
            self.db.rollback()
            raise HTTPException(status_code=400, detail="Email already registered") from e

        logger.info(f"👤 New account {user.id} for {email}")

        first_name, last_name = split_name(user.name)
        await sync_customer_best_effort(
            MailchimpCustomer(
                email=email,
                first_name=first_name,
                last_name=last_name,
                phone=user.phone,
                service_type="account-signup",
            )
        )
        return user

    def authenticate(self, data: CredentialsRequest) -> User:
        """
        Check an email/password pair.

        Unknown email -> 404, wrong password -> 401, matching the responses the
        login form has always shown.
        """
        if not data.email or not data.password:
            raise HTTPException(status_code=400, detail="Missing fields")

        user = self.repo.get_by_email(self.db, data.email)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        if not verify_password(data.password, user.password_hash):
            logger.warning(f"🔐 Invalid password for {user.email}")
            raise HTTPException(status_code=401, detail="Invalid credentials")
        return user

    @staticmethod
    def issue_session_token(user: User) -> str:
        return create_session_token(user.id, user.email)

    @staticmethod
    def issue_auth_cookie(user: User) -> str:
        return create_auth_cookie_token(user.id, user.email)

    async def request_password_reset(self, email: Optional[str]) -> dict:
        if not email:
            raise HTTPException(status_code=400, detail="Email is required")

        user = self.repo.get_by_email(self.db, email)
        if not user:
            raise HTTPException(status_code=404, detail="No account found with that email")

        token = generate_reset_token()
        self.repo.set_reset_token(self.db, user, token, datetime.utcnow() + RESET_TOKEN_TTL)

        reset_link = f"{BASE_URL}/reset-password?token={token}"
        try:
            await send_password_reset_email(user.email, reset_link)
        except EmailDeliveryError as e:
            logger.error(f"❌ Password reset email failed for {user.email}: {e}")
            raise HTTPException(status_code=500, detail="Failed to send reset email") from e

        logger.info(f"🔑 Password reset requested for {user.email}")
        return {"ok": True, "message": "Reset link sent"}

    def reset_password(self, token: Optional[str], password: Optional[str]) -> dict:
        if not token or not password:
            raise HTTPException(status_code=400, detail="Missing fields")

        user = self.repo.get_by_reset_token(self.db, token)
        expires_at = user.reset_token_expires_at if user else None
        if not user or not expires_at or expires_at < datetime.utcnow():
            raise HTTPException(status_code=400, detail="Invalid or expired token")

        policy_error = password_policy_error(password)
        if policy_error:
            raise HTTPException(status_code=400, detail=policy_error)

        self.repo.update_password(self.db, user, hash_password(password))
        logger.info(f"🔑 Password updated for {user.email}")
        return {"ok": True, "message": "Password updated"}

    def update_profile(self, user: User, data: ProfileUpdate) -> User:
        updates = data.model_dump(exclude_none=True)
        return self.repo.update(self.db, user, **updates)

    @staticmethod
    def to_response(user: User) -> dict:
        return {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "phone": user.phone,
            "hasBillingAccount": bool(user.stripe_customer_id),
        }
