"""User repository - Database operations for accounts"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import User


class UserRepository:
    """Repository for user database operations"""

    @staticmethod
    def get_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email.strip().lower()).first()

    @staticmethod
    def get_by_reset_token(db: Session, token: str) -> Optional[User]:
        return db.query(User).filter(User.reset_token == token).first()

    @staticmethod
    def create(db: Session, **user_data) -> User:
        user = User(**user_data)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def set_reset_token(db: Session, user: User, token: str, expires_at: datetime) -> User:
        user.reset_token = token
        user.reset_token_expires_at = expires_at
        db.commit()
        return user

    @staticmethod
    def update_password(db: Session, user: User, password_hash: str) -> User:
        """Store the new hash and invalidate the reset token"""
        user.password_hash = password_hash
        user.reset_token = None
        user.reset_token_expires_at = None
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def update(db: Session, user: User, **updates) -> User:
        for key, value in updates.items():
            if value is not None and hasattr(user, key):
                setattr(user, key, value)
        db.commit()
        db.refresh(user)
        return user
