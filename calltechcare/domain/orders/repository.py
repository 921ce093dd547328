"""Order repository - Database operations for orders"""

from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models import Order, User


class OrderRepository:
    """Repository for order database operations"""

    @staticmethod
    def get_by_stripe_session_id(db: Session, stripe_session_id: str) -> Optional[Order]:
        return db.query(Order).filter(Order.stripe_session_id == stripe_session_id).first()

    @staticmethod
    def get_by_reference(db: Session, reference: str) -> Optional[Order]:
        """Look an order up by public id, or by numeric id"""
        order = db.query(Order).filter(Order.public_id == reference).first()
        if order is None and reference.isdigit():
            order = db.query(Order).filter(Order.id == int(reference)).first()
        return order

    @staticmethod
    def list_for_user(db: Session, user: User) -> list[Order]:
        """Orders placed by the user, matched by account or by checkout email"""
        return (
            db.query(Order)
            .filter(or_(Order.user_id == user.id, func.lower(Order.email) == user.email.lower()))
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )

    @staticmethod
    def has_subscription(db: Session, user: User) -> bool:
        return (
            db.query(Order.id)
            .filter(
                or_(Order.user_id == user.id, func.lower(Order.email) == user.email.lower()),
                Order.is_subscription.is_(True),
                Order.status != "canceled",
            )
            .first()
            is not None
        )

    @staticmethod
    def create(db: Session, **order_data) -> Order:
        order = Order(**order_data)
        db.add(order)
        db.commit()
        db.refresh(order)
        return order

    @staticmethod
    def mark_refunded(db: Session, order: Order) -> Order:
        order.status = "refunded"
        order.refunded = True
        db.commit()
        db.refresh(order)
        return order

    @staticmethod
    def cancel_subscriptions_for_email(db: Session, email: str) -> int:
        """Move a customer's subscription orders to canceled; returns the row count"""
        updated = (
            db.query(Order)
            .filter(
                func.lower(Order.email) == email.strip().lower(),
                Order.is_subscription.is_(True),
                Order.status != "canceled",
            )
            .update({Order.status: "canceled"}, synchronize_session=False)
        )
        db.commit()
        return updated
