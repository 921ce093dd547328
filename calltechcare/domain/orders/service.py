"""Order service - Order history and refunds"""

import logging

import stripe
from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Order, User
from ..checkout.stripe_service import StripeService
from .repository import OrderRepository

logger = logging.getLogger(__name__)


class OrderService:
    """Service layer for order business logic"""

    def __init__(self, db: Session, stripe_service: StripeService):
        self.db = db
        self.repo = OrderRepository()
        self.stripe = stripe_service

    def list_orders(self, user: User) -> list[Order]:
        return self.repo.list_for_user(self.db, user)

    async def refund_order(self, reference: str, user: User) -> dict:
        """
        Refund a one-time order owned by the user.

        The payment intent is taken from the checkout session behind the order;
        subscription orders are cancelled through the billing portal instead.
        """
        order = self.repo.get_by_reference(self.db, reference)
        if not order:
            raise HTTPException(status_code=404, detail="Order not found")

        owns_order = order.user_id == user.id or (order.email and order.email == user.email)
        if not owns_order:
            logger.warning(f"🚫 User {user.id} tried to refund order {order.id} they do not own")
            raise HTTPException(status_code=403, detail="Forbidden")

        if order.is_subscription:
            raise HTTPException(status_code=400, detail="Cannot refund subscription orders.")

        if order.stripe_session_id:
            try:
                session = await self.stripe.retrieve_checkout_session(order.stripe_session_id)
                payment_intent = session.get("payment_intent")
                if payment_intent:
                    await self.stripe.create_refund(payment_intent)
                    logger.info(f"💸 Refunded payment for order {order.id}")
                else:
                    logger.warning(f"No payment intent found for order {order.id}")
            except stripe.StripeError as e:
                logger.error(f"❌ Refund failed for order {order.id}: {e}")
                raise HTTPException(status_code=500, detail=f"Refund failed: {e}") from e

        self.repo.mark_refunded(self.db, order)
        logger.info(f"✅ Order {order.id} marked as refunded")
        return {"message": "Order refunded successfully", "refunded": True}

    @staticmethod
    def to_response(order: Order) -> dict:
        return {
            "id": order.id,
            "publicId": order.public_id,
            "email": order.email,
            "items": order.items or [],
            "total": order.total or 0,
            "quantity": order.quantity or 0,
            "status": order.status,
            "refunded": bool(order.refunded),
            "isSubscription": bool(order.is_subscription),
            "planName": order.plan_name,
            "planPrice": order.plan_price,
            "planInterval": order.plan_interval,
            "contact": order.contact,
            "address": order.address,
            "schedule": order.schedule,
            "createdAt": order.created_at,
        }
