"""Orders router - order history and refunds for the signed-in user"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ..checkout.stripe_service import StripeService, get_stripe_service
from .schemas import OrderListResponse, RefundResponse
from .service import OrderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["Orders"])


def get_order_service(
    db: Session = Depends(get_db),
    stripe_service: StripeService = Depends(get_stripe_service),
) -> OrderService:
    """Dependency injection for OrderService"""
    return OrderService(db, stripe_service)


@router.get("", response_model=OrderListResponse)
async def list_orders(
    user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Orders for the current user, newest first"""
    return {"orders": [service.to_response(o) for o in service.list_orders(user)]}


@router.delete("/{order_id}", response_model=RefundResponse)
async def refund_order(
    order_id: str,
    user: User = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    return await service.refund_order(order_id, user)
