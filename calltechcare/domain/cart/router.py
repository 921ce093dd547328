"""Cart router - FastAPI endpoints for the session cart"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_optional_user
from ...database import get_db
from ...models import User
from ...shared.session import get_cart_session_id
from .schemas import CartItemAdd, CartItemDelete, CartResponse, CartUpdate
from .service import CartService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cart", tags=["Cart"])


def get_cart_service(db: Session = Depends(get_db)) -> CartService:
    """Dependency injection for CartService"""
    return CartService(db)


@router.get("", response_model=CartResponse)
async def get_cart(
    session_id: str = Depends(get_cart_session_id),
    user: Optional[User] = Depends(get_optional_user),
    service: CartService = Depends(get_cart_service),
):
    """Current cart; an empty one is created on first visit"""
    cart = service.get_or_create_cart(session_id, user)
    return service.to_response(cart)


@router.post("", response_model=CartResponse)
async def add_to_cart(
    data: CartItemAdd,
    session_id: str = Depends(get_cart_session_id),
    user: Optional[User] = Depends(get_optional_user),
    service: CartService = Depends(get_cart_service),
):
    cart = service.add_item(session_id, data, user)
    return service.to_response(cart)


@router.put("", response_model=CartResponse)
async def update_cart(
    data: CartUpdate,
    session_id: str = Depends(get_cart_session_id),
    service: CartService = Depends(get_cart_service),
):
    """Update an item (quantity, options, price) or save contact / address / schedule"""
    cart = service.update(session_id, data)
    return service.to_response(cart)


@router.delete("", response_model=CartResponse)
async def remove_from_cart(
    data: CartItemDelete,
    session_id: str = Depends(get_cart_session_id),
    service: CartService = Depends(get_cart_service),
):
    cart = service.remove(session_id, data)
    return service.to_response(cart)
