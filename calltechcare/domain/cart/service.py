"""Cart service - Business logic for the session cart"""

import copy
import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Cart, User
from ...shared.time_slots import get_time_slot, is_time_slot_available
from .pricing import cart_subtotal, item_unit_price, normalize_options, same_options
from .repository import CartRepository
from .schemas import CartItemAdd, CartItemDelete, CartUpdate, ScheduleInfo

logger = logging.getLogger(__name__)


class CartService:
    """Service layer for cart business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CartRepository()

    def get_cart(self, session_id: str) -> Cart:
        """Existing cart for the session; 404 when there is none"""
        cart = self.repo.get_by_session_id(self.db, session_id)
        if not cart:
            raise HTTPException(status_code=404, detail="Cart not found")
        return cart

    def get_or_create_cart(self, session_id: str, user: Optional[User] = None) -> Cart:
        """Return the session cart, creating an empty one on first visit"""
        cart = self.repo.get_by_session_id(self.db, session_id)
        if not cart:
            logger.info(f"🛒 Creating cart for session {session_id[:8]}...")
            cart = self.repo.create(self.db, session_id, user.id if user else None)
        elif user and cart.user_id != user.id:
            cart.user_id = user.id
            cart = self.repo.save(self.db, cart)
        return cart

    def add_item(self, session_id: str, data: CartItemAdd, user: Optional[User] = None) -> Cart:
        """
        Add a service line.

        A line with the same slug and the same options gets its quantity bumped;
        the same slug with different options becomes a separate line.
        """
        cart = self.get_or_create_cart(session_id, user)
        items = copy.deepcopy(cart.items or [])
        options = normalize_options(data.options)

        existing = next(
            (i for i in items if i.get("slug") == data.slug and same_options(i.get("options"), options)),
            None,
        )
        if existing:
            existing["quantity"] = int(existing.get("quantity") or 1) + 1
        else:
            items.append(
                {
                    "slug": data.slug,
                    "title": data.title,
                    "basePrice": float(data.price),
                    "price": item_unit_price(data.price, options),
                    "options": options,
                    "quantity": 1,
                }
            )

        cart.items = items
        logger.info(f"🛒 Added {data.slug} to cart {session_id[:8]} ({len(items)} lines)")
        return self.repo.save(self.db, cart, "items")

    def update(self, session_id: str, data: CartUpdate) -> Cart:
        """Apply an item change and/or merge wizard step data into the cart"""
        cart = self.get_cart(session_id)
        changed = []

        if data.slug:
            items = copy.deepcopy(cart.items or [])
            item = next((i for i in items if i.get("slug") == data.slug), None)
            if item:
                if data.quantity is not None:
                    item["quantity"] = max(1, data.quantity)
                if data.title:
                    item["title"] = data.title
                if data.price is not None:
                    item["basePrice"] = float(data.price)
                if data.options is not None:
                    item["options"] = normalize_options(data.options)
                item["price"] = item_unit_price(item.get("basePrice", item.get("price")), item.get("options"))
                cart.items = items
                changed.append("items")
            else:
                logger.info(f"Cart {session_id[:8]} has no line for {data.slug}, nothing to update")

        if data.contact is not None:
            cart.contact = {**(cart.contact or {}), **data.contact.model_dump(exclude_none=True)}
            changed.append("contact")
        if data.address is not None:
            cart.address = {**(cart.address or {}), **data.address.model_dump(exclude_none=True)}
            changed.append("address")
        if data.schedule is not None:
            self._validate_schedule(data.schedule)
            cart.schedule = {**(cart.schedule or {}), **data.schedule.model_dump(exclude_none=True)}
            changed.append("schedule")

        return self.repo.save(self.db, cart, *changed)

    def remove(self, session_id: str, data: CartItemDelete) -> Cart:
        """Remove lines by slug (optionally only the exact options match) or clear everything"""
        cart = self.get_cart(session_id)

        if data.all:
            logger.info(f"🧹 Clearing cart {session_id[:8]}")
            return self.repo.clear(self.db, cart)

        if not data.slug:
            raise HTTPException(status_code=400, detail="slug is required")

        def keep(item: dict) -> bool:
            if item.get("slug") != data.slug:
                return True
            if data.options is not None:
                return not same_options(item.get("options"), data.options)
            return False

        cart.items = [i for i in copy.deepcopy(cart.items or []) if keep(i)]
        return self.repo.save(self.db, cart, "items")

    def clear_session_cart(self, session_id: str) -> bool:
        """Empty the cart for a session if it exists; True when one was cleared"""
        cart = self.repo.get_by_session_id(self.db, session_id)
        if not cart:
            return False
        self.repo.clear(self.db, cart)
        return True

    @staticmethod
    def _validate_schedule(schedule: ScheduleInfo):
        if not schedule.time:
            return
        slot = get_time_slot(schedule.time)
        if not slot:
            raise HTTPException(status_code=400, detail="Invalid time slot")
        if not is_time_slot_available(schedule.date, slot.start_hour):
            raise HTTPException(status_code=400, detail="Selected time slot is no longer available")

    @staticmethod
    def to_response(cart: Cart) -> dict:
        items = cart.items or []
        return {
            "items": [
                {
                    "slug": i.get("slug"),
                    "title": i.get("title"),
                    "basePrice": i.get("basePrice", i.get("price", 0)),
                    "price": i.get("price", 0),
                    "options": i.get("options") or [],
                    "quantity": i.get("quantity") or 1,
                }
                for i in items
            ],
            "contact": cart.contact,
            "address": cart.address,
            "schedule": cart.schedule,
            "subtotal": cart_subtotal(items),
        }
