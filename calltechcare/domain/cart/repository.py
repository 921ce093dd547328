"""Cart repository - Database operations for carts"""

from typing import Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from ...models import Cart


class CartRepository:
    """Repository for cart database operations"""

    @staticmethod
    def get_by_session_id(db: Session, session_id: str) -> Optional[Cart]:
        return db.query(Cart).filter(Cart.session_id == session_id).first()

    @staticmethod
    def create(db: Session, session_id: str, user_id: Optional[int] = None) -> Cart:
        cart = Cart(session_id=session_id, user_id=user_id, items=[])
        db.add(cart)
        db.commit()
        db.refresh(cart)
        return cart

    @staticmethod
    def save(db: Session, cart: Cart, *changed_columns: str) -> Cart:
        """Persist a cart; JSON columns edited in place must be listed in changed_columns"""
        for column in changed_columns:
            flag_modified(cart, column)
        db.commit()
        db.refresh(cart)
        return cart

    @staticmethod
    def clear(db: Session, cart: Cart) -> Cart:
        """Empty the cart and forget the wizard steps"""
        cart.items = []
        cart.contact = None
        cart.address = None
        cart.schedule = None
        db.commit()
        db.refresh(cart)
        return cart
