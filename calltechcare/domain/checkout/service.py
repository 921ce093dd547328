"""Checkout service - Payment sessions, subscriptions and Stripe webhook events"""

import json
import logging
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ...config import BASE_URL
from ...email_service import EmailDeliveryError, send_order_confirmation_email
from ...models import Order, User
from ...services.notification_service import create_notification
from ...services.sanity_client import CMSError, SanityClient
from ..cart.pricing import normalize_options, options_total, unit_amount_cents
from ..cart.repository import CartRepository
from ..cart.service import CartService
from ..orders.repository import OrderRepository
from .schemas import CheckoutRequest
from .stripe_service import StripeService

logger = logging.getLogger(__name__)

PLAN_QUERY = (
    '*[_type == "pricingPlan" && title == $planName][0]'
    "{_id, title, price, duration, stripeProductId, lastSyncedPrice}"
)
ALL_PLANS_QUERY = '*[_type == "pricingPlan"]{_id, title, price, annualPrice, stripeProductId}'
STRIPE_METADATA_VALUE_LIMIT = 500


def parse_metadata_json(metadata: dict, key: str, default):
    """Decode one JSON metadata value; anything unparseable falls back to the default"""
    raw = (metadata or {}).get(key)
    if not raw:
        return default
    try:
        value = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.error(f"Failed to parse metadata.{key}: {e}")
        return default
    return value if isinstance(value, type(default)) else default


def plan_interval(duration: Optional[str]) -> str:
    return "month" if "month" in (duration or "").lower() else "year"


def format_price(value: float) -> str:
    return f"{value:g}"


def build_line_item(item: dict) -> dict:
    """Stripe price_data line item for a cart line; the add-ons are listed in the description"""
    options = normalize_options(item.get("options"))
    base_price = item.get("basePrice", item.get("price"))
    product_data = {"name": item.get("title") or item.get("slug") or "Service"}
    if options:
        product_data["description"] = ", ".join(f"{o['name']} (+${format_price(o['price'])})" for o in options)
    return {
        "price_data": {
            "currency": "usd",
            "unit_amount": unit_amount_cents(base_price, options),
            "product_data": product_data,
        },
        "quantity": int(item.get("quantity") or 1),
    }


def compact_item(item: dict) -> dict:
    """Item snapshot kept in checkout metadata"""
    return {
        "slug": item.get("slug"),
        "title": item.get("title"),
        "price": item.get("basePrice", item.get("price")),
        "options": normalize_options(item.get("options")),
        "quantity": int(item.get("quantity") or 1),
    }


def _shorten_item(item: dict, level: int) -> dict:
    short = dict(item)
    if level >= 1:
        short.pop("title", None)
    if level >= 2 and short.get("options"):
        short["options"] = [{"name": "Add-ons", "price": options_total(short["options"])}]
    return short


def encode_items_metadata(items: list[dict]) -> str:
    """
    JSON snapshot of the cart for the `items` metadata value.

    Stripe rejects metadata values over 500 characters, so titles are dropped
    first and add-ons are then collapsed into one priced line. A cart that
    still does not fit is refused with a 400.
    """
    snapshot = [compact_item(i) for i in items]
    for level in range(3):
        encoded = json.dumps([_shorten_item(i, level) for i in snapshot], separators=(",", ":"))
        if len(encoded) <= STRIPE_METADATA_VALUE_LIMIT:
            return encoded
    raise HTTPException(status_code=400, detail="Too many items for a single checkout, please split the order")


async def sync_plan_price(
    stripe_service: StripeService,
    product_id: str,
    amount: float,
    interval: str,
    prices: Optional[list[dict]] = None,
) -> tuple[str, bool]:
    """
    Make sure the product has an active recurring price equal to `amount` for `interval`.

    Stale active prices for the interval are deactivated and the new price becomes the
    product default. Returns (price_id, created).
    """
    if prices is None:
        prices = await stripe_service.list_prices(product_id)
    target_cents = int(round(float(amount) * 100))

    active = [p for p in prices if p["active"] and p["interval"] == interval]
    for price in active:
        if price["unit_amount"] == target_cents:
            return price["id"], False

    for price in active:
        await stripe_service.deactivate_price(price["id"])
    price_id = await stripe_service.create_recurring_price(
        product_id, target_cents, interval, make_default=(interval == "month" or not active)
    )
    return price_id, True


class CheckoutService:
    """Service layer for checkout and payment event handling"""

    def __init__(self, db: Session, stripe_service: StripeService, sanity: Optional[SanityClient] = None):
        self.db = db
        self.stripe = stripe_service
        self.sanity = sanity
        self.orders = OrderRepository()

    def _require_stripe(self):
        if not self.stripe.is_available():
            raise HTTPException(status_code=503, detail="Payments are not configured")

    # ============================================
    # One-time checkout
    # ============================================

    async def create_cart_checkout(
        self, session_id: str, data: Optional[CheckoutRequest], user: Optional[User] = None
    ) -> dict:
        """Build a payment-mode session from the posted items or the session cart"""
        self._require_stripe()

        cart = CartRepository.get_by_session_id(self.db, session_id)
        if data and data.items is not None:
            items = [i.model_dump() for i in data.items]
        else:
            items = list(cart.items or []) if cart else []

        if not items:
            raise HTTPException(status_code=400, detail="Invalid cart items")

        metadata = {
            "items": encode_items_metadata(items),
            "sessionId": session_id,
        }
        if cart:
            for key in ("contact", "address", "schedule"):
                value = getattr(cart, key)
                if not value:
                    continue
                encoded = json.dumps(value, separators=(",", ":"))
                if len(encoded) > STRIPE_METADATA_VALUE_LIMIT:
                    logger.warning(f"⚠️ Cart {key} too long for checkout metadata, leaving it out")
                    continue
                metadata[key] = encoded

        buyer_id = user.id if user else (cart.user_id if cart else None)
        if buyer_id:
            metadata["userId"] = str(buyer_id)

        try:
            session = await self.stripe.create_checkout_session(
                mode="payment",
                line_items=[build_line_item(i) for i in items],
                success_url=f"{BASE_URL}/success",
                cancel_url=f"{BASE_URL}/cart",
                customer_email=user.email if user else None,
                metadata=metadata,
                automatic_tax=True,
            )
        except Exception as e:
            logger.error(f"❌ Checkout error: {e}")
            raise HTTPException(status_code=500, detail="Checkout failed") from e

        return {"url": session["url"]}

    # ============================================
    # Subscriptions
    # ============================================

    async def create_subscription_checkout(self, plan_name: Optional[str], user: User, session_id: str) -> dict:
        if not plan_name:
            raise HTTPException(status_code=400, detail="Missing plan name")
        self._require_stripe()
        if not self.sanity or not self.sanity.is_configured():
            raise HTTPException(status_code=503, detail="Content service is not configured")

        try:
            plan = await self.sanity.fetch(PLAN_QUERY, {"planName": plan_name})
        except CMSError as e:
            raise HTTPException(status_code=502, detail="Failed to load pricing plan") from e

        if not plan or not plan.get("stripeProductId"):
            raise HTTPException(status_code=404, detail="Plan not found or missing Stripe product ID")

        product_id = plan["stripeProductId"]
        interval = plan_interval(plan.get("duration"))
        plan_price = float(plan.get("price") or 0)

        try:
            price_id, created = await sync_plan_price(self.stripe, product_id, plan_price, interval)
        except Exception as e:
            logger.error(f"❌ Could not resolve a Stripe price for {plan_name}: {e}")
            raise HTTPException(status_code=500, detail="Subscription checkout failed") from e

        if created and self.sanity.can_write():
            try:
                await self.sanity.patch_set(plan["_id"], {"lastSyncedPrice": plan_price})
            except CMSError as e:
                logger.warning(f"⚠️ Could not record lastSyncedPrice for {plan_name}: {e}")

        try:
            session = await self.stripe.create_checkout_session(
                mode="subscription",
                line_items=[{"price": price_id, "quantity": 1}],
                success_url=f"{BASE_URL}/success",
                cancel_url=f"{BASE_URL}/#pricing",
                customer_email=user.email,
                metadata={
                    "userId": str(user.id),
                    "email": user.email,
                    "planName": plan.get("title") or plan_name,
                    "planPrice": str(plan_price),
                    "planInterval": interval,
                    "stripeProductId": product_id,
                    "sessionId": session_id,
                },
            )
        except Exception as e:
            logger.error(f"❌ Subscription checkout error: {e}")
            raise HTTPException(status_code=500, detail="Subscription checkout failed") from e

        logger.info(f"📦 Subscription checkout for {user.email} on plan {plan_name}")
        return {"url": session["url"]}

    async def create_billing_portal(self, user: User) -> dict:
        """Billing portal link; the customer id is looked up by email and saved when unknown"""
        self._require_stripe()

        customer_id = user.stripe_customer_id
        if not customer_id:
            customer_id = await self.stripe.find_customer_id_by_email(user.email)
            if not customer_id:
                raise HTTPException(status_code=404, detail="No Stripe customer ID found for user.")
            user.stripe_customer_id = customer_id
            self.db.commit()
            logger.info(f"🔗 Linked Stripe customer {customer_id} to user {user.id}")

        url = await self.stripe.create_billing_portal_session(customer_id, f"{BASE_URL}/account")
        return {"url": url}

    def has_subscription(self, user: Optional[User]) -> bool:
        if not user:
            return False
        return self.orders.has_subscription(self.db, user)

    async def sync_all_plan_prices(self) -> dict:
        """Bring every CMS pricing plan's monthly and yearly Stripe prices in line with the CMS"""
        self._require_stripe()
        if not self.sanity or not self.sanity.is_configured():
            raise HTTPException(status_code=503, detail="Content service is not configured")

        plans = await self.sanity.fetch(ALL_PLANS_QUERY) or []
        updates = []
        for plan in plans:
            product_id = plan.get("stripeProductId")
            if not product_id:
                continue
            prices = await self.stripe.list_prices(product_id)
            for interval, field in (("month", "price"), ("year", "annualPrice")):
                amount = plan.get(field)
                if not amount:
                    continue
                _, created = await sync_plan_price(self.stripe, product_id, amount, interval, prices)
                if created:
                    logger.info(f"✅ Updated {interval}ly price for {plan.get('title')}: ${amount}")
                    updates.append(f"{plan.get('title')} ({interval})")

        if not updates:
            return {"message": "No updates needed"}
        return {"message": "Stripe prices synced successfully", "updated": updates}

    # ============================================
    # Webhook events
    # ============================================

    async def handle_event(self, event: dict) -> None:
        event_type = event.get("type")
        data_object = (event.get("data") or {}).get("object") or {}
        logger.info(f"👉 Stripe event: {event_type}")

        if event_type == "checkout.session.completed":
            await self.handle_checkout_completed(data_object)
        elif event_type == "customer.subscription.deleted":
            await self.handle_subscription_deleted(data_object)
        else:
            logger.info(f"Ignoring Stripe event {event_type}")

    def _resolve_user(self, metadata: dict, email: Optional[str]) -> Optional[User]:
        user_id = metadata.get("userId")
        if user_id and str(user_id).isdigit():
            user = self.db.query(User).filter(User.id == int(user_id)).first()
            if user:
                return user
        if email:
            return self.db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()
        return None

    async def handle_checkout_completed(self, session: dict[str, Any]) -> Optional[Order]:
        """
        Persist the Order for a completed checkout session.

        Redelivered events for an already recorded session are acknowledged
        without creating a second Order.
        """
        stripe_session_id = session.get("id")
        existing = self.orders.get_by_stripe_session_id(self.db, stripe_session_id) if stripe_session_id else None
        if existing:
            logger.info(f"↩️ Checkout session {stripe_session_id} already recorded as order {existing.id}")
            return existing

        metadata = session.get("metadata") or {}
        items = parse_metadata_json(metadata, "items", [])
        contact = parse_metadata_json(metadata, "contact", {})
        address = parse_metadata_json(metadata, "address", {})
        schedule = parse_metadata_json(metadata, "schedule", {})

        customer_details = session.get("customer_details") or {}
        email = customer_details.get("email") or session.get("customer_email") or metadata.get("email") or "unknown"
        email = email.strip().lower()
        is_subscription = session.get("mode") == "subscription"
        user = self._resolve_user(metadata, email)

        plan_price = None
        if metadata.get("planPrice"):
            try:
                plan_price = float(metadata["planPrice"])
            except ValueError:
                logger.warning(f"Unparseable planPrice in metadata: {metadata['planPrice']}")

        order = self.orders.create(
            self.db,
            user_id=user.id if user else None,
            stripe_session_id=stripe_session_id,
            stripe_subscription_id=session.get("subscription") if is_subscription else None,
            email=email,
            items=items,
            total=(session.get("amount_total") or 0) / 100,
            quantity=sum(int(i.get("quantity") or 1) for i in items if isinstance(i, dict)),
            is_subscription=is_subscription,
            status="paid",
            plan_name=metadata.get("planName") if is_subscription else None,
            plan_price=plan_price if is_subscription else None,
            plan_interval=metadata.get("planInterval") if is_subscription else None,
            contact=contact or None,
            address=address or None,
            schedule=schedule or None,
        )
        logger.info(f"✅ Order {order.id} saved for checkout session {stripe_session_id}")

        cart_session_id = metadata.get("sessionId")
        if cart_session_id and not is_subscription:
            if CartService(self.db).clear_session_cart(cart_session_id):
                logger.info(f"🧹 Cleared cart {cart_session_id[:8]} after payment")

        customer_id = session.get("customer")
        if user and customer_id and user.stripe_customer_id != customer_id:
            user.stripe_customer_id = customer_id
            self.db.commit()

        if is_subscription:
            message = f"Your {order.plan_name or 'plan'} subscription is now active!"
        else:
            message = f"Your order has been placed successfully! Total: ${order.total:.2f}"
        create_notification(self.db, message, "success", user=user, email=email)

        if not is_subscription and email != "unknown":
            await self._send_confirmation(order)

        return order

    async def _send_confirmation(self, order: Order):
        items = [i for i in (order.items or []) if isinstance(i, dict)]
        title = ", ".join(str(i.get("title")) for i in items if i.get("title")) or None
        base_price = sum(float(i.get("price") or 0) * int(i.get("quantity") or 1) for i in items)
        add_ons = [opt for i in items for opt in normalize_options(i.get("options"))]
        try:
            await send_order_confirmation_email(order.email, title, base_price, add_ons, order.total)
        except EmailDeliveryError as e:
            logger.warning(f"⚠️ Order confirmation email not sent for order {order.id}: {e}")

    async def handle_subscription_deleted(self, subscription: dict[str, Any]):
        customer_id = subscription.get("customer")
        if not customer_id:
            logger.warning("Subscription deleted event without a customer id")
            return

        email = await self.stripe.get_customer_email(customer_id)
        if not email:
            logger.warning(f"No email for Stripe customer {customer_id}; nothing to cancel")
            return

        canceled = self.orders.cancel_subscriptions_for_email(self.db, email)
        logger.info(f"🛑 Subscription canceled for {email} ({canceled} orders updated)")

        user = self._resolve_user({}, email)
        create_notification(
            self.db,
            "Your subscription has been canceled. We're sorry to see you go!",
            "warning",
            user=user,
            email=email,
        )
