"""Stripe service - Integration with the Stripe API"""

import logging
from typing import Optional

import stripe
from starlette.concurrency import run_in_threadpool

from ...config import STRIPE_SECRET_KEY

logger = logging.getLogger(__name__)


class StripeService:
    """Service for Stripe API operations"""

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key if api_key is not None else STRIPE_SECRET_KEY
        if not self.api_key:
            logger.warning("STRIPE_SECRET_KEY not set; payment endpoints will fail until configured")

    def is_available(self) -> bool:
        """Check if a Stripe key is configured"""
        return bool(self.api_key)

    def _require_key(self):
        if not self.api_key:
            raise stripe.AuthenticationError("Stripe client not configured")

    async def create_checkout_session(
        self,
        mode: str,
        line_items: list[dict],
        success_url: str,
        cancel_url: str,
        metadata: Optional[dict] = None,
        customer_email: Optional[str] = None,
        automatic_tax: bool = False,
    ) -> dict:
        """Create a hosted checkout session; returns {id, url}"""
        self._require_key()

        params = {
            "mode": mode,
            "line_items": line_items,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata or {},
        }
        if mode == "payment":
            params["payment_method_types"] = ["card"]
        if automatic_tax:
            params["automatic_tax"] = {"enabled": True}
        if customer_email:
            params["customer_email"] = customer_email

        try:
            session = await run_in_threadpool(stripe.checkout.Session.create, api_key=self.api_key, **params)
            logger.info(f"💳 Created {mode} checkout session {session.id}")
            return {"id": session.id, "url": session.url}
        except stripe.StripeError as e:
            logger.error(f"Failed to create checkout session: {e}")
            raise

    async def retrieve_checkout_session(self, session_id: str) -> dict:
        self._require_key()
        session = await run_in_threadpool(stripe.checkout.Session.retrieve, session_id, api_key=self.api_key)
        return {
            "id": session.id,
            "payment_intent": session.payment_intent,
            "customer": session.customer,
            "mode": session.mode,
        }

    async def create_refund(self, payment_intent: str) -> dict:
        """Refund the full amount of a payment intent"""
        self._require_key()
        try:
            refund = await run_in_threadpool(stripe.Refund.create, payment_intent=payment_intent, api_key=self.api_key)
            logger.info(f"💸 Refund {refund.id} created for {payment_intent}")
            return {"id": refund.id, "status": refund.status}
        except stripe.StripeError as e:
            logger.error(f"Failed to refund {payment_intent}: {e}")
            raise

    # ============================================
    # Prices
    # ============================================

    async def list_prices(self, product_id: str, active_only: bool = False, limit: int = 100) -> list[dict]:
        """Prices for a product as plain dicts {id, active, unit_amount, interval}"""
        self._require_key()
        params = {"product": product_id, "limit": limit}
        if active_only:
            params["active"] = True
        result = await run_in_threadpool(stripe.Price.list, api_key=self.api_key, **params)
        prices = []
        for price in result.data:
            recurring = price.recurring
            prices.append(
                {
                    "id": price.id,
                    "active": bool(price.active),
                    "unit_amount": price.unit_amount or 0,
                    "interval": recurring.interval if recurring else None,
                }
            )
        return prices

    async def deactivate_price(self, price_id: str):
        self._require_key()
        await run_in_threadpool(stripe.Price.modify, price_id, active=False, api_key=self.api_key)

    async def create_recurring_price(
        self, product_id: str, unit_amount: int, interval: str, make_default: bool = True
    ) -> str:
        """Create a USD recurring price and (optionally) make it the product default; returns the price id"""
        self._require_key()
        price = await run_in_threadpool(
            stripe.Price.create,
            product=product_id,
            unit_amount=unit_amount,
            currency="usd",
            recurring={"interval": interval},
            api_key=self.api_key,
        )
        if make_default:
            await run_in_threadpool(stripe.Product.modify, product_id, default_price=price.id, api_key=self.api_key)
        logger.info(f"💲 New {interval} price {price.id} ({unit_amount} cents) for product {product_id}")
        return price.id

    # ============================================
    # Customers & billing portal
    # ============================================

    async def find_customer_id_by_email(self, email: str) -> Optional[str]:
        self._require_key()
        result = await run_in_threadpool(stripe.Customer.list, email=email, limit=1, api_key=self.api_key)
        return result.data[0].id if result.data else None

    async def get_customer_email(self, customer_id: str) -> Optional[str]:
        """Email on a customer record; None for deleted customers"""
        self._require_key()
        customer = await run_in_threadpool(stripe.Customer.retrieve, customer_id, api_key=self.api_key)
        if getattr(customer, "deleted", False):
            return None
        return customer.email

    async def create_billing_portal_session(self, customer_id: str, return_url: str) -> str:
        self._require_key()
        session = await run_in_threadpool(
            stripe.billing_portal.Session.create,
            customer=customer_id,
            return_url=return_url,
            api_key=self.api_key,
        )
        return session.url


_stripe_service: Optional[StripeService] = None


def get_stripe_service() -> StripeService:
    """Shared StripeService instance (overridable in tests)"""
    global _stripe_service
    if _stripe_service is None:
        _stripe_service = StripeService()
    return _stripe_service
