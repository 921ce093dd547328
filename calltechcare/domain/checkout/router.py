"""Checkout router - payment sessions, subscriptions and the Stripe webhook"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_optional_user
from ...config import STRIPE_WEBHOOK_SECRET
from ...database import get_db
from ...email_service import EmailDeliveryError, send_order_confirmation_email
from ...models import User
from ...services.sanity_client import SanityClient, get_sanity_client
from ...shared.session import get_cart_session_id
from ...webhook_security import verify_stripe_webhook
from .schemas import (
    CheckoutRequest,
    CheckoutResponse,
    OrderEmailRequest,
    SubscribeRequest,
    SubscriptionStatusResponse,
)
from .service import CheckoutService
from .stripe_service import StripeService, get_stripe_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Checkout"])


def get_checkout_service(
    db: Session = Depends(get_db),
    stripe_service: StripeService = Depends(get_stripe_service),
    sanity: SanityClient = Depends(get_sanity_client),
) -> CheckoutService:
    """Dependency injection for CheckoutService"""
    return CheckoutService(db, stripe_service, sanity)


# ============================================================================
# CHECKOUT
# ============================================================================


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    data: Optional[CheckoutRequest] = Body(default=None),
    session_id: str = Depends(get_cart_session_id),
    user: Optional[User] = Depends(get_optional_user),
    service: CheckoutService = Depends(get_checkout_service),
):
    """Create a one-time payment session for the cart (or the posted items)"""
    return await service.create_cart_checkout(session_id, data, user)


@router.post("/send-order-email")
async def send_order_email(data: OrderEmailRequest):
    if not data.customerEmail:
        raise HTTPException(status_code=400, detail="Missing customer email")

    try:
        response = await send_order_confirmation_email(
            data.customerEmail, data.serviceTitle, data.basePrice, data.addOns, data.total
        )
    except EmailDeliveryError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e

    email_id = response.get("id") if isinstance(response, dict) else None
    return {"success": True, "id": email_id}


# ============================================================================
# SUBSCRIPTIONS
# ============================================================================


@router.post("/subscribe", response_model=CheckoutResponse)
async def subscribe(
    data: SubscribeRequest,
    session_id: str = Depends(get_cart_session_id),
    user: User = Depends(get_current_user),
    service: CheckoutService = Depends(get_checkout_service),
):
    """Start a subscription checkout for a CMS pricing plan"""
    return await service.create_subscription_checkout(data.planName, user, session_id)


@router.post("/manage-subscription", response_model=CheckoutResponse)
async def manage_subscription(
    user: User = Depends(get_current_user),
    service: CheckoutService = Depends(get_checkout_service),
):
    return await service.create_billing_portal(user)


@router.get("/check-subscription", response_model=SubscriptionStatusResponse)
async def check_subscription(
    user: Optional[User] = Depends(get_optional_user),
    service: CheckoutService = Depends(get_checkout_service),
):
    return {"hasSubscription": service.has_subscription(user)}


@router.api_route("/sync-prices", methods=["GET", "POST"])
async def sync_prices(service: CheckoutService = Depends(get_checkout_service)):
    """CMS webhook / manual trigger: align Stripe plan prices with the CMS"""
    logger.info("🔄 Pricing sync requested")
    try:
        return await service.sync_all_plan_prices()
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ Sync error: {e}")
        raise HTTPException(status_code=500, detail=str(e)) from e


# ============================================================================
# WEBHOOK
# ============================================================================


@router.post("/webhook")
async def stripe_webhook(request: Request, service: CheckoutService = Depends(get_checkout_service)):
    """Signed Stripe events; processing errors are answered with 400 so Stripe retries"""
    _, raw_body = await verify_stripe_webhook(request, STRIPE_WEBHOOK_SECRET)

    try:
        event = json.loads(raw_body.decode("utf-8"))
        await service.handle_event(event)
    except Exception as e:
        logger.error(f"❌ Webhook error: {e}", exc_info=True)
        service.db.rollback()
        raise HTTPException(status_code=400, detail=f"Webhook error: {e}") from e

    return {"received": True}
