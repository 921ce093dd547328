"""Promo service - CMS promo codes and the discount popup lead codes"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config import DISCOUNT_POPUP_CODE, DISCOUNT_POPUP_PERCENT
from ...email_service import EmailDeliveryError, send_discount_code_email
from ...services.mailchimp_service import MailchimpCustomer, sync_customer_best_effort
from ...services.sanity_client import CMSError, SanityClient
from ...security_utils import sanitize_phone
from ...shared.validators import is_valid_email, normalize_code
from .repository import DiscountLeadRepository
from .schemas import DiscountSignupRequest

logger = logging.getLogger(__name__)

PROMO_QUERY = '*[_type == "promoCode" && code == $code][0]'
LEAD_SOURCE = "discount-popup"


def is_expired(expires: Optional[str], now: Optional[datetime] = None) -> bool:
    """CMS expiry is an ISO date or datetime; unparseable values never expire"""
    if not expires:
        return False
    try:
        expires_at = datetime.fromisoformat(str(expires).replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Unparseable promo expiry '{expires}'")
        return False
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at < (now or datetime.now(timezone.utc))


class PromoService:
    """Service layer for promotions and discount leads"""

    def __init__(self, db: Session, sanity: SanityClient):
        self.db = db
        self.sanity = sanity
        self.leads = DiscountLeadRepository()

    # ============================================
    # CMS promo codes
    # ============================================

    async def _lookup_cms_promo(self, code: str) -> tuple[Optional[dict], Optional[str]]:
        """(promo, error) for a CMS code; error is the user-facing reason it is not usable"""
        if not self.sanity.is_configured():
            raise HTTPException(status_code=503, detail="Content service is not configured")
        try:
            promo = await self.sanity.fetch(PROMO_QUERY, {"code": code})
        except CMSError as e:
            raise HTTPException(status_code=500, detail="Server error validating promo code") from e

        if not promo:
            return None, "Invalid code"
        if not promo.get("active"):
            return None, "Code is not active"
        if is_expired(promo.get("expires")):
            return None, "Code has expired"
        return promo, None

    async def _count_usage(self, promo: dict):
        if not self.sanity.can_write():
            logger.info("Sanity write token missing, usageCount not incremented")
            return
        try:
            await self.sanity.patch_inc(promo["_id"], {"usageCount": 1})
        except CMSError as e:
            logger.error(f"Failed to increment usageCount for {promo.get('code')}: {e}")

    async def validate(self, code: Optional[str]) -> dict:
        normalized = normalize_code(code)
        if not normalized:
            raise HTTPException(status_code=400, detail="No promo code provided")

        promo, error = await self._lookup_cms_promo(normalized)
        if error:
            return {"valid": False, "error": error}

        await self._count_usage(promo)
        return {"valid": True, "discountType": promo.get("discountType"), "value": promo.get("value")}

    async def redeem(self, code: Optional[str], email: Optional[str]) -> dict:
        """
        Redeem a code once.

        The shared popup code only redeems for the email that requested it.
        Other lead codes redeem by code (and email when given). Anything else is
        treated as a CMS promo code.
        """
        normalized = normalize_code(code)
        if not normalized:
            raise HTTPException(status_code=400, detail="No promo code provided")
        email_lower = (email or "").strip().lower()

        if normalized == DISCOUNT_POPUP_CODE:
            if not email_lower:
                return self._invalid("This code requires the same email used to request it.")
            lead = self.leads.redeem(self.db, DISCOUNT_POPUP_CODE, email_lower)
            if not lead:
                return self._invalid("This code is invalid or already used.")
            logger.info(f"🎟️ Popup code redeemed by {email_lower}")
            return self._lead_result(lead.discount_percent, DISCOUNT_POPUP_PERCENT)

        lead = self.leads.redeem(self.db, normalized, email_lower or None)
        if lead:
            logger.info(f"🎟️ Lead code {normalized} redeemed")
            return self._lead_result(lead.discount_percent, 10)

        existing = self.leads.find_by_code(self.db, normalized)
        if len(existing) > 1 and not email_lower:
            return self._invalid("This code requires the same email used to request it.")
        if len(existing) == 1 and existing[0].redeemed_at:
            return self._invalid("This code has already been used.")

        promo, error = await self._lookup_cms_promo(normalized)
        if error:
            return self._invalid(error)

        await self._count_usage(promo)
        return {
            "ok": True,
            "valid": True,
            "discountType": promo.get("discountType"),
            "value": promo.get("value"),
            "source": "sanity",
        }

    @staticmethod
    def _invalid(error: str) -> dict:
        return {"ok": False, "valid": False, "error": error}

    @staticmethod
    def _lead_result(percent: Optional[int], default_percent: int) -> dict:
        return {
            "ok": True,
            "valid": True,
            "discountType": "percentage",
            "value": percent if percent is not None else default_percent,
            "source": "discount-lead",
        }

    # ============================================
    # Discount popup sign-up
    # ============================================

    def lead_exists(self, email: Optional[str]) -> bool:
        email = (email or "").strip()
        if not email:
            raise HTTPException(status_code=400, detail="Missing email")
        if not is_valid_email(email):
            raise HTTPException(status_code=400, detail="Invalid email")
        return self.leads.exists(self.db, email.lower())

    async def signup(self, data: DiscountSignupRequest) -> dict:
        email = (data.email or "").strip()
        if not email:
            raise HTTPException(status_code=400, detail="Missing email")
        if not is_valid_email(email):
            raise HTTPException(status_code=400, detail="Invalid email")
        phone = sanitize_phone(data.phone)
        if not phone:
            raise HTTPException(status_code=400, detail="Missing phone")
        if not data.consent:
            raise HTTPException(status_code=400, detail="Consent required")

        email_lower = email.lower()
        existing = self.leads.get_by_email(self.db, email_lower)
        if existing:
            self._raise_conflict(existing.redeemed_at is not None)

        try:
            lead = self.leads.create(
                self.db,
                email=email,
                email_lower=email_lower,
                phone=phone,
                consent=True,
                discount_code=DISCOUNT_POPUP_CODE,
                discount_percent=DISCOUNT_POPUP_PERCENT,
                source=LEAD_SOURCE,
            )
        except IntegrityError as e:
            # Lost a race with a concurrent sign-up for the same email
            self.db.rollback()
            raise HTTPException(
                status_code=409, detail={"code": "EMAIL_EXISTS", "error": "This email is already signed up."}
            ) from e

        logger.info(f"🎁 Discount lead captured for {email_lower}")

        subscriber_hash = await sync_customer_best_effort(
            MailchimpCustomer(email=email, phone=phone, service_type=LEAD_SOURCE)
        )

        email_sent = False
        try:
            await send_discount_code_email(email, DISCOUNT_POPUP_CODE, DISCOUNT_POPUP_PERCENT)
            email_sent = True
            self.leads.mark_code_sent(self.db, lead)
        except EmailDeliveryError as e:
            logger.error(f"❌ Discount code email failed for {email_lower}: {e}")

        return {
            "ok": True,
            "mailchimpSynced": subscriber_hash is not None,
            "emailSent": email_sent,
            "discountCode": DISCOUNT_POPUP_CODE,
            "discountPercent": DISCOUNT_POPUP_PERCENT,
        }

    @staticmethod
    def _raise_conflict(redeemed: bool):
        if redeemed:
            raise HTTPException(
                status_code=409,
                detail={"code": "ALREADY_USED", "error": "This email has already used the one-time discount."},
            )
        raise HTTPException(
            status_code=409, detail={"code": "EMAIL_EXISTS", "error": "This email is already signed up."}
        )
