"""Promo router - promo code validation/redemption and the discount popup"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ...config import COOKIE_SECURE
from ...database import get_db
from ...rate_limiter import form_rate_limit
from ...services.sanity_client import SanityClient, get_sanity_client
from .schemas import DiscountSignupRequest, PromoRedeemRequest, PromoResult, PromoValidateRequest
from .service import PromoService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Promotions"])

DISCOUNT_SIGNED_UP_COOKIE = "ctc_discount_popup_signed_up"
ONE_YEAR_SECONDS = 60 * 60 * 24 * 365


def get_promo_service(
    db: Session = Depends(get_db),
    sanity: SanityClient = Depends(get_sanity_client),
) -> PromoService:
    """Dependency injection for PromoService"""
    return PromoService(db, sanity)


@router.post("/promo/validate", response_model=PromoResult, response_model_exclude_none=True)
async def validate_promo(data: PromoValidateRequest, service: PromoService = Depends(get_promo_service)):
    return await service.validate(data.code)


@router.post(
    "/promo/redeem",
    response_model=PromoResult,
    response_model_exclude_none=True,
    dependencies=[Depends(form_rate_limit)],
)
async def redeem_promo(data: PromoRedeemRequest, service: PromoService = Depends(get_promo_service)):
    return await service.redeem(data.code, data.email)


@router.get("/discount-signup")
async def check_discount_signup(
    email: Optional[str] = Query(None),
    service: PromoService = Depends(get_promo_service),
):
    """Whether an email already requested the popup code"""
    return {"ok": True, "exists": service.lead_exists(email)}


@router.post("/discount-signup", dependencies=[Depends(form_rate_limit)])
async def discount_signup(
    data: DiscountSignupRequest,
    response: Response,
    service: PromoService = Depends(get_promo_service),
):
    result = await service.signup(data)
    response.set_cookie(
        DISCOUNT_SIGNED_UP_COOKIE,
        "1",
        max_age=ONE_YEAR_SECONDS,
        path="/",
        samesite="lax",
        secure=COOKIE_SECURE,
    )
    return result
