"""Promo schemas"""

from typing import Optional, Union

from pydantic import BaseModel


class PromoValidateRequest(BaseModel):
    code: Optional[str] = None


class PromoRedeemRequest(BaseModel):
    code: Optional[str] = None
    email: Optional[str] = None


class PromoResult(BaseModel):
    ok: Optional[bool] = None
    valid: bool
    discountType: Optional[str] = None
    value: Optional[Union[int, float]] = None
    source: Optional[str] = None
    error: Optional[str] = None


class DiscountSignupRequest(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    consent: bool = False
