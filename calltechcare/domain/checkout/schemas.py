"""Checkout domain schemas - Pydantic models for payments"""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from ..cart.schemas import CartOption


class CheckoutItem(BaseModel):
    """Explicit line item posted by clients that keep their own cart"""

    slug: Optional[str] = None
    title: str
    price: float = Field(ge=0)
    options: list[CartOption] = []
    quantity: int = Field(default=1, ge=1)


class CheckoutRequest(BaseModel):
    items: Optional[list[CheckoutItem]] = None


class CheckoutResponse(BaseModel):
    url: str


class SubscribeRequest(BaseModel):
    planName: Optional[str] = None


class SubscriptionStatusResponse(BaseModel):
    hasSubscription: bool


class OrderEmailRequest(BaseModel):
    customerEmail: Optional[str] = None
    serviceTitle: Optional[str] = None
    basePrice: Optional[float] = 0
    addOns: list[dict[str, Any]] = []
    total: Optional[float] = 0

    @field_validator("addOns", mode="before")
    @classmethod
    def coerce_add_ons(cls, v):
        return v if isinstance(v, list) else []
