"""Order schemas - Pydantic models for order responses"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel


class OrderResponse(BaseModel):
    id: int
    publicId: str
    email: Optional[str] = None
    items: list[dict[str, Any]]
    total: float
    quantity: int
    status: str
    refunded: bool
    isSubscription: bool
    planName: Optional[str] = None
    planPrice: Optional[float] = None
    planInterval: Optional[str] = None
    contact: Optional[dict[str, Any]] = None
    address: Optional[dict[str, Any]] = None
    schedule: Optional[dict[str, Any]] = None
    createdAt: Optional[datetime] = None


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]


class RefundResponse(BaseModel):
    message: str
    refunded: bool
