"""Cart domain schemas - Pydantic models for validation"""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class CartOption(BaseModel):
    name: str
    price: float = 0


class ContactInfo(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class AddressInfo(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None


class ScheduleInfo(BaseModel):
    date: Optional[str] = None  # YYYY-MM-DD
    time: Optional[str] = None  # one of the standard slot values, e.g. "08:00-11:00"


class CartItemAdd(BaseModel):
    """Schema for adding a service to the cart"""

    slug: str = Field(min_length=1)
    title: str = Field(min_length=1)
    price: float = Field(ge=0)
    options: list[CartOption] = []


class CartUpdate(BaseModel):
    """
    Any subset of an item change (selected by slug) and the wizard sub-documents.
    """

    slug: Optional[str] = None
    quantity: Optional[int] = None
    title: Optional[str] = None
    price: Optional[float] = Field(default=None, ge=0)
    options: Optional[list[CartOption]] = None
    contact: Optional[ContactInfo] = None
    address: Optional[AddressInfo] = None
    schedule: Optional[ScheduleInfo] = None


class CartItemDelete(BaseModel):
    slug: Optional[str] = None
    options: Optional[list[CartOption]] = None
    all: bool = False

    @field_validator("slug")
    @classmethod
    def strip_slug(cls, v):
        return v.strip() if v else v


class CartItemResponse(BaseModel):
    slug: str
    title: str
    basePrice: float
    price: float
    options: list[CartOption] = []
    quantity: int


class CartResponse(BaseModel):
    items: list[CartItemResponse]
    contact: Optional[ContactInfo] = None
    address: Optional[AddressInfo] = None
    schedule: Optional[ScheduleInfo] = None
    subtotal: float
