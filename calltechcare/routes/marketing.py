"""Public forms: contact, request-a-quote, direct bookings and time slot lookup"""

import logging
import secrets
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database import get_db
from ..email_service import EmailDeliveryError, send_contact_notification
from ..models import Booking, ContactMessage, QuoteRequest
from ..rate_limiter import form_rate_limit
from ..security_utils import sanitize_text
from ..shared.time_slots import get_time_slot, is_time_slot_available, list_time_slots
from ..shared.validators import is_valid_email

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Forms"])

REFERENCE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
REFERENCE_ATTEMPTS = 5


def clean(value: Any) -> Optional[str]:
    """Trimmed string, or None for empty / non-string input"""
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def generate_reference_number() -> str:
    return "QR-" + "".join(secrets.choice(REFERENCE_ALPHABET) for _ in range(8))


# ============================================================================
# SCHEMAS
# ============================================================================


class ContactRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    message: Optional[str] = None


class QuoteService(BaseModel):
    category: Optional[str] = None
    group: Optional[str] = None
    service: Optional[str] = None


class QuoteContact(BaseModel):
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class QuoteLocation(BaseModel):
    streetAddress: Optional[str] = None
    city: Optional[str] = None
    zipCode: Optional[str] = None


class QuoteDetails(BaseModel):
    projectDetails: Optional[str] = None
    wantsTechnicianVisitFirst: bool = False
    preferredDate: Optional[str] = None
    preferredTime: Optional[str] = None
    heardAbout: Optional[str] = None


class QuoteRequestCreate(BaseModel):
    service: Optional[QuoteService] = None
    urgency: Optional[str] = None
    other: Optional[str] = None
    contact: QuoteContact = QuoteContact()
    location: QuoteLocation = QuoteLocation()
    details: QuoteDetails = QuoteDetails()


class BookingCreate(BaseModel):
    name: str = Field(min_length=1)
    email: str
    phone: Optional[str] = None
    serviceTitle: str = Field(min_length=1)
    serviceSlug: str = Field(min_length=1)
    price: float = Field(ge=0)
    options: list[dict[str, Any]] = []
    quantity: int = Field(default=1, ge=1)
    notes: Optional[str] = None

    @field_validator("email")
    @classmethod
    def check_email(cls, v):
        if not is_valid_email(v):
            raise ValueError("Invalid email format")
        return v.strip()


def _clean_dict(model: Optional[BaseModel]) -> dict:
    if model is None:
        return {}
    return {key: clean(value) if isinstance(value, str) else value for key, value in model.model_dump().items()}


# ============================================================================
# ENDPOINTS
# ============================================================================


@router.get("/time-slots")
async def get_time_slots(date: Optional[str] = Query(None, description="YYYY-MM-DD")):
    """Standard appointment windows and whether each can still be booked"""
    return {"date": date, "slots": list_time_slots(date)}


@router.post("/contact", dependencies=[Depends(form_rate_limit)])
async def submit_contact(data: ContactRequest, db: Session = Depends(get_db)):
    name = clean(data.name)
    email = clean(data.email)
    message = clean(data.message)
    company = clean(data.company)
    if not name or not email or not message:
        raise HTTPException(status_code=400, detail="Missing required fields")

    contact = ContactMessage(
        name=sanitize_text(name, max_length=255),
        email=email,
        company=sanitize_text(company, max_length=255) if company else None,
        message=sanitize_text(message, max_length=5000),
    )
    db.add(contact)
    db.commit()
    db.refresh(contact)
    logger.info(f"📩 Contact message {contact.id} from {email}")

    try:
        await send_contact_notification(contact.name, contact.email, contact.company, contact.message)
    except EmailDeliveryError as e:
        logger.warning(f"⚠️ Contact notification not sent for message {contact.id}: {e}")

    return {"ok": True, "id": contact.id}


@router.post("/quote-request", status_code=201, dependencies=[Depends(form_rate_limit)])
async def submit_quote_request(data: QuoteRequestCreate, db: Session = Depends(get_db)):
    details = _clean_dict(data.details)
    slot = get_time_slot(details.get("preferredTime"))
    if slot and not is_time_slot_available(details.get("preferredDate"), slot.start_hour):
        raise HTTPException(status_code=400, detail="Selected time slot is no longer available")

    fields = {
        "service": _clean_dict(data.service) or None,
        "urgency": clean(data.urgency),
        "other": clean(data.other),
        "contact": _clean_dict(data.contact),
        "location": _clean_dict(data.location),
        "details": details,
    }

    # Retry in the unlikely event of a reference number collision
    for _ in range(REFERENCE_ATTEMPTS):
        reference_number = generate_reference_number()
        quote = QuoteRequest(reference_number=reference_number, **fields)
        db.add(quote)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning(f"Reference number {reference_number} already taken, retrying")
            continue
        db.refresh(quote)
        logger.info(f"📋 Quote request {reference_number} received")
        return {"success": True, "referenceNumber": reference_number, "id": quote.id}

    raise HTTPException(status_code=500, detail="Could not generate reference number")


@router.post("/bookings", dependencies=[Depends(form_rate_limit)])
async def create_booking(data: BookingCreate, db: Session = Depends(get_db)):
    booking = Booking(
        name=sanitize_text(data.name, max_length=255),
        email=data.email,
        phone=data.phone,
        service_title=data.serviceTitle,
        service_slug=data.serviceSlug,
        price=data.price,
        options=data.options,
        quantity=data.quantity,
        notes=sanitize_text(data.notes, max_length=2000) if data.notes else None,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    logger.info(f"📅 Booking {booking.id} for {booking.service_slug}")

    return {
        "success": True,
        "booking": {
            "id": booking.id,
            "name": booking.name,
            "email": booking.email,
            "phone": booking.phone,
            "serviceTitle": booking.service_title,
            "serviceSlug": booking.service_slug,
            "price": booking.price,
            "options": booking.options or [],
            "quantity": booking.quantity,
            "notes": booking.notes,
            "status": booking.status,
            "createdAt": booking.created_at.isoformat() if booking.created_at else None,
        },
    }
