import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


# Order lifecycle values mirrored from the payment processor
ORDER_STATUSES = (
    "pending",
    "paid",
    "failed",
    "active",
    "trialing",
    "past_due",
    "incomplete",
    "incomplete_expired",
    "unpaid",
    "canceled",
    "refunded",
)

NOTIFICATION_TYPES = ("success", "info", "warning", "error")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    stripe_customer_id = Column(String(255), nullable=True, index=True)
    reset_token = Column(String(128), nullable=True, index=True)
    reset_token_expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    orders = relationship("Order", back_populates="user")
    notifications = relationship("Notification", back_populates="user")


class Cart(Base):
    """One row per visitor session; items and wizard steps live in JSON columns"""

    __tablename__ = "carts"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(64), unique=True, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    # [{slug, title, base_price, price, options: [{name, price}], quantity}]
    items = Column(JSON, nullable=False, default=list)
    contact = Column(JSON, nullable=True)  # {name, email, phone}
    address = Column(JSON, nullable=True)  # {street, city, state, zip}
    schedule = Column(JSON, nullable=True)  # {date, time}
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, index=True, default=generate_public_id)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    stripe_session_id = Column(String(255), unique=True, index=True, nullable=True)
    stripe_subscription_id = Column(String(255), nullable=True)
    email = Column(String(255), index=True, nullable=True)
    items = Column(JSON, nullable=False, default=list)
    total = Column(Float, nullable=False, default=0)
    quantity = Column(Integer, nullable=False, default=0)
    is_subscription = Column(Boolean, default=False, nullable=False)
    status = Column(String(32), default="pending", nullable=False)  # one of ORDER_STATUSES
    refunded = Column(Boolean, default=False, nullable=False)
    plan_name = Column(String(255), nullable=True)
    plan_price = Column(Float, nullable=True)
    plan_interval = Column(String(20), nullable=True)
    contact = Column(JSON, nullable=True)
    address = Column(JSON, nullable=True)
    schedule = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="orders")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    email = Column(String(255), index=True, nullable=True)
    message = Column(Text, nullable=False)
    type = Column(String(20), default="info", nullable=False)  # one of NOTIFICATION_TYPES
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="notifications")


class Assessment(Base):
    """Scored quiz submission, viewable by anyone holding the share id"""

    __tablename__ = "assessments"

    id = Column(Integer, primary_key=True, index=True)
    share_id = Column(String(32), unique=True, index=True, nullable=False)
    assessment_id = Column(String(255), nullable=False)  # CMS config document id
    assessment_slug = Column(String(255), index=True, nullable=False)
    assessment_type = Column(String(255), nullable=True)  # config title at submit time
    answers = Column(JSON, nullable=False, default=dict)
    score = Column(Float, nullable=False, default=0)
    recommendation_id = Column(String(255), nullable=True)
    category_scores = Column(JSON, nullable=False, default=dict)
    user_info = Column(JSON, nullable=True)  # {name, email, company, phone}
    request_metadata = Column(JSON, nullable=True)  # {userAgent, referrer, ipAddress}
    view_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), index=True)


class DiscountLead(Base):
    __tablename__ = "discount_leads"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False)
    email_lower = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(50), nullable=False)
    consent = Column(Boolean, default=False, nullable=False)
    discount_code = Column(String(64), index=True, nullable=False)
    discount_percent = Column(Integer, nullable=False, default=10)
    source = Column(String(64), default="discount-popup", nullable=False)
    code_sent_at = Column(DateTime, nullable=True)
    redeemed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=True)
    service_title = Column(String(255), nullable=False)
    service_slug = Column(String(255), nullable=False)
    price = Column(Float, nullable=False)
    options = Column(JSON, nullable=True)
    quantity = Column(Integer, default=1, nullable=False)
    notes = Column(Text, nullable=True)
    status = Column(String(32), default="pending", nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class QuoteRequest(Base):
    __tablename__ = "quote_requests"

    id = Column(Integer, primary_key=True, index=True)
    reference_number = Column(String(16), unique=True, index=True, nullable=False)
    status = Column(String(32), default="new", nullable=False)
    service = Column(JSON, nullable=True)  # {category, group, service}
    urgency = Column(String(64), nullable=True)
    other = Column(Text, nullable=True)
    contact = Column(JSON, nullable=False)  # {firstName, lastName, email, phone}
    location = Column(JSON, nullable=True)  # {streetAddress, city, zipCode}
    # {projectDetails, wantsTechnicianVisitFirst, preferredDate, preferredTime, heardAbout}
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, server_default=func.now())


class ContactMessage(Base):
    __tablename__ = "contact_messages"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    company = Column(String(255), nullable=True)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
