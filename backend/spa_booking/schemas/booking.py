from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import date, datetime, time
from decimal import Decimal

from ..models.booking_status import BookingStatus, TipRecipient


# Shared properties for Booking
class BookingBase(BaseModel):
    service_id: int
    booking_date: date
    booking_time: time
    therapist_id: Optional[int] = None
    guest_name: Optional[str] = None
    guest_phone: Optional[str] = None
    guest_email: Optional[str] = None

    @field_validator("guest_name", "guest_phone", "guest_email", mode="before")
    def blank_to_none(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


# Public booking form
class BookingCreate(BookingBase):
    # The caller's anonymous browser token; the X-Visitor-Id header wins when both are sent
    visitor_id: Optional[str] = None
    # Honeypot: hidden from humans, so anything here came from a bot
    website: Optional[str] = Field(default=None, max_length=512)


# Walk-in booking entered by staff; a therapist is mandatory
class ManualBookingCreate(BookingBase):
    therapist_id: int
    guest_name: str


# Staff edit of a pending or confirmed booking; only the fields sent are changed
class BookingUpdate(BaseModel):
    service_id: Optional[int] = None
    therapist_id: Optional[int] = None
    booking_date: Optional[date] = None
    booking_time: Optional[time] = None
    guest_name: Optional[str] = None
    guest_phone: Optional[str] = None
    guest_email: Optional[str] = None

    @field_validator("guest_name", "guest_phone", "guest_email", mode="before")
    def blank_to_none(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    therapist_id: Optional[int] = None
    # Only used when completing: actual completion time, defaults to now
    completed_at: Optional[datetime] = None
    tip_amount: Optional[Decimal] = Field(default=None, ge=0)
    tip_recipient: Optional[TipRecipient] = None


class ServiceSnapshot(BaseModel):
    id: int
    title: str
    price: Decimal
    duration_minutes: Optional[int] = None

    model_config = {"from_attributes": True}


class TherapistSnapshot(BaseModel):
    id: int
    name: str
    active: bool = True

    model_config = {"from_attributes": True}


# Read-side view: the booking row joined with its service and therapist
class BookingView(BaseModel):
    id: int
    user_id: Optional[str] = None
    visitor_id: Optional[str] = None
    user_email: Optional[str] = None
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    service_id: int
    therapist_id: Optional[int] = None
    booking_date: date
    booking_time: time
    status: BookingStatus
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    price_at_booking: Optional[Decimal] = None
    commission_amount: Decimal = Decimal("0")
    revenue_amount: Decimal = Decimal("0")
    tip_amount: Decimal = Decimal("0")
    tip_recipient: Optional[TipRecipient] = None
    payout_id: Optional[int] = None

    service: Optional[ServiceSnapshot] = None
    therapist: Optional[TherapistSnapshot] = None

    model_config = {"from_attributes": True}


class BookingAccepted(BaseModel):
    """Body returned when a submission is received but not persisted."""
    detail: str = "Booking request received."


class BookingStats(BaseModel):
    total: int = 0
    pending: int = 0
    confirmed: int = 0
    completed: int = 0
    cancelled: int = 0


class ReturningGuest(BaseModel):
    guest_name: Optional[str] = None
    guest_phone: Optional[str] = None
