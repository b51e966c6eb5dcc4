from datetime import date, datetime, time
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from ..models.booking_status import PayoutStatus, TipRecipient
from .booking import TherapistSnapshot


class UnsettledLine(BaseModel):
    therapist: TherapistSnapshot
    amount: Decimal
    commission_total: Decimal
    tip_total: Decimal
    booking_ids: List[int]


class PayoutCreate(BaseModel):
    therapist_id: int
    # The total the operator was quoted; must match the ledger at settle time
    amount: Decimal = Field(ge=0)
    booking_ids: List[int] = Field(min_length=1)
    notes: Optional[str] = None

    @field_validator("booking_ids")
    def unique_ids(cls, v: List[int]) -> List[int]:
        if len(set(v)) != len(v):
            raise ValueError("booking_ids must not repeat")
        return v


class PayoutBookingLine(BaseModel):
    id: int
    booking_date: date
    booking_time: time
    guest_name: Optional[str] = None
    service_title: Optional[str] = None
    commission_amount: Decimal
    tip_amount: Decimal
    tip_recipient: Optional[TipRecipient] = None
    earnings: Decimal


class PayoutResponse(BaseModel):
    id: int
    therapist_id: int
    therapist_name: Optional[str] = None
    amount: Decimal
    period_start: date
    period_end: date
    status: PayoutStatus
    processed_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    bookings: List[PayoutBookingLine] = []
