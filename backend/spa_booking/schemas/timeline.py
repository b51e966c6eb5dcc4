from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel

from .booking import BookingView, TherapistSnapshot


class TimelineSlot(BaseModel):
    # Effective hour on a 28-hour scale; 24 and 27 are the small hours of the next date
    hour: int
    label: str
    bookings: List[BookingView] = []


class NowMarker(BaseModel):
    local_time: datetime
    slot: int
    offset: float


class TimelineResponse(BaseModel):
    business_date: date
    slot_minutes: int
    slots: List[TimelineSlot]
    therapists: List[TherapistSnapshot] = []
    now: Optional[NowMarker] = None
