import logging
from datetime import date

from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String
from sqlalchemy.orm import relationship

from .base import BaseModel

logger = logging.getLogger(__name__)


class Therapist(BaseModel):
    """Read-only to the booking engine; maintained by the staff back-office."""

    __tablename__ = "therapists"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    # ISO dates ("YYYY-MM-DD") on which the therapist cannot be assigned
    unavailable_blockouts = Column(JSON, nullable=True)
    deleted_at = Column(DateTime, nullable=True)

    bookings = relationship("Booking", back_populates="therapist")
    payouts = relationship("CommissionPayout", back_populates="therapist")

    @property
    def blockout_dates(self) -> set[date]:
        raw = self.unavailable_blockouts or []
        if isinstance(raw, str):
            raw = [part for part in raw.split(",")]
        dates: set[date] = set()
        for item in raw:
            text = str(item).strip()[:10]
            if not text:
                continue
            try:
                dates.add(date.fromisoformat(text))
            except ValueError:
                logger.warning("Therapist %s has a malformed blockout date: %r", self.id, item)
        return dates

    def is_blocked_on(self, day: date) -> bool:
        return day in self.blockout_dates
