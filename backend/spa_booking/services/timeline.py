"""Three-hour slot board for the front desk.

A business date is drawn as ten fixed slots on a 28-hour scale: 00:00 of the
date through 04:00 of the next calendar date. Bookings after midnight are
placed by ``effective_hour = hour + 24`` so the board keeps chronological
order across the rollover instead of wrapping back to slot 0.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..core.config import settings
from ..models.booking_status import TIMELINE_STATUSES
from .business_calendar import business_now, business_today

logger = logging.getLogger(__name__)

SLOT_HOURS = 3
SLOT_MINUTES = SLOT_HOURS * 60
DAY_END_HOUR = settings.TIMELINE_END_HOUR
SLOT_STARTS: tuple[int, ...] = tuple(range(0, 24 + DAY_END_HOUR, SLOT_HOURS))


def slot_label(hour: int) -> str:
    clock = hour % 24
    suffix = "AM" if clock < 12 else "PM"
    label = f"{clock % 12 or 12} {suffix}"
    return f"{label} (+1)" if hour >= 24 else label


def effective_hour(booking_date: date, hour: int, day: date) -> int:
    return hour + 24 if booking_date > day else hour


def slot_for_hour(hour: int) -> int:
    """Greatest slot boundary not after ``hour``; boundaries belong to their slot."""
    start = (hour // SLOT_HOURS) * SLOT_HOURS
    return min(max(start, SLOT_STARTS[0]), SLOT_STARTS[-1])


def on_board(booking: models.Booking, day: date) -> bool:
    if booking.deleted_at is not None or booking.status not in TIMELINE_STATUSES:
        return False
    if booking.booking_date == day:
        return True
    return (
        booking.booking_date == day + timedelta(days=1)
        and booking.booking_time.hour < DAY_END_HOUR
    )


def assign_slots(bookings: Iterable[models.Booking], day: date) -> dict[int, list]:
    """Partition ``bookings`` into slots, keeping input order within a slot."""
    slots: dict[int, list] = {start: [] for start in SLOT_STARTS}
    for booking in bookings:
        if not on_board(booking, day):
            continue
        hour = effective_hour(booking.booking_date, booking.booking_time.hour, day)
        slots[slot_for_hour(hour)].append(booking)
    return slots


def now_marker(day: date, now: Optional[datetime] = None) -> Optional[schemas.NowMarker]:
    """Position of the current business time on ``day``'s board, if it is on it."""
    local = business_now(now)
    if local.date() == day:
        hour = local.hour
    elif local.date() == day + timedelta(days=1) and local.hour < DAY_END_HOUR:
        hour = local.hour + 24
    else:
        return None
    slot = slot_for_hour(hour)
    elapsed = (hour - slot) * 60 + local.minute + local.second / 60
    return schemas.NowMarker(local_time=local, slot=slot, offset=elapsed / SLOT_MINUTES)


def build_timeline(
    db: Session,
    day: Optional[date] = None,
    now: Optional[datetime] = None,
) -> schemas.TimelineResponse:
    day = day or business_today(now)
    rows = crud.booking.timeline_bookings(
        db,
        day=day,
        next_day=day + timedelta(days=1),
        next_day_cutoff=time(DAY_END_HOUR),
    )
    slots = assign_slots(rows, day)
    logger.debug("Timeline for %s: %d bookings", day, len(rows))
    return schemas.TimelineResponse(
        business_date=day,
        slot_minutes=SLOT_MINUTES,
        slots=[
            schemas.TimelineSlot(
                hour=start,
                label=slot_label(start),
                bookings=[crud.booking.to_view(b) for b in members],
            )
            for start, members in slots.items()
        ],
        therapists=[
            schemas.TherapistSnapshot.model_validate(t) for t in crud.active_therapists(db)
        ],
        now=now_marker(day, now),
    )

