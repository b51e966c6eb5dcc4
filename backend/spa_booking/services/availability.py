import logging
from datetime import date, time
from typing import List, Optional

from sqlalchemy.orm import Session

from .. import crud, models
from ..core.config import settings
from ..utils.errors import ScheduleConflict

logger = logging.getLogger(__name__)


def service_duration(service: Optional[models.Service]) -> int:
    if service is not None and service.duration_minutes:
        return int(service.duration_minutes)
    return settings.DEFAULT_SERVICE_DURATION_MINUTES


def _minutes(at: time) -> int:
    return at.hour * 60 + at.minute


def overlapping_bookings(
    db: Session,
    therapist_id: int,
    day: date,
    start: time,
    duration_minutes: int,
    exclude_booking_id: Optional[int] = None,
) -> List[models.Booking]:
    """Pending/confirmed bookings of the therapist whose session overlaps ``[start, start+duration)``."""
    new_start = _minutes(start)
    new_end = new_start + duration_minutes
    clashes = []
    for other in crud.booking.therapist_day_bookings(
        db, therapist_id, day, exclude_booking_id=exclude_booking_id
    ):
        other_start = _minutes(other.booking_time)
        other_end = other_start + service_duration(other.service)
        if new_start < other_end and new_end > other_start:
            clashes.append(other)
    return clashes


def ensure_therapist_available(
    db: Session,
    therapist: models.Therapist,
    day: date,
    start: time,
    duration_minutes: int,
    exclude_booking_id: Optional[int] = None,
) -> None:
    """Raise ``ScheduleConflict`` when the therapist cannot take this session.

    Checks the therapist's blockout dates first, then overlapping sessions
    on the same date.
    """
    if not therapist.active or therapist.deleted_at is not None:
        raise ScheduleConflict(
            f"{therapist.name} is not taking bookings.", therapist_id=therapist.id
        )
    if therapist.is_blocked_on(day):
        logger.info("Therapist %s blocked out on %s", therapist.id, day)
        raise ScheduleConflict(
            f"{therapist.name} is marked as unavailable on {day.isoformat()}.",
            therapist_id=therapist.id,
            booking_date=day.isoformat(),
        )
    clashes = overlapping_bookings(
        db, therapist.id, day, start, duration_minutes, exclude_booking_id
    )
    if clashes:
        logger.info(
            "Therapist %s has %d overlapping booking(s) on %s at %s",
            therapist.id,
            len(clashes),
            day,
            start,
        )
        raise ScheduleConflict(
            f"{therapist.name} already has an overlapping booking on {day.isoformat()}. "
            "Please choose a different time or therapist.",
            therapist_id=therapist.id,
            booking_date=day.isoformat(),
            conflicting_booking_ids=[b.id for b in clashes],
        )
