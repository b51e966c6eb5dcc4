"""Business calendar for the spa.

All attribution happens on the spa's civil clock (UTC+8), independent of
where the server or the browser runs. There are two distinct projections of
that clock and they must not be mixed:

* ``business_date``: the civil calendar date, midnight anchored. Used to
  decide which day a booking or a completion belongs to.
* ``shift_date`` / ``shift_window``: the operating shift that opens at
  16:00 and runs until 15:59:59 the next day. Used for revenue reporting
  periods.

Both are derived from the same local-time conversion, ``to_business_time``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from ..core.config import settings

CivilDate = date

BUSINESS_OFFSET = timedelta(hours=settings.BUSINESS_UTC_OFFSET_HOURS)
BUSINESS_TZ = timezone(BUSINESS_OFFSET)
SHIFT_START = time(settings.SHIFT_START_HOUR)


@dataclass(frozen=True)
class ShiftWindow:
    """Closed reporting window ``[start, end]`` in business-local time."""

    start: datetime
    end: datetime

    @property
    def business_date(self) -> CivilDate:
        return self.start.date()

    def contains(self, instant: datetime) -> bool:
        local = to_business_time(instant)
        return self.start <= local <= self.end

    def as_utc(self) -> tuple[datetime, datetime]:
        """Naive UTC bounds, matching how timestamps are stored."""
        return (
            self.start.astimezone(timezone.utc).replace(tzinfo=None),
            self.end.astimezone(timezone.utc).replace(tzinfo=None),
        )


def to_business_time(instant: datetime) -> datetime:
    """Convert ``instant`` to an aware datetime on the business clock.

    Naive datetimes are UTC, which is how the Store writes timestamps.
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(BUSINESS_TZ)


def business_now(now: Optional[datetime] = None) -> datetime:
    return to_business_time(now or datetime.now(timezone.utc))


def business_date(instant: datetime) -> CivilDate:
    return to_business_time(instant).date()


def business_today(now: Optional[datetime] = None) -> CivilDate:
    return business_now(now).date()


def shift_date(instant: datetime) -> CivilDate:
    """Date whose operating shift contains ``instant``.

    Anything before the shift start hour belongs to the previous day's shift.
    """
    local = to_business_time(instant)
    return (local - timedelta(hours=SHIFT_START.hour)).date()


def shift_window(day: CivilDate) -> ShiftWindow:
    start = datetime.combine(day, SHIFT_START, tzinfo=BUSINESS_TZ)
    return ShiftWindow(start=start, end=start + timedelta(days=1, seconds=-1))


def shift_span(first: CivilDate, last: CivilDate) -> ShiftWindow:
    """Window covering every shift from ``first`` through ``last`` inclusive."""
    if last < first:
        first, last = last, first
    return ShiftWindow(start=shift_window(first).start, end=shift_window(last).end)


def civil_datetime(day: CivilDate, at: time) -> datetime:
    """Aware datetime for a civil date/time pair recorded without a zone."""
    return datetime.combine(day, at.replace(tzinfo=None), tzinfo=BUSINESS_TZ)
