"""Revenue and commission reporting over shift windows.

Report ranges are built from operating shifts (16:00 to 15:59:59 next day),
while ``today_revenue`` follows the civil business date of completion. A
booking is placed in a range by its completion time, or its creation time
when it never completed.
"""

from __future__ import annotations

import calendar
import logging
from collections import OrderedDict
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from .. import crud, models, schemas
from ..models.booking_status import ACTIVE_STATUSES, BookingStatus, TipRecipient
from ..utils.errors import ValidationError
from .business_calendar import (
    BUSINESS_TZ,
    ShiftWindow,
    business_today,
    shift_date,
    shift_span,
)
from .commission import ZERO, _money, _to_decimal

logger = logging.getLogger(__name__)

RANGE_DAYS = {"today": 1, "7d": 7, "30d": 30, "90d": 90}
RANGES = tuple(RANGE_DAYS) + ("month", "all")


def report_window(
    range_key: str,
    year: Optional[int] = None,
    month: Optional[int] = None,
    now: Optional[datetime] = None,
) -> Optional[ShiftWindow]:
    """Shift window for a report range; ``None`` means all time."""
    if range_key == "all":
        return None
    if range_key in RANGE_DAYS:
        current = shift_date(now or datetime.now(timezone.utc))
        return shift_span(current - timedelta(days=RANGE_DAYS[range_key] - 1), current)
    if range_key == "month":
        if not year or not month or not 1 <= month <= 12:
            raise ValidationError(
                "A month report needs a year and a month.",
                {"month": "Provide year and month (1-12)."},
            )
        last_day = calendar.monthrange(year, month)[1]
        return shift_span(date(year, month, 1), date(year, month, last_day))
    raise ValidationError(
        f"Unknown report range {range_key!r}.",
        {"range": f"Use one of: {', '.join(RANGES)}."},
    )


def _instant(booking: models.Booking) -> datetime:
    return booking.completed_at or booking.created_at


def _price(booking: models.Booking) -> Decimal:
    if booking.price_at_booking is not None:
        return _to_decimal(booking.price_at_booking)
    return _to_decimal(booking.service.price if booking.service else None)


def _management_tip(booking: models.Booking) -> Decimal:
    if booking.tip_recipient == TipRecipient.MANAGEMENT:
        return _to_decimal(booking.tip_amount)
    return ZERO


def _in_window(db: Session, window: Optional[ShiftWindow]):
    query = crud.booking.with_joins(crud.booking.active(db))
    if window is not None:
        start, end = window.as_utc()
        moment = func.coalesce(models.Booking.completed_at, models.Booking.created_at)
        query = query.filter(moment >= start, moment <= end)
    return query


def today_revenue(db: Session, now: Optional[datetime] = None) -> Decimal:
    """Service revenue completed on the current civil business date."""
    today = business_today(now)
    start = datetime.combine(today, time(0), tzinfo=BUSINESS_TZ).astimezone(timezone.utc)
    end = start + timedelta(days=1)
    rows = (
        crud.booking.active(db)
        .options(joinedload(models.Booking.service))
        .filter(
            models.Booking.status == BookingStatus.COMPLETED,
            models.Booking.completed_at >= start.replace(tzinfo=None),
            models.Booking.completed_at < end.replace(tzinfo=None),
        )
        .all()
    )
    return _money(sum((_price(b) for b in rows), ZERO))


def revenue_report(
    db: Session,
    range_key: str = "30d",
    year: Optional[int] = None,
    month: Optional[int] = None,
    now: Optional[datetime] = None,
) -> schemas.RevenueReport:
    window = report_window(range_key, year, month, now)
    bookings = _in_window(db, window).all()

    gross = pending = lost = management_tips = therapist_tips = ZERO
    completed_count = 0
    daily: Dict[date, Decimal] = {}
    by_service: "OrderedDict[str, schemas.RevenueBucket]" = OrderedDict()
    by_therapist: "OrderedDict[str, schemas.RevenueBucket]" = OrderedDict()

    for booking in bookings:
        price = _price(booking)
        if booking.status in ACTIVE_STATUSES:
            pending += price
            continue
        if booking.status == BookingStatus.CANCELLED:
            lost += price
            continue
        completed_count += 1
        tip = _management_tip(booking)
        gross += price + tip
        management_tips += tip
        if booking.tip_recipient == TipRecipient.THERAPIST:
            therapist_tips += _to_decimal(booking.tip_amount)
        day = shift_date(_instant(booking))
        daily[day] = daily.get(day, ZERO) + price + tip

        service_key = str(booking.service_id)
        bucket = by_service.setdefault(
            service_key,
            schemas.RevenueBucket(
                key=service_key,
                name=booking.service.title if booking.service else "Unknown",
                count=0,
                revenue=ZERO,
            ),
        )
        bucket.count += 1
        bucket.revenue += price

        therapist_key = str(booking.therapist_id) if booking.therapist_id else "unassigned"
        bucket = by_therapist.setdefault(
            therapist_key,
            schemas.RevenueBucket(
                key=therapist_key,
                name=booking.therapist.name if booking.therapist else "Unassigned",
                count=0,
                revenue=ZERO,
            ),
        )
        bucket.count += 1
        bucket.revenue += price

    report = schemas.RevenueReport(
        range=range_key,
        period_start=window.start if window else None,
        period_end=window.end if window else None,
        gross_revenue=_money(gross),
        pending_revenue=_money(pending),
        lost_revenue=_money(lost),
        management_tips=_money(management_tips),
        therapist_tips=_money(therapist_tips),
        today_revenue=today_revenue(db, now),
        completed_count=completed_count,
        daily=[
            schemas.DailyRevenue(shift_date=day, revenue=_money(amount))
            for day, amount in sorted(daily.items())
        ],
        by_service=_ranked(by_service.values()),
        by_therapist=_ranked(by_therapist.values()),
    )
    logger.debug(
        "Revenue report %s: %d bookings, gross %s", range_key, len(bookings), report.gross_revenue
    )
    return report


def _ranked(buckets) -> List[schemas.RevenueBucket]:
    ranked = sorted(buckets, key=lambda b: (-b.revenue, b.name))
    for bucket in ranked:
        bucket.revenue = _money(bucket.revenue)
    return ranked


def commission_report(
    db: Session,
    range_key: str = "30d",
    year: Optional[int] = None,
    month: Optional[int] = None,
    now: Optional[datetime] = None,
) -> schemas.CommissionReport:
    window = report_window(range_key, year, month, now)
    rows = (
        _in_window(db, window)
        .filter(
            models.Booking.status == BookingStatus.COMPLETED,
            models.Booking.therapist_id.isnot(None),
        )
        .all()
    )
    totals: "OrderedDict[int, schemas.TherapistCommission]" = OrderedDict()
    for booking in rows:
        line = totals.setdefault(
            booking.therapist_id,
            schemas.TherapistCommission(
                therapist_id=booking.therapist_id,
                name=booking.therapist.name if booking.therapist else "Unknown",
                amount=ZERO,
            ),
        )
        line.amount += _to_decimal(booking.commission_amount)
    per_therapist = sorted(totals.values(), key=lambda line: (-line.amount, line.name))
    for line in per_therapist:
        line.amount = _money(line.amount)
    return schemas.CommissionReport(
        range=range_key,
        total=_money(sum((line.amount for line in per_therapist), ZERO)),
        count=len(rows),
        per_therapist=per_therapist,
    )

