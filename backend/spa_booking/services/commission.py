"""Commission ledger and payout settlement.

A completed booking carries a fixed ``commission_amount`` owed to its
therapist. Until it is linked to a ``CommissionPayout`` it is "unsettled".
Therapist-kept tips ride along with the commission in the payout total;
management tips never do.

Settling is a check-then-act sequence: the operator is quoted a total, then
confirms it. ``settle`` serializes per therapist and re-verifies inside the
transaction so a stale quote or a booking already claimed by another payout
is rejected instead of reconciled.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from datetime import datetime
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload

from .. import crud, models, schemas
from ..core.config import settings
from ..models.booking_status import BookingStatus, TipRecipient
from ..utils.errors import AlreadySettled, NotFound, StaleTotal
from ..utils.keyed_lock import settlement_locks
from .business_calendar import business_today

logger = logging.getLogger(__name__)

_CENT = Decimal("0.01")
ZERO = Decimal("0")


def _to_decimal(value: Any, default: Decimal = ZERO) -> Decimal:
    if value is None:
        return default
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return default


def _money(value: Any) -> Decimal:
    return _to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def compute_commission(price: Any, rate: Optional[Decimal] = None) -> Tuple[Decimal, Decimal]:
    """Return ``(commission, revenue)`` for a service price.

    Commission is the rate share rounded up to the whole peso; revenue is
    what remains for the spa.
    """
    rate = settings.COMMISSION_RATE if rate is None else rate
    price = _to_decimal(price)
    commission = (price * rate).to_integral_value(rounding=ROUND_CEILING)
    return _money(commission), _money(price - commission)


def therapist_tip(booking: models.Booking) -> Decimal:
    if booking.tip_recipient == TipRecipient.THERAPIST:
        return _to_decimal(booking.tip_amount)
    return ZERO


def payout_earnings(booking: models.Booking) -> Decimal:
    """What one booking adds to its therapist's payout."""
    return _money(_to_decimal(booking.commission_amount) + therapist_tip(booking))


def _unsettled_query(db: Session):
    return (
        db.query(models.Booking)
        .filter(
            models.Booking.status == BookingStatus.COMPLETED,
            models.Booking.payout_id.is_(None),
            models.Booking.deleted_at.is_(None),
            models.Booking.therapist_id.isnot(None),
        )
    )


def _line(therapist: models.Therapist, bookings: Sequence[models.Booking]) -> schemas.UnsettledLine:
    commission_total = _money(sum((_to_decimal(b.commission_amount) for b in bookings), ZERO))
    tip_total = _money(sum((therapist_tip(b) for b in bookings), ZERO))
    return schemas.UnsettledLine(
        therapist=schemas.TherapistSnapshot.model_validate(therapist),
        amount=commission_total + tip_total,
        commission_total=commission_total,
        tip_total=tip_total,
        booking_ids=[b.id for b in bookings],
    )


def unsettled_by_therapist(db: Session) -> List[schemas.UnsettledLine]:
    rows = (
        _unsettled_query(db)
        .options(joinedload(models.Booking.therapist))
        .order_by(models.Booking.therapist_id, models.Booking.booking_date, models.Booking.id)
        .all()
    )
    grouped: "OrderedDict[int, list]" = OrderedDict()
    for booking in rows:
        grouped.setdefault(booking.therapist_id, []).append(booking)
    lines = [_line(items[0].therapist, items) for items in grouped.values()]
    lines.sort(key=lambda line: line.therapist.name.lower())
    return lines


def quote(db: Session, therapist_id: int) -> schemas.UnsettledLine:
    """Current unsettled total for one therapist.

    Archived therapists are still owed for the sessions they completed.
    """
    therapist = crud.get_therapist(db, therapist_id, include_deleted=True)
    if therapist is None:
        raise NotFound(f"Therapist {therapist_id} not found.", therapist_id=therapist_id)
    rows = (
        _unsettled_query(db)
        .filter(models.Booking.therapist_id == therapist_id)
        .order_by(models.Booking.booking_date, models.Booking.id)
        .all()
    )
    return _line(therapist, rows)


def settle(
    db: Session,
    therapist_id: int,
    amount: Any,
    booking_ids: Iterable[int],
    processed_by: Optional[str] = None,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> models.CommissionPayout:
    """Create one payout for ``booking_ids`` and link every booking to it.

    ``booking_ids`` must be exactly the therapist's current unsettled set and
    ``amount`` must equal its recomputed total; otherwise the quote is stale.
    """
    ids = list(dict.fromkeys(booking_ids))
    quoted = _money(amount)
    with settlement_locks.hold(f"therapist:{therapist_id}"):
        current = quote(db, therapist_id)
        requested = set(ids)
        if requested != set(current.booking_ids):
            claimed = (
                db.query(models.Booking.id)
                .filter(models.Booking.id.in_(ids), models.Booking.payout_id.isnot(None))
                .all()
            )
            if claimed:
                claimed_ids = sorted(row[0] for row in claimed)
                logger.warning(
                    "Settlement for therapist %s rejected: bookings %s already settled",
                    therapist_id,
                    claimed_ids,
                )
                raise AlreadySettled(
                    "One or more bookings already belong to a payout.",
                    booking_ids=claimed_ids,
                )
            logger.warning(
                "Settlement for therapist %s rejected: booking set changed (%s vs %s)",
                therapist_id,
                sorted(requested),
                current.booking_ids,
            )
            raise StaleTotal(
                "The unsettled bookings changed since this payout was quoted. Please re-quote.",
                expected_amount=str(current.amount),
                booking_ids=current.booking_ids,
            )
        if quoted != current.amount:
            logger.warning(
                "Settlement for therapist %s rejected: quoted %s, ledger %s",
                therapist_id,
                quoted,
                current.amount,
            )
            raise StaleTotal(
                "The payout amount no longer matches the unsettled total. Please re-quote.",
                expected_amount=str(current.amount),
                booking_ids=current.booking_ids,
            )

        dates = [
            d
            for (d,) in db.query(models.Booking.booking_date)
            .filter(models.Booking.id.in_(ids))
            .all()
        ]
        payout = models.CommissionPayout(
            therapist_id=therapist_id,
            amount=quoted,
            period_start=min(dates),
            period_end=max(max(dates), business_today(now)),
            processed_by=processed_by,
            notes=notes,
        )
        db.add(payout)
        db.flush()
        result = db.execute(
            update(models.Booking)
            .where(
                models.Booking.id.in_(ids),
                models.Booking.therapist_id == therapist_id,
                models.Booking.payout_id.is_(None),
                models.Booking.status == BookingStatus.COMPLETED,
                models.Booking.deleted_at.is_(None),
            )
            .values(payout_id=payout.id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != len(ids):
            db.rollback()
            logger.warning(
                "Settlement for therapist %s lost a race: linked %s of %s bookings",
                therapist_id,
                result.rowcount,
                len(ids),
            )
            raise StaleTotal(
                "Another change claimed some of these bookings. Please re-quote.",
                booking_ids=ids,
            )
        db.commit()
    # Bookings already in the session still hold payout_id=None
    db.expire_all()
    db.refresh(payout)
    logger.info(
        "Payout %s settled %d bookings for therapist %s amount=%s",
        payout.id,
        len(ids),
        therapist_id,
        payout.amount,
    )
    return payout


def payout_response(payout: models.CommissionPayout) -> schemas.PayoutResponse:
    return schemas.PayoutResponse(
        id=payout.id,
        therapist_id=payout.therapist_id,
        therapist_name=payout.therapist.name if payout.therapist else None,
        amount=_money(payout.amount),
        period_start=payout.period_start,
        period_end=payout.period_end,
        status=payout.status,
        processed_by=payout.processed_by,
        notes=payout.notes,
        created_at=payout.created_at,
        bookings=[
            schemas.PayoutBookingLine(
                id=b.id,
                booking_date=b.booking_date,
                booking_time=b.booking_time,
                guest_name=b.customer_label,
                service_title=b.service.title if b.service else None,
                commission_amount=_money(b.commission_amount),
                tip_amount=_money(b.tip_amount),
                tip_recipient=b.tip_recipient,
                earnings=payout_earnings(b),
            )
            for b in payout.bookings
        ],
    )


def get_payout(db: Session, payout_id: int) -> models.CommissionPayout:
    payout = crud.crud_payout.get_payout(db, payout_id)
    if payout is None:
        raise NotFound(f"Payout {payout_id} not found.", payout_id=payout_id)
    return payout


def payout_history(
    db: Session,
    therapist_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[schemas.PayoutResponse]:
    return [
        payout_response(p)
        for p in crud.crud_payout.list_payouts(db, therapist_id, skip=skip, limit=limit)
    ]
