"""Booking status transitions driven by staff.

    pending ──> confirmed ──> completed
       │  ^         │
       v  │         │
    cancelled <─────┘

``cancelled -> pending`` is the restore (undo) path. ``completed`` is
terminal. Completion is the only transition that writes money onto the
booking. Every rejected transition leaves the row untouched.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, FrozenSet, Optional

from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..models.booking_status import ACTIVE_STATUSES, BookingStatus, TipRecipient
from ..utils.errors import IllegalTransition, NotFound, ValidationError
from .admission import PHONE_RE, normalize_phone
from .availability import ensure_therapist_available, service_duration
from .commission import compute_commission

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    BookingStatus.CANCELLED: frozenset({BookingStatus.PENDING}),
    BookingStatus.COMPLETED: frozenset(),
}


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(BookingStatus(current), frozenset())


def _as_utc_naive(moment: Optional[datetime]) -> datetime:
    if moment is None:
        return datetime.utcnow()
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def _assign_therapist(db: Session, booking: models.Booking, therapist_id: int) -> None:
    therapist = crud.get_therapist(db, therapist_id)
    if therapist is None:
        raise NotFound(f"Therapist {therapist_id} not found.", therapist_id=therapist_id)
    ensure_therapist_available(
        db,
        therapist,
        booking.booking_date,
        booking.booking_time,
        service_duration(booking.service),
        exclude_booking_id=booking.id,
    )
    booking.therapist_id = therapist.id


def _complete(booking: models.Booking, payload: schemas.BookingStatusUpdate) -> None:
    tip = payload.tip_amount or Decimal("0")
    if tip > 0 and payload.tip_recipient is None:
        raise ValidationError(
            "Choose who keeps the tip.",
            {"tip_recipient": "Required when a tip is recorded."},
        )
    price = booking.price_at_booking
    if price is None:
        price = booking.service.price if booking.service else Decimal("0")
    commission, revenue = compute_commission(price)
    booking.completed_at = _as_utc_naive(payload.completed_at)
    booking.price_at_booking = price
    booking.commission_amount = commission
    booking.revenue_amount = revenue
    booking.tip_amount = tip
    booking.tip_recipient = payload.tip_recipient if tip > 0 else None


def apply_status_update(
    db: Session,
    booking_id: int,
    payload: schemas.BookingStatusUpdate,
) -> models.Booking:
    """Move a booking to ``payload.status``.

    A same-status update that names a different therapist reassigns a
    pending or confirmed booking. Confirming requires a therapist, either
    already set or supplied in the same call.
    """
    booking = crud.booking.require_booking(db, booking_id)
    current = BookingStatus(booking.status)
    target = payload.status
    wants_therapist = (
        payload.therapist_id is not None and payload.therapist_id != booking.therapist_id
    )

    if target == current:
        if not (wants_therapist and current in ACTIVE_STATUSES):
            raise IllegalTransition(
                f"Booking is already {current.value}.",
                current_status=current.value,
                requested_status=target.value,
            )
        _assign_therapist(db, booking, payload.therapist_id)
        db.commit()
        db.refresh(booking)
        logger.info("Booking %s reassigned to therapist %s", booking.id, booking.therapist_id)
        return booking

    if not can_transition(current, target):
        raise IllegalTransition(
            f"Cannot change a {current.value} booking to {target.value}.",
            current_status=current.value,
            requested_status=target.value,
        )

    if wants_therapist:
        if target not in ACTIVE_STATUSES:
            raise IllegalTransition(
                "A therapist can only be assigned to a pending or confirmed booking.",
                current_status=current.value,
                requested_status=target.value,
            )
        _assign_therapist(db, booking, payload.therapist_id)
    elif target == BookingStatus.PENDING and booking.therapist_id is not None:
        # Restored bookings occupy the therapist's schedule again
        therapist = crud.get_therapist(db, booking.therapist_id)
        if therapist is not None:
            ensure_therapist_available(
                db,
                therapist,
                booking.booking_date,
                booking.booking_time,
                service_duration(booking.service),
                exclude_booking_id=booking.id,
            )

    if target == BookingStatus.CONFIRMED and booking.therapist_id is None:
        db.rollback()
        raise IllegalTransition(
            "Assign a therapist before confirming this booking.",
            current_status=current.value,
            requested_status=target.value,
        )

    if target == BookingStatus.COMPLETED:
        try:
            _complete(booking, payload)
        except ValidationError:
            db.rollback()
            raise

    booking.status = target
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s moved from %s to %s", booking.id, current.value, target.value)
    return booking


def confirm(db: Session, booking_id: int, therapist_id: Optional[int] = None) -> models.Booking:
    return apply_status_update(
        db,
        booking_id,
        schemas.BookingStatusUpdate(status=BookingStatus.CONFIRMED, therapist_id=therapist_id),
    )


def complete(
    db: Session,
    booking_id: int,
    completed_at: Optional[datetime] = None,
    tip_amount: Optional[Decimal] = None,
    tip_recipient: Optional[TipRecipient] = None,
) -> models.Booking:
    return apply_status_update(
        db,
        booking_id,
        schemas.BookingStatusUpdate(
            status=BookingStatus.COMPLETED,
            completed_at=completed_at,
            tip_amount=tip_amount,
            tip_recipient=tip_recipient,
        ),
    )


def cancel(db: Session, booking_id: int) -> models.Booking:
    return apply_status_update(
        db, booking_id, schemas.BookingStatusUpdate(status=BookingStatus.CANCELLED)
    )


def restore(db: Session, booking_id: int) -> models.Booking:
    return apply_status_update(
        db, booking_id, schemas.BookingStatusUpdate(status=BookingStatus.PENDING)
    )


def reassign(db: Session, booking_id: int, therapist_id: int) -> models.Booking:
    booking = crud.booking.require_booking(db, booking_id)
    return apply_status_update(
        db,
        booking_id,
        schemas.BookingStatusUpdate(status=booking.status, therapist_id=therapist_id),
    )


SCHEDULE_FIELDS = ("service_id", "therapist_id", "booking_date", "booking_time")
GUEST_FIELDS = ("guest_name", "guest_phone", "guest_email")


def edit_booking(
    db: Session,
    booking_id: int,
    payload: schemas.BookingUpdate,
) -> models.Booking:
    """Change the schedule or guest details of a pending or confirmed booking.

    Status is left alone; it only moves through ``apply_status_update``.
    Any schedule change re-runs the therapist's blockout and overlap checks
    against every other booking. Changing the service re-snapshots the price
    when one was already taken.
    """
    booking = crud.booking.require_booking(db, booking_id)
    current = BookingStatus(booking.status)
    if current not in ACTIVE_STATUSES or booking.payout_id is not None:
        raise IllegalTransition(
            f"A {current.value} booking can no longer be edited.",
            current_status=current.value,
        )

    changes = payload.model_dump(exclude_unset=True)
    # Required columns cannot be cleared
    for key in ("service_id", "booking_date", "booking_time"):
        if key in changes and changes[key] is None:
            del changes[key]
    if not changes:
        raise ValidationError("Nothing to update.", {})

    errors = {}
    if "guest_name" in changes and not changes["guest_name"] and booking.user_id is None:
        errors["guest_name"] = "Please enter the guest's name."
    if "guest_phone" in changes:
        changes["guest_phone"] = normalize_phone(changes["guest_phone"])
        if changes["guest_phone"] is not None and not PHONE_RE.match(changes["guest_phone"]):
            errors["guest_phone"] = "Enter an 11-digit mobile number starting with 09."
    if errors:
        raise ValidationError("Please check the booking details.", errors)

    service = booking.service
    if changes.get("service_id", booking.service_id) != booking.service_id:
        service = crud.get_service(db, changes["service_id"])
        if service is None:
            raise ValidationError(
                "The selected service is no longer available.",
                {"service_id": "Unknown service."},
            )

    therapist_id = changes.get("therapist_id", booking.therapist_id)
    if therapist_id is None and current == BookingStatus.CONFIRMED:
        raise IllegalTransition(
            "A confirmed booking must keep a therapist.",
            current_status=current.value,
        )
    day = changes.get("booking_date", booking.booking_date)
    start = changes.get("booking_time", booking.booking_time)

    if therapist_id is not None and any(key in changes for key in SCHEDULE_FIELDS):
        therapist = crud.get_therapist(db, therapist_id)
        if therapist is None:
            raise NotFound(f"Therapist {therapist_id} not found.", therapist_id=therapist_id)
        ensure_therapist_available(
            db, therapist, day, start, service_duration(service), exclude_booking_id=booking.id
        )

    for key in GUEST_FIELDS:
        if key in changes:
            setattr(booking, key, changes[key])
    if service is not booking.service:
        booking.service = service
        if booking.price_at_booking is not None:
            booking.price_at_booking = service.price
    booking.therapist_id = therapist_id
    booking.booking_date = day
    booking.booking_time = start
    db.commit()
    db.refresh(booking)
    logger.info("Booking %s edited: %s", booking.id, sorted(changes))
    return booking


def soft_delete(db: Session, booking_id: int) -> models.Booking:
    """Archive a booking in any state; payout links are kept."""
    booking = crud.booking.soft_delete(db, booking_id)
    logger.info("Booking %s archived (status %s)", booking.id, booking.status)
    return booking
