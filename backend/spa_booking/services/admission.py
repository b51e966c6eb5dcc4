"""Admission pipeline for new booking requests.

Runs in order: honeypot, guest field validation, per-identity throttle,
pending cap. Only a request that passes every step reaches the database,
so a rejected submission leaves no row behind.

The pending cap is a check-then-act sequence. It is serialized per identity
with ``admission_locks`` and re-counted inside the inserting transaction,
which is rolled back when a concurrent writer got there first.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..core.config import settings
from ..models.booking_status import BookingStatus
from ..utils.errors import (
    BotRejected,
    CapExceeded,
    NotFound,
    RateLimited,
    ValidationError,
)
from ..utils.keyed_lock import admission_locks
from ..utils.redis_cache import record_booking_attempt, seconds_until_next_attempt
from .availability import ensure_therapist_available, service_duration

logger = logging.getLogger(__name__)

PHONE_RE = re.compile(r"^09\d{9}$")
# The booking form pre-fills the mobile prefix
PHONE_PLACEHOLDER = "09"


@dataclass
class Requester:
    """Who is asking. Every field is optional; anonymous visitors may send nothing."""

    user_id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    role: Optional[str] = None
    visitor_id: Optional[str] = None
    client_ip: Optional[str] = None

    @property
    def registered(self) -> bool:
        return bool(self.user_id)

    @property
    def throttle_key(self) -> Optional[str]:
        if self.visitor_id:
            return f"visitor:{self.visitor_id}"
        if self.user_id:
            return f"user:{self.user_id}"
        if self.client_ip:
            return f"ip:{self.client_ip}"
        return None


def pending_cap(registered: bool) -> int:
    return settings.MAX_PENDING_REGISTERED if registered else settings.MAX_PENDING_GUEST


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    if phone is None:
        return None
    digits = re.sub(r"[\s\-()]", "", phone)
    if digits in ("", PHONE_PLACEHOLDER):
        return None
    return digits


def validate_guest_fields(
    guest_name: Optional[str],
    guest_phone: Optional[str],
    registered: bool,
) -> Optional[str]:
    """Return the normalized phone or raise ``ValidationError``."""
    errors = {}
    phone = normalize_phone(guest_phone)
    if not registered and not guest_name:
        errors["guest_name"] = "Please enter your name."
    if phone is not None and not PHONE_RE.match(phone):
        errors["guest_phone"] = "Enter an 11-digit mobile number starting with 09."
    elif phone is None and not registered:
        errors["guest_phone"] = "Please enter your mobile number."
    if errors:
        raise ValidationError("Please check the booking details.", errors)
    return phone


def _require_service(db: Session, service_id: int) -> models.Service:
    service = crud.get_service(db, service_id)
    if service is None:
        raise ValidationError(
            "The selected service is no longer available.",
            {"service_id": "Unknown service."},
        )
    return service


def _require_therapist(db: Session, therapist_id: int) -> models.Therapist:
    therapist = crud.get_therapist(db, therapist_id)
    if therapist is None:
        raise NotFound(f"Therapist {therapist_id} not found.", therapist_id=therapist_id)
    return therapist


def _count_pending(db: Session, requester: Requester, phone: Optional[str]) -> int:
    return crud.booking.count_pending(
        db,
        user_id=requester.user_id,
        visitor_id=requester.visitor_id,
        guest_phone=phone,
    )


def admit(
    db: Session,
    request: schemas.BookingCreate,
    requester: Requester,
    now: Optional[float] = None,
) -> models.Booking:
    """Admit a public booking request or raise an ``AdmissionRejected``.

    ``now`` is an epoch timestamp for the throttle; defaults to the clock.
    """
    if request.website:
        logger.info("Booking honeypot tripped for %s", requester.throttle_key)
        raise BotRejected("Booking request received.")

    if requester.visitor_id is None and request.visitor_id:
        requester.visitor_id = request.visitor_id
    phone = validate_guest_fields(request.guest_name, request.guest_phone, requester.registered)
    service = _require_service(db, request.service_id)
    therapist = (
        _require_therapist(db, request.therapist_id) if request.therapist_id else None
    )

    throttle_key = requester.throttle_key
    if throttle_key:
        wait = seconds_until_next_attempt(throttle_key, now=now)
        if wait:
            logger.info("Booking attempt throttled for %s (%ss left)", throttle_key, wait)
            raise RateLimited(retry_after=wait)
        record_booking_attempt(throttle_key, now=now)

    cap = pending_cap(requester.registered)
    identity = requester.user_id or requester.visitor_id or phone
    with admission_locks.hold(f"identity:{identity}"):
        current = _count_pending(db, requester, phone)
        if current >= cap:
            logger.info(
                "Pending cap reached for %s: %d of %d", identity, current, cap
            )
            raise CapExceeded(current, cap, requester.registered)
        if therapist is not None:
            ensure_therapist_available(
                db,
                therapist,
                request.booking_date,
                request.booking_time,
                service_duration(service),
            )

        booking = models.Booking(
            user_id=requester.user_id,
            visitor_id=requester.visitor_id,
            user_email=requester.email,
            guest_name=request.guest_name or requester.name,
            guest_email=request.guest_email,
            guest_phone=phone,
            service_id=service.id,
            therapist_id=therapist.id if therapist else None,
            booking_date=request.booking_date,
            booking_time=request.booking_time,
            status=BookingStatus.PENDING,
        )
        db.add(booking)
        db.flush()
        after = _count_pending(db, requester, phone)
        if after > cap:
            db.rollback()
            logger.warning("Concurrent admission for %s exceeded the cap; rolled back", identity)
            raise CapExceeded(after - 1, cap, requester.registered)
        db.commit()
    db.refresh(booking)
    logger.info(
        "Booking %s admitted for %s (%d of %d pending)",
        booking.id,
        identity,
        current + 1,
        cap,
    )
    return booking


def create_manual_booking(
    db: Session,
    request: schemas.ManualBookingCreate,
    staff: Optional[Requester] = None,
) -> models.Booking:
    """Staff-entered walk-in booking; skips the honeypot, throttle and cap."""
    phone = normalize_phone(request.guest_phone)
    if phone is not None and not PHONE_RE.match(phone):
        raise ValidationError(
            "Please check the booking details.",
            {"guest_phone": "Enter an 11-digit mobile number starting with 09."},
        )
    service = _require_service(db, request.service_id)
    therapist = _require_therapist(db, request.therapist_id)
    ensure_therapist_available(
        db,
        therapist,
        request.booking_date,
        request.booking_time,
        service_duration(service),
    )
    booking = models.Booking(
        guest_name=request.guest_name,
        guest_email=request.guest_email,
        guest_phone=phone,
        service_id=service.id,
        therapist_id=therapist.id,
        booking_date=request.booking_date,
        booking_time=request.booking_time,
        price_at_booking=service.price,
        status=BookingStatus.PENDING,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    logger.info(
        "Manual booking %s created by %s for therapist %s",
        booking.id,
        staff.user_id if staff else None,
        therapist.id,
    )
    return booking


def returning_guest(db: Session, visitor_id: Optional[str]) -> schemas.ReturningGuest:
    if not visitor_id:
        return schemas.ReturningGuest()
    return crud.booking.last_guest_details(db, visitor_id)
