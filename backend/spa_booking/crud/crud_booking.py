from sqlalchemy import func
from sqlalchemy.orm import Query, Session, joinedload
from typing import Dict, List, Optional
from datetime import date, datetime, time

from .. import models, schemas
from ..models.booking_status import ACTIVE_STATUSES, TIMELINE_STATUSES, BookingStatus
from ..utils.errors import NotFound

STATUS_FILTERS: Dict[str, tuple] = {
    "upcoming": (BookingStatus.PENDING, BookingStatus.CONFIRMED),
    "past": (BookingStatus.COMPLETED, BookingStatus.CANCELLED),
    **{s.value: (s,) for s in BookingStatus},
}


class CRUDBooking:
    def active(self, db: Session) -> Query:
        """Bookings that have not been archived with ``deleted_at``."""
        return db.query(models.Booking).filter(models.Booking.deleted_at.is_(None))

    def with_joins(self, query: Query) -> Query:
        return query.options(
            joinedload(models.Booking.service),
            joinedload(models.Booking.therapist),
        )

    def get_booking(
        self, db: Session, booking_id: int, include_deleted: bool = False
    ) -> Optional[models.Booking]:
        query = db.query(models.Booking) if include_deleted else self.active(db)
        return query.filter(models.Booking.id == booking_id).first()

    def require_booking(self, db: Session, booking_id: int) -> models.Booking:
        booking = self.get_booking(db, booking_id)
        if booking is None:
            raise NotFound(f"Booking {booking_id} not found.", booking_id=booking_id)
        return booking

    def to_view(self, booking: models.Booking) -> schemas.BookingView:
        return schemas.BookingView.model_validate(booking)

    def get_view(self, db: Session, booking_id: int) -> schemas.BookingView:
        booking = (
            self.with_joins(self.active(db))
            .filter(models.Booking.id == booking_id)
            .first()
        )
        if booking is None:
            raise NotFound(f"Booking {booking_id} not found.", booking_id=booking_id)
        return self.to_view(booking)

    def list_views(
        self,
        db: Session,
        status_filter: Optional[str] = None,
        therapist_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[schemas.BookingView]:
        query = self.with_joins(self.active(db))
        if status_filter:
            query = query.filter(models.Booking.status.in_(STATUS_FILTERS[status_filter]))
        if therapist_id is not None:
            query = query.filter(models.Booking.therapist_id == therapist_id)
        rows = (
            query.order_by(models.Booking.booking_date.desc(), models.Booking.booking_time.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
        return [self.to_view(b) for b in rows]

    def count_pending(
        self,
        db: Session,
        user_id: Optional[str] = None,
        visitor_id: Optional[str] = None,
        guest_phone: Optional[str] = None,
    ) -> int:
        """Pending bookings held by one customer identity.

        The first identity supplied wins: a registered user, then the
        anonymous visitor token, then the guest phone number.
        """
        query = self.active(db).filter(models.Booking.status == BookingStatus.PENDING)
        if user_id:
            query = query.filter(models.Booking.user_id == user_id)
        elif visitor_id:
            query = query.filter(models.Booking.visitor_id == visitor_id)
        elif guest_phone:
            query = query.filter(
                models.Booking.user_id.is_(None),
                models.Booking.guest_phone == guest_phone,
            )
        else:
            return 0
        return query.count()

    def therapist_day_bookings(
        self,
        db: Session,
        therapist_id: int,
        day: date,
        exclude_booking_id: Optional[int] = None,
    ) -> List[models.Booking]:
        """Pending/confirmed bookings occupying a therapist on ``day``."""
        query = (
            self.active(db)
            .options(joinedload(models.Booking.service))
            .filter(
                models.Booking.therapist_id == therapist_id,
                models.Booking.booking_date == day,
                models.Booking.status.in_(ACTIVE_STATUSES),
            )
        )
        if exclude_booking_id is not None:
            query = query.filter(models.Booking.id != exclude_booking_id)
        return query.order_by(models.Booking.booking_time).all()

    def timeline_bookings(
        self, db: Session, day: date, next_day: date, next_day_cutoff: time
    ) -> List[models.Booking]:
        """Confirmed/completed bookings for ``day`` plus the small hours of ``next_day``."""
        query = self.with_joins(self.active(db)).filter(
            models.Booking.status.in_(TIMELINE_STATUSES),
            (models.Booking.booking_date == day)
            | (
                (models.Booking.booking_date == next_day)
                & (models.Booking.booking_time < next_day_cutoff)
            ),
        )
        return query.order_by(models.Booking.booking_date, models.Booking.booking_time, models.Booking.id).all()

    def stats(self, db: Session) -> schemas.BookingStats:
        rows = (
            self.active(db)
            .with_entities(models.Booking.status, func.count(models.Booking.id))
            .group_by(models.Booking.status)
            .all()
        )
        counts = {getattr(s, "value", s): int(n) for s, n in rows}
        return schemas.BookingStats(total=sum(counts.values()), **counts)

    def last_guest_details(self, db: Session, visitor_id: str) -> schemas.ReturningGuest:
        row = (
            db.query(models.Booking.guest_name, models.Booking.guest_phone)
            .filter(models.Booking.visitor_id == visitor_id)
            .order_by(models.Booking.created_at.desc(), models.Booking.id.desc())
            .first()
        )
        if row is None:
            return schemas.ReturningGuest()
        return schemas.ReturningGuest(guest_name=row[0], guest_phone=row[1])

    def soft_delete(self, db: Session, booking_id: int) -> models.Booking:
        booking = self.require_booking(db, booking_id)
        booking.deleted_at = datetime.utcnow()
        db.commit()
        db.refresh(booking)
        return booking


booking = CRUDBooking()


def get_service(db: Session, service_id: int) -> Optional[models.Service]:
    return (
        db.query(models.Service)
        .filter(models.Service.id == service_id, models.Service.deleted_at.is_(None))
        .first()
    )


def get_therapist(
    db: Session, therapist_id: int, include_deleted: bool = False
) -> Optional[models.Therapist]:
    query = db.query(models.Therapist).filter(models.Therapist.id == therapist_id)
    if not include_deleted:
        query = query.filter(models.Therapist.deleted_at.is_(None))
    return query.first()


def active_therapists(db: Session) -> List[models.Therapist]:
    return (
        db.query(models.Therapist)
        .filter(models.Therapist.active.is_(True), models.Therapist.deleted_at.is_(None))
        .order_by(models.Therapist.name)
        .all()
    )
