# backend/spa_booking/models/booking.py

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Time,
)
from sqlalchemy.orm import relationship

from .base import BaseModel
from .booking_status import BookingStatus, TipRecipient
from .types import CaseInsensitiveEnum


class Booking(BaseModel):
    __tablename__ = "bookings"
    __table_args__ = (
        # A settled booking is always a completed one; pending rows can never
        # carry a payout.
        CheckConstraint(
            "payout_id IS NULL OR status = 'completed'",
            name="ck_bookings_payout_requires_completed",
        ),
        CheckConstraint("commission_amount >= 0", name="ck_bookings_commission_non_negative"),
        CheckConstraint("tip_amount >= 0", name="ck_bookings_tip_non_negative"),
        Index("ix_bookings_status_user", "status", "user_id"),
        Index("ix_bookings_status_visitor", "status", "visitor_id"),
        Index("ix_bookings_therapist_date", "therapist_id", "booking_date"),
    )

    id           = Column(Integer, primary_key=True, index=True)
    # Customer identity: a registered user, an anonymous browser token, or both
    user_id      = Column(String, nullable=True)
    visitor_id   = Column(String, nullable=True)
    user_email   = Column(String, nullable=True)
    guest_name   = Column(String, nullable=True)
    guest_email  = Column(String, nullable=True)
    guest_phone  = Column(String, nullable=True)

    service_id   = Column(Integer, ForeignKey("services.id"), nullable=False)
    therapist_id = Column(Integer, ForeignKey("therapists.id"), nullable=True, index=True)
    booking_date = Column(Date, nullable=False, index=True)
    booking_time = Column(Time, nullable=False)
    status       = Column(
        CaseInsensitiveEnum(BookingStatus, name="bookingstatus"),
        default=BookingStatus.PENDING,
        nullable=False,
        index=True,
    )
    completed_at = Column(DateTime, nullable=True)

    # Money is snapshotted at completion and never recomputed afterwards
    price_at_booking  = Column(Numeric(10, 2), nullable=True)
    commission_amount = Column(Numeric(10, 2), nullable=False, default=0)
    revenue_amount    = Column(Numeric(10, 2), nullable=False, default=0)
    tip_amount        = Column(Numeric(10, 2), nullable=False, default=0)
    tip_recipient     = Column(CaseInsensitiveEnum(TipRecipient, name="tiprecipient"), nullable=True)

    payout_id  = Column(Integer, ForeignKey("commission_payouts.id"), nullable=True, index=True)
    deleted_at = Column(DateTime, nullable=True)

    # Relationships
    service   = relationship("Service")
    therapist = relationship("Therapist", back_populates="bookings")
    payout    = relationship("CommissionPayout", back_populates="bookings")

    @property
    def customer_label(self) -> str:
        if self.guest_name:
            return self.guest_name
        if self.user_email:
            return self.user_email.split("@")[0]
        return "Guest"
