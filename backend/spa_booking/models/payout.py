from sqlalchemy import CheckConstraint, Column, Date, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from .base import BaseModel
from .booking_status import PayoutStatus
from .types import CaseInsensitiveEnum


class CommissionPayout(BaseModel):
    """A settlement batch binding completed bookings to one therapist payment.

    ``amount`` is captured when the payout is created and is never
    recomputed from the linked bookings.
    """

    __tablename__ = "commission_payouts"
    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_commission_payouts_amount_non_negative"),
        CheckConstraint("period_start <= period_end", name="ck_commission_payouts_period_order"),
    )

    id = Column(Integer, primary_key=True, index=True)
    therapist_id = Column(Integer, ForeignKey("therapists.id"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    status = Column(
        CaseInsensitiveEnum(PayoutStatus, name="payoutstatus"),
        nullable=False,
        default=PayoutStatus.PROCESSED,
    )
    processed_by = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    therapist = relationship("Therapist", back_populates="payouts")
    bookings = relationship("Booking", back_populates="payout", order_by="Booking.booking_date")
