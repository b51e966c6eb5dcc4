from .service import Service
from .therapist import Therapist
from .booking import Booking
from .booking_status import BookingStatus, TipRecipient, PayoutStatus
from .payout import CommissionPayout

__all__ = [
    "Service",
    "Therapist",
    "Booking",
    "BookingStatus",
    "TipRecipient",
    "PayoutStatus",
    "CommissionPayout",
]
