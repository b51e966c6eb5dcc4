from .booking import (
    BookingCreate,
    ManualBookingCreate,
    BookingStatusUpdate,
    BookingUpdate,
    BookingView,
    BookingAccepted,
    BookingStats,
    ReturningGuest,
    ServiceSnapshot,
    TherapistSnapshot,
)
from .timeline import TimelineSlot, NowMarker, TimelineResponse
from .payout import UnsettledLine, PayoutCreate, PayoutBookingLine, PayoutResponse
from .report import DailyRevenue, RevenueBucket, RevenueReport, TherapistCommission, CommissionReport
