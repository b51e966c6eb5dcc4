import enum


class BookingStatus(str, enum.Enum):
    """Central booking status enumeration used across the application."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TipRecipient(str, enum.Enum):
    """Who keeps a tip left on a completed booking."""
    THERAPIST = "therapist"
    MANAGEMENT = "management"


class PayoutStatus(str, enum.Enum):
    PROCESSED = "processed"


# Statuses that occupy a therapist's time on the schedule
ACTIVE_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)
# Statuses shown on the live timeline
TIMELINE_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.COMPLETED)
