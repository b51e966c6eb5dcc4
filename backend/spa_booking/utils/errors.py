"""Error types raised by the booking engine and their HTTP mapping.

Services raise the ``BookingEngineError`` subclasses below; ``main.py``
registers a single handler that turns them into structured JSON bodies.
Nothing here retries: every failure is surfaced to the caller as-is.
"""

from typing import Any, Dict, Optional
from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


def error_response(
    message: str,
    field_errors: Dict[str, str],
    code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
) -> HTTPException:
    """Return an HTTPException with a consistent structure and log details."""
    logger.error("%s %s", message, field_errors)
    detail = {"message": message, "field_errors": field_errors}
    return HTTPException(status_code=code, detail=detail)


class BookingEngineError(Exception):
    """Base exception for all booking engine errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    reason: str = "BookingError"

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_detail(self) -> Dict[str, Any]:
        return {"reason": self.reason, "message": self.message, **self.extra}


class ValidationError(BookingEngineError):
    """Missing guest fields or a malformed date/time."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    reason = "ValidationError"

    def __init__(self, message: str, field_errors: Optional[Dict[str, str]] = None) -> None:
        super().__init__(message, field_errors=field_errors or {})
        self.field_errors = field_errors or {}


class NotFound(BookingEngineError):
    status_code = status.HTTP_404_NOT_FOUND
    reason = "NotFound"


class AdmissionRejected(BookingEngineError):
    """A booking request stopped by the admission pipeline."""

    status_code = status.HTTP_409_CONFLICT


class BotRejected(AdmissionRejected):
    """Honeypot tripped. Never shown to the caller."""

    status_code = status.HTTP_202_ACCEPTED
    reason = "BotRejected"


class RateLimited(AdmissionRejected):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    reason = "RateLimited"

    def __init__(self, retry_after: int) -> None:
        super().__init__(
            "Please wait a moment before submitting another request.",
            retry_after=retry_after,
        )
        self.retry_after = retry_after


class CapExceeded(AdmissionRejected):
    reason = "CapExceeded"

    def __init__(self, current_count: int, cap: int, registered: bool) -> None:
        label = "registered users" if registered else "guests"
        plural = "s" if current_count > 1 else ""
        super().__init__(
            f"You already have {current_count} pending booking{plural}. "
            f"The limit for {label} is {cap}.",
            current_count=current_count,
            cap=cap,
        )
        self.current_count = current_count
        self.cap = cap


class ScheduleConflict(AdmissionRejected):
    """The therapist is blocked out or already busy at the requested time."""

    reason = "ScheduleConflict"


class IllegalTransition(BookingEngineError):
    status_code = status.HTTP_409_CONFLICT
    reason = "IllegalTransition"


class SettlementRejected(BookingEngineError):
    status_code = status.HTTP_409_CONFLICT


class StaleTotal(SettlementRejected):
    """The quoted payout no longer matches the unsettled ledger; re-quote."""

    reason = "StaleTotal"


class AlreadySettled(SettlementRejected):
    reason = "AlreadySettled"
