# backend/spa_booking/api/api_booking.py

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import ORJSONResponse
from sqlalchemy.orm import Session

from .. import crud, schemas
from ..services import admission, booking_lifecycle
from ..services.admission import Requester
from ..utils.errors import BotRejected
from .dependencies import get_current_staff, get_db, get_requester

router = APIRouter(tags=["bookings"], default_response_class=ORJSONResponse)
logger = logging.getLogger(__name__)
# ‣ Mounted by main.py under f"{settings.API_V1_STR}/bookings"


@router.post(
    "",
    response_model=schemas.BookingView,
    status_code=status.HTTP_201_CREATED,
    responses={202: {"model": schemas.BookingAccepted}},
)
def create_booking(
    booking_in: schemas.BookingCreate,
    db: Session = Depends(get_db),
    requester: Requester = Depends(get_requester),
):
    """Public booking form. Runs the admission pipeline before anything is stored."""
    try:
        booking = admission.admit(db, booking_in, requester)
    except BotRejected:
        # Same body a human would get, but nothing was stored
        return ORJSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content=schemas.BookingAccepted().model_dump(),
        )
    return crud.booking.get_view(db, booking.id)


@router.post("/manual", response_model=schemas.BookingView, status_code=status.HTTP_201_CREATED)
def create_manual_booking(
    booking_in: schemas.ManualBookingCreate,
    db: Session = Depends(get_db),
    staff: Requester = Depends(get_current_staff),
):
    booking = admission.create_manual_booking(db, booking_in, staff)
    return crud.booking.get_view(db, booking.id)


@router.get("/returning-guest", response_model=schemas.ReturningGuest)
def get_returning_guest(
    db: Session = Depends(get_db),
    requester: Requester = Depends(get_requester),
    visitor_id: Optional[str] = Query(None),
):
    return admission.returning_guest(db, requester.visitor_id or visitor_id)


@router.get("/stats", response_model=schemas.BookingStats)
def get_booking_stats(
    db: Session = Depends(get_db),
    staff: Requester = Depends(get_current_staff),
):
    return crud.booking.stats(db)


@router.get("", response_model=List[schemas.BookingView])
def list_bookings(
    db: Session = Depends(get_db),
    staff: Requester = Depends(get_current_staff),
    status_filter: Optional[str] = Query(
        None,
        alias="status",
        pattern="^(pending|confirmed|completed|cancelled|upcoming|past)$",
    ),
    therapist_id: Optional[int] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    return crud.booking.list_views(
        db, status_filter=status_filter, therapist_id=therapist_id, skip=skip, limit=limit
    )


@router.get("/{booking_id}", response_model=schemas.BookingView)
def read_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    staff: Requester = Depends(get_current_staff),
):
    return crud.booking.get_view(db, booking_id)


@router.patch("/{booking_id}", response_model=schemas.BookingView)
def edit_booking(
    booking_id: int,
    booking_update: schemas.BookingUpdate,
    db: Session = Depends(get_db),
    staff: Requester = Depends(get_current_staff),
):
    """Reschedule or correct a pending/confirmed booking."""
    booking = booking_lifecycle.edit_booking(db, booking_id, booking_update)
    logger.info("Booking %s edited by %s", booking.id, staff.user_id)
    return crud.booking.get_view(db, booking.id)


@router.patch("/{booking_id}/status", response_model=schemas.BookingView)
def update_booking_status(
    booking_id: int,
    status_update: schemas.BookingStatusUpdate,
    db: Session = Depends(get_db),
    staff: Requester = Depends(get_current_staff),
):
    booking = booking_lifecycle.apply_status_update(db, booking_id, status_update)
    logger.info("Status of booking %s set to %s by %s", booking.id, booking.status, staff.user_id)
    return crud.booking.get_view(db, booking.id)


@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    staff: Requester = Depends(get_current_staff),
):
    booking_lifecycle.soft_delete(db, booking_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
