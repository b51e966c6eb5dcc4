import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import ORJSONResponse
from sqlalchemy.orm import Session

from .. import schemas
from ..services import commission, remittance_pdf
from ..services.admission import Requester
from .dependencies import get_current_staff, get_db

router = APIRouter(tags=["payouts"], default_response_class=ORJSONResponse)
logger = logging.getLogger(__name__)


@router.get("/unsettled", response_model=List[schemas.UnsettledLine])
def read_unsettled(
    db: Session = Depends(get_db),
    staff: Requester = Depends(get_current_staff),
):
    """Quote: unsettled commission plus therapist tips, per therapist."""
    return commission.unsettled_by_therapist(db)


@router.post("", response_model=schemas.PayoutResponse, status_code=status.HTTP_201_CREATED)
def create_payout(
    payout_in: schemas.PayoutCreate,
    db: Session = Depends(get_db),
    staff: Requester = Depends(get_current_staff),
):
    payout = commission.settle(
        db,
        therapist_id=payout_in.therapist_id,
        amount=payout_in.amount,
        booking_ids=payout_in.booking_ids,
        processed_by=staff.email or staff.user_id,
        notes=payout_in.notes,
    )
    return commission.payout_response(commission.get_payout(db, payout.id))


@router.get("", response_model=List[schemas.PayoutResponse])
def list_payouts(
    therapist_id: Optional[int] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    staff: Requester = Depends(get_current_staff),
):
    return commission.payout_history(db, therapist_id, skip=skip, limit=limit)


@router.get("/{payout_id}", response_model=schemas.PayoutResponse)
def read_payout(
    payout_id: int,
    db: Session = Depends(get_db),
    staff: Requester = Depends(get_current_staff),
):
    return commission.payout_response(commission.get_payout(db, payout_id))


@router.get("/{payout_id}/pdf")
def get_payout_pdf(
    payout_id: int,
    db: Session = Depends(get_db),
    staff: Requester = Depends(get_current_staff),
):
    data = remittance_pdf.generate_pdf(db, payout_id)
    filename = f"remittance_{payout_id}.pdf"
    return Response(
        content=data,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{filename}"'},
    )
