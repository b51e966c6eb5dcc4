from typing import List, Optional

from sqlalchemy.orm import Session, joinedload, selectinload

from .. import models


def _with_lines(query):
    return query.options(
        joinedload(models.CommissionPayout.therapist),
        selectinload(models.CommissionPayout.bookings).joinedload(models.Booking.service),
    )


def get_payout(db: Session, payout_id: int) -> Optional[models.CommissionPayout]:
    return (
        _with_lines(db.query(models.CommissionPayout))
        .filter(models.CommissionPayout.id == payout_id)
        .first()
    )


def list_payouts(
    db: Session,
    therapist_id: Optional[int] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[models.CommissionPayout]:
    query = _with_lines(db.query(models.CommissionPayout))
    if therapist_id is not None:
        query = query.filter(models.CommissionPayout.therapist_id == therapist_id)
    return (
        query.order_by(models.CommissionPayout.created_at.desc(), models.CommissionPayout.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
