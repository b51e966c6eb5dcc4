from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import ORJSONResponse
from sqlalchemy.orm import Session

from .. import schemas
from ..services import revenue_report
from ..services.admission import Requester
from .dependencies import get_current_staff, get_db

router = APIRouter(tags=["reports"], default_response_class=ORJSONResponse)

RANGE_PATTERN = "^(today|7d|30d|90d|month|all)$"


@router.get("/revenue", response_model=schemas.RevenueReport)
def read_revenue(
    range_key: str = Query("30d", alias="range", pattern=RANGE_PATTERN),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
    db: Session = Depends(get_db),
    staff: Requester = Depends(get_current_staff),
):
    return revenue_report.revenue_report(db, range_key, year=year, month=month)


@router.get("/commissions", response_model=schemas.CommissionReport)
def read_commissions(
    range_key: str = Query("30d", alias="range", pattern=RANGE_PATTERN),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    month: Optional[int] = Query(None, ge=1, le=12),
    db: Session = Depends(get_db),
    staff: Requester = Depends(get_current_staff),
):
    return revenue_report.commission_report(db, range_key, year=year, month=month)
