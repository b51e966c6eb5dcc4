import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import ORJSONResponse
from sqlalchemy.orm import Session

from .. import schemas
from ..services import timeline
from ..services.admission import Requester
from .dependencies import get_current_staff, get_db

router = APIRouter(tags=["timeline"], default_response_class=ORJSONResponse)
logger = logging.getLogger(__name__)


@router.get("", response_model=schemas.TimelineResponse)
def read_timeline(
    day: Optional[date] = Query(None, alias="date"),
    db: Session = Depends(get_db),
    staff: Requester = Depends(get_current_staff),
):
    """Slot board for ``date`` (defaults to the current business date)."""
    return timeline.build_timeline(db, day)
