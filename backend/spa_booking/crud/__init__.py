from .crud_booking import booking, get_service, get_therapist, active_therapists
from . import crud_payout
