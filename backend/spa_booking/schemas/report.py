from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel


class DailyRevenue(BaseModel):
    shift_date: date
    revenue: Decimal


class RevenueBucket(BaseModel):
    key: str
    name: str
    count: int
    revenue: Decimal


class RevenueReport(BaseModel):
    range: str
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    gross_revenue: Decimal
    pending_revenue: Decimal
    lost_revenue: Decimal
    management_tips: Decimal
    therapist_tips: Decimal
    today_revenue: Decimal
    completed_count: int
    daily: List[DailyRevenue] = []
    by_service: List[RevenueBucket] = []
    by_therapist: List[RevenueBucket] = []


class TherapistCommission(BaseModel):
    therapist_id: int
    name: str
    amount: Decimal


class CommissionReport(BaseModel):
    range: str
    total: Decimal
    count: int
    per_therapist: List[TherapistCommission] = []
