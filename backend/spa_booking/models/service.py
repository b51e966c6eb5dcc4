# backend/spa_booking/models/service.py
from sqlalchemy import Column, DateTime, Integer, Numeric, String

from .base import BaseModel


class Service(BaseModel):
    """Catalog entry. Only the fields the booking engine reads are mapped."""

    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, index=True, nullable=False)
    category = Column(String, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    duration_minutes = Column(Integer, nullable=True)
    deleted_at = Column(DateTime, nullable=True)
