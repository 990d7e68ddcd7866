"""Booking model definitions."""

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String
from restaurant_backend.database import Base


class Booking(Base):
    """A reservation of one table for a time window."""
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True)
    table_id = Column(Integer, ForeignKey("tables.id"), nullable=False)
    customer_name = Column(String)
    phone_number = Column(String)
    party_size = Column(Integer, nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    status = Column(String, default="confirmed")
    created_at = Column(DateTime, default=datetime.now)
