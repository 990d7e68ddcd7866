"""Restaurant settings model definitions."""

from sqlalchemy import Boolean, Column, Float, Integer, String
from restaurant_backend.database import Base


class RestaurantSettings(Base):
    """Single-row restaurant profile and booking rules."""
    __tablename__ = "restaurant_settings"

    id = Column(Integer, primary_key=True)
    name = Column(String)
    phone = Column(String)
    email = Column(String)
    address = Column(String)
    opening_hours = Column(String)  # "HH:MM - HH:MM"
    booking_time_margin = Column(Integer)
    max_party_size = Column(Integer)
    advance_booking_limit = Column(Integer)
    cancellation_policy = Column(Integer)
    deposit_required = Column(Boolean, default=False)
    deposit_amount = Column(Float, default=0)
