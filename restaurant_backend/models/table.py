"""Dining table model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from restaurant_backend.database import Base
from restaurant_backend.scheduling.models import TableStatus


class DiningTable(Base):
    """A bookable table on the floor plan."""
    __tablename__ = "tables"

    id = Column(Integer, primary_key=True)
    number = Column(String, nullable=False)
    zone_id = Column(Integer, ForeignKey("zones.id"))
    capacity = Column(Integer, nullable=False)
    status = Column(String, default=TableStatus.AVAILABLE.value)
    position_x = Column(Integer)
    position_y = Column(Integer)
    is_active = Column(Boolean, default=True)
