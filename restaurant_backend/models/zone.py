"""Zone model definitions."""

from sqlalchemy import Column, Integer, String
from restaurant_backend.database import Base


class Zone(Base):
    """A named area of the dining room grouping tables."""
    __tablename__ = "zones"

    id = Column(Integer, primary_key=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(String)
    color = Column(String, default="#06b6d4")
