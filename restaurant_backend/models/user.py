"""User model definitions."""

from sqlalchemy import Column, Integer, String
from restaurant_backend.database import Base


class User(Base):
    """Represents a dashboard user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    name = Column(String)
    role = Column(String)  # admin/manager/staff
