"""Value types consumed by the availability engine."""

from datetime import datetime, time
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

OPENING_HOURS_SEPARATOR = ' - '


class TableStatus(str, Enum):
    AVAILABLE = 'available'
    OCCUPIED = 'occupied'
    RESERVED = 'reserved'
    MAINTENANCE = 'maintenance'


class TimeInterval(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @model_validator(mode='after')
    def validate_order(self) -> 'TimeInterval':
        if self.start >= self.end:
            raise ValueError('Interval start must be before its end.')
        return self


class TableBooking(BaseModel):
    """A booking already placed on a table."""
    model_config = ConfigDict(frozen=True)

    id: str
    table_id: str
    interval: TimeInterval
    party_size: int = Field(ge=1)


class BookingRules(BaseModel):
    model_config = ConfigDict(frozen=True)

    booking_time_margin: int = Field(default=0, ge=0)
    max_party_size: int = Field(default=12, ge=1)
    advance_booking_limit: int = Field(default=30, ge=0)
    cancellation_policy: int = Field(default=24, ge=0)
    deposit_required: bool = False
    deposit_amount: float = Field(default=0, ge=0)


class OpeningHours(BaseModel):
    model_config = ConfigDict(frozen=True)

    open_time: time
    close_time: time

    @model_validator(mode='after')
    def validate_window(self) -> 'OpeningHours':
        if self.open_time >= self.close_time:
            raise ValueError('Opening time must be before closing time.')
        return self

    @classmethod
    def parse(cls, value: str) -> 'OpeningHours':
        """Parse the ``"HH:MM - HH:MM"`` form stored in restaurant settings."""
        parts = value.split(OPENING_HOURS_SEPARATOR) if value else []
        if len(parts) != 2:
            raise ValueError(f'Opening hours must look like "HH:MM - HH:MM", got {value!r}.')

        try:
            open_time, close_time = (time.fromisoformat(part.strip()) for part in parts)
        except ValueError as exc:
            raise ValueError(f'Opening hours must look like "HH:MM - HH:MM", got {value!r}.') from exc

        return cls(open_time=open_time, close_time=close_time)

    def format(self) -> str:
        return f'{self.open_time:%H:%M}{OPENING_HOURS_SEPARATOR}{self.close_time:%H:%M}'


class TableCandidate(BaseModel):
    """A free table ranked against a requested party size."""
    model_config = ConfigDict(frozen=True)

    table_id: str
    capacity: int = Field(ge=1)
    efficiency: int
    is_suitable: bool

    @classmethod
    def for_party(cls, table_id: str, capacity: int, party_size: int) -> 'TableCandidate':
        return cls(
            table_id=table_id,
            capacity=capacity,
            efficiency=capacity - party_size,
            is_suitable=capacity >= party_size,
        )
