import logging
from collections.abc import Iterable
from datetime import date, datetime, time, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, ValidationError, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from restaurant_backend.core import config
from restaurant_backend.models.booking import Booking
from restaurant_backend.models.table import DiningTable
from restaurant_backend.routes.common import database_unavailable, ensure_database_ready, get_db
from restaurant_backend.routes.restaurant_routes import (
    booking_rules_from,
    get_or_create_settings,
    opening_hours_from,
)
from restaurant_backend.scheduling.availability import conflicts_with, is_available, next_available_time
from restaurant_backend.scheduling.models import (
    BookingRules,
    OpeningHours,
    TableBooking,
    TableStatus,
    TimeInterval,
)

router = APIRouter(tags=['bookings'])

logger = logging.getLogger(__name__)

CONFIRMED_STATUS = 'confirmed'
MAX_BOOKING_DURATION_MINUTES = 8 * 60


class CreateBookingRequest(BaseModel):
    table_id: int
    customer_name: str
    phone_number: str
    party_size: int = Field(ge=1)
    start_time: datetime
    duration_minutes: int | None = Field(default=None, gt=0, le=MAX_BOOKING_DURATION_MINUTES)

    @field_validator('customer_name', 'phone_number')
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('This field is required.')
        return normalized


class UpdateBookingRequest(BaseModel):
    table_id: int | None = None
    customer_name: str | None = None
    phone_number: str | None = None
    party_size: int | None = Field(default=None, ge=1)
    start_time: datetime | None = None
    duration_minutes: int | None = Field(default=None, gt=0, le=MAX_BOOKING_DURATION_MINUTES)

    @field_validator('customer_name', 'phone_number')
    @classmethod
    def validate_optional_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            raise ValueError('This field cannot be blank.')
        return normalized

    def changes_schedule(self) -> bool:
        return any(
            value is not None
            for value in (self.table_id, self.party_size, self.start_time, self.duration_minutes)
        )


class BookingResponse(BaseModel):
    id: int
    table_id: int
    customer_name: str | None = None
    phone_number: str | None = None
    party_size: int
    start_time: datetime
    end_time: datetime
    status: str

    class Config:
        from_attributes = True


def to_table_booking(booking: Booking) -> TableBooking:
    return TableBooking(
        id=str(booking.id),
        table_id=str(booking.table_id),
        interval=TimeInterval(start=booking.start_time, end=booking.end_time),
        party_size=booking.party_size,
    )


def get_table_bookings(
    db: Session,
    table_ids: Iterable[int],
    requested: TimeInterval,
    margin_minutes: int,
    exclude_booking_id: int | None = None,
) -> list[TableBooking]:
    """Load the bookings that could collide with ``requested`` on the given tables.

    ``exclude_booking_id`` leaves out a booking that is being rescheduled so it
    never conflicts with its own current slot.
    """
    earliest_relevant_end = requested.start - timedelta(minutes=margin_minutes)
    query = db.query(Booking).filter(
        Booking.table_id.in_(list(table_ids)),
        Booking.start_time < requested.end,
        Booking.end_time > earliest_relevant_end,
    )
    if exclude_booking_id is not None:
        query = query.filter(Booking.id != exclude_booking_id)
    bookings = query.order_by(Booking.start_time.asc()).all()

    return [to_table_booking(booking) for booking in bookings]


def to_local_naive(value: datetime) -> datetime:
    """Bookings are stored as naive local times; convert offset-aware input to that form."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def build_requested_interval(start_time: datetime, duration_minutes: int | None) -> TimeInterval:
    duration = duration_minutes or config.DEFAULT_BOOKING_DURATION_MINUTES
    start = to_local_naive(start_time).replace(second=0, microsecond=0)
    try:
        return TimeInterval(start=start, end=start + timedelta(minutes=duration))
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Booking duration must be positive.',
        ) from exc


def combine_requested_start(booking_date: date, booking_time: time) -> datetime:
    return datetime.combine(booking_date, booking_time)


def validate_booking_window(
    requested: TimeInterval,
    party_size: int,
    rules: BookingRules,
    opening_hours: OpeningHours,
    now: datetime,
) -> None:
    if requested.start <= now:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Bookings must be scheduled in the future.',
        )

    if party_size > rules.max_party_size:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Parties larger than {rules.max_party_size} guests cannot be booked online.',
        )

    if requested.start.date() > now.date() + timedelta(days=rules.advance_booking_limit):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Bookings can only be made up to {rules.advance_booking_limit} days in advance.',
        )

    day_open = datetime.combine(requested.start.date(), opening_hours.open_time)
    day_close = datetime.combine(requested.start.date(), opening_hours.close_time)
    if requested.start < day_open or requested.end > day_close:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Booking is outside opening hours ({opening_hours.format()}).',
        )


def booking_conflict(
    table: DiningTable,
    requested: TimeInterval,
    existing: list[TableBooking],
    margin_minutes: int,
) -> HTTPException:
    blocking = [booking for booking in existing if conflicts_with(requested, booking, margin_minutes)]
    latest_end = max(booking.interval.end for booking in blocking)
    free_from = next_available_time(latest_end, margin_minutes)
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=f'Table {table.number} is not available for the requested time. It is free again from {free_from:%H:%M}.',
    )


def get_bookable_table(db: Session, table_id: int) -> DiningTable:
    table = db.query(DiningTable).filter(
        DiningTable.id == table_id,
        DiningTable.is_active.is_(True),
    ).first()

    if not table:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Table not found.',
        )

    if table.status == TableStatus.MAINTENANCE.value:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f'Table {table.number} is under maintenance.',
        )

    return table


def ensure_table_can_seat(
    db: Session,
    table: DiningTable,
    requested: TimeInterval,
    party_size: int,
    margin_minutes: int,
    exclude_booking_id: int | None = None,
) -> None:
    if party_size > table.capacity:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f'Table {table.number} seats only {table.capacity} guests.',
        )

    existing = get_table_bookings(db, [table.id], requested, margin_minutes, exclude_booking_id)
    if not is_available(requested, existing, margin_minutes):
        raise booking_conflict(table, requested, existing, margin_minutes)


def get_existing_booking(db: Session, booking_id: int) -> Booking:
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if not booking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Booking not found.',
        )
    return booking


@router.get('', response_model=list[BookingResponse])
def list_bookings(
    booking_date: date | None = Query(default=None, alias='date'),
    table_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(Booking)
        if booking_date is not None:
            day_start = datetime.combine(booking_date, time.min)
            query = query.filter(
                Booking.start_time >= day_start,
                Booking.start_time < day_start + timedelta(days=1),
            )
        if table_id is not None:
            query = query.filter(Booking.table_id == table_id)

        return query.order_by(Booking.start_time.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/date/{booking_date}', response_model=list[BookingResponse])
def list_bookings_for_date(booking_date: date, db: Session = Depends(get_db)):
    return list_bookings(booking_date=booking_date, table_id=None, db=db)


@router.post('', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(data: CreateBookingRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        table = get_bookable_table(db, data.table_id)
        settings = get_or_create_settings(db)
        rules = booking_rules_from(settings)
        requested = build_requested_interval(data.start_time, data.duration_minutes)

        validate_booking_window(requested, data.party_size, rules, opening_hours_from(settings), datetime.now())

        ensure_table_can_seat(db, table, requested, data.party_size, rules.booking_time_margin)

        booking = Booking(
            table_id=table.id,
            customer_name=data.customer_name,
            phone_number=data.phone_number,
            party_size=data.party_size,
            start_time=requested.start,
            end_time=requested.end,
            status=CONFIRMED_STATUS,
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
        logger.info(
            'Booked table %s for %s guests from %s to %s.',
            table.number, booking.party_size, booking.start_time, booking.end_time,
        )

        return booking
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to create booking.')
        raise database_unavailable() from exc


@router.get('/{booking_id}', response_model=BookingResponse)
def get_booking(booking_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return get_existing_booking(db, booking_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.put('/{booking_id}', response_model=BookingResponse)
def update_booking(booking_id: int, data: UpdateBookingRequest, db: Session = Depends(get_db)):
    """Edit guest details or reschedule a booking.

    A new table, time, duration or party size is checked like a new booking,
    against every other booking on the target table.
    """
    ensure_database_ready()

    try:
        booking = get_existing_booking(db, booking_id)

        if data.changes_schedule():
            table = get_bookable_table(db, data.table_id or booking.table_id)
            settings = get_or_create_settings(db)
            rules = booking_rules_from(settings)
            current_duration = int((booking.end_time - booking.start_time).total_seconds() // 60)
            party_size = data.party_size or booking.party_size
            requested = build_requested_interval(
                data.start_time or booking.start_time,
                data.duration_minutes or current_duration,
            )

            validate_booking_window(requested, party_size, rules, opening_hours_from(settings), datetime.now())
            ensure_table_can_seat(
                db, table, requested, party_size, rules.booking_time_margin,
                exclude_booking_id=booking.id,
            )

            booking.table_id = table.id
            booking.party_size = party_size
            booking.start_time = requested.start
            booking.end_time = requested.end

        if data.customer_name is not None:
            booking.customer_name = data.customer_name
        if data.phone_number is not None:
            booking.phone_number = data.phone_number

        db.commit()
        db.refresh(booking)
        logger.info(
            'Updated booking %s: table %s for %s guests from %s to %s.',
            booking.id, booking.table_id, booking.party_size, booking.start_time, booking.end_time,
        )

        return booking
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to update booking %s.', booking_id)
        raise database_unavailable() from exc


@router.delete('/{booking_id}', status_code=status.HTTP_204_NO_CONTENT)
def cancel_booking(booking_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        booking = get_existing_booking(db, booking_id)
        table_id = booking.table_id
        db.delete(booking)
        db.commit()
        logger.info('Cancelled booking %s on table %s.', booking_id, table_id)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to cancel booking %s.', booking_id)
        raise database_unavailable() from exc
