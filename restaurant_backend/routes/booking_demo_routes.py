"""Guest-facing booking flow: find free tables for a party, then book them."""

import logging
from datetime import date, datetime, time

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from restaurant_backend.models.booking import Booking
from restaurant_backend.models.table import DiningTable
from restaurant_backend.models.zone import Zone
from restaurant_backend.routes.booking_routes import (
    CONFIRMED_STATUS,
    MAX_BOOKING_DURATION_MINUTES,
    BookingResponse,
    booking_conflict,
    build_requested_interval,
    combine_requested_start,
    get_bookable_table,
    get_table_bookings,
    validate_booking_window,
)
from restaurant_backend.routes.common import database_unavailable, ensure_database_ready, get_db
from restaurant_backend.routes.restaurant_routes import (
    booking_rules_from,
    get_or_create_settings,
    opening_hours_from,
)
from restaurant_backend.scheduling.availability import (
    filter_table_bookings,
    find_available_tables,
    is_available,
    select_tables,
)
from restaurant_backend.scheduling.models import TableCandidate, TableStatus

router = APIRouter(tags=['booking-demo'])

logger = logging.getLogger(__name__)


class CheckAvailabilityRequest(BaseModel):
    guest_count: int = Field(ge=1)
    date: date
    time: time
    duration_minutes: int | None = Field(default=None, gt=0, le=MAX_BOOKING_DURATION_MINUTES)


class CreateDemoBookingRequest(CheckAvailabilityRequest):
    customer_name: str
    phone_number: str
    table_ids: list[int] = Field(min_length=1)

    @field_validator('customer_name', 'phone_number')
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('This field is required.')
        return normalized

    @field_validator('table_ids')
    @classmethod
    def validate_unique_tables(cls, value: list[int]) -> list[int]:
        if len(set(value)) != len(value):
            raise ValueError('Each table can only be selected once.')
        return value


class AvailableTableResponse(BaseModel):
    table_id: int
    table_number: str
    capacity: int
    zone_name: str | None = None
    efficiency: int
    is_suitable: bool
    suitability_note: str


class CheckAvailabilityResponse(BaseModel):
    start_time: datetime
    end_time: datetime
    available_tables: list[AvailableTableResponse]
    selected_table_ids: list[int] | None = None
    selected_capacity: int
    message: str


def suitability_note(candidate: TableCandidate) -> str:
    if not candidate.is_suitable:
        missing = -candidate.efficiency
        return f'Too small: {missing} more seat{"s" if missing != 1 else ""} needed'
    if candidate.efficiency == 0:
        return 'Perfect fit'
    return f'Suitable: {candidate.efficiency} spare seat{"s" if candidate.efficiency != 1 else ""}'


def split_party(guest_count: int, tables: list[DiningTable]) -> list[int]:
    """Seat guests table by table in the given order, filling each one."""
    remaining = guest_count
    sizes: list[int] = []
    for table in tables:
        seated = min(table.capacity, remaining)
        sizes.append(seated)
        remaining -= seated
    return sizes


@router.post('/check-availability', response_model=CheckAvailabilityResponse)
def check_availability(data: CheckAvailabilityRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        settings = get_or_create_settings(db)
        rules = booking_rules_from(settings)
        requested = build_requested_interval(combine_requested_start(data.date, data.time), data.duration_minutes)
        validate_booking_window(requested, data.guest_count, rules, opening_hours_from(settings), datetime.now())

        tables = db.query(DiningTable).filter(
            DiningTable.is_active.is_(True),
            DiningTable.status != TableStatus.MAINTENANCE.value,
        ).order_by(DiningTable.id.asc()).all()
        tables_by_id = {str(table.id): table for table in tables}
        zone_names = {zone.id: zone.name for zone in db.query(Zone).all()}

        existing = get_table_bookings(db, [table.id for table in tables], requested, rules.booking_time_margin)
        candidates = find_available_tables(
            [(str(table.id), table.capacity) for table in tables],
            existing,
            requested,
            rules.booking_time_margin,
            data.guest_count,
        )
        selected = select_tables(candidates, data.guest_count)

        available_tables = [
            AvailableTableResponse(
                table_id=tables_by_id[candidate.table_id].id,
                table_number=tables_by_id[candidate.table_id].number,
                capacity=candidate.capacity,
                zone_name=zone_names.get(tables_by_id[candidate.table_id].zone_id),
                efficiency=candidate.efficiency,
                is_suitable=candidate.is_suitable,
                suitability_note=suitability_note(candidate),
            )
            for candidate in candidates
        ]

        if selected is None:
            logger.info('No table combination seats %s guests at %s.', data.guest_count, requested.start)
            return CheckAvailabilityResponse(
                start_time=requested.start,
                end_time=requested.end,
                available_tables=available_tables,
                selected_table_ids=None,
                selected_capacity=0,
                message=(
                    f'No combination of available tables can accommodate {data.guest_count} guests. '
                    'Please try a different time or date.'
                ),
            )

        return CheckAvailabilityResponse(
            start_time=requested.start,
            end_time=requested.end,
            available_tables=available_tables,
            selected_table_ids=[tables_by_id[table_id].id for table_id in selected],
            selected_capacity=sum(tables_by_id[table_id].capacity for table_id in selected),
            message='Available tables found and automatically selected.',
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/bookings', response_model=list[BookingResponse], status_code=status.HTTP_201_CREATED)
def create_demo_booking(data: CreateDemoBookingRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        settings = get_or_create_settings(db)
        rules = booking_rules_from(settings)
        requested = build_requested_interval(combine_requested_start(data.date, data.time), data.duration_minutes)
        validate_booking_window(requested, data.guest_count, rules, opening_hours_from(settings), datetime.now())

        tables = [get_bookable_table(db, table_id) for table_id in data.table_ids]
        total_capacity = sum(table.capacity for table in tables)
        if total_capacity < data.guest_count:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=(
                    f'Selected tables can only accommodate {total_capacity} guests, '
                    f'but the party has {data.guest_count} guests.'
                ),
            )

        party_sizes = split_party(data.guest_count, tables)
        for table, party_size in zip(tables, party_sizes):
            if party_size == 0:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=(
                        f'Table {table.number} is not needed for {data.guest_count} guests. '
                        'Remove it from the selection.'
                    ),
                )

        existing = get_table_bookings(db, [table.id for table in tables], requested, rules.booking_time_margin)
        for table in tables:
            table_bookings = filter_table_bookings(existing, str(table.id))
            if not is_available(requested, table_bookings, rules.booking_time_margin):
                raise booking_conflict(table, requested, table_bookings, rules.booking_time_margin)

        bookings = [
            Booking(
                table_id=table.id,
                customer_name=data.customer_name,
                phone_number=data.phone_number,
                party_size=party_size,
                start_time=requested.start,
                end_time=requested.end,
                status=CONFIRMED_STATUS,
            )
            for table, party_size in zip(tables, party_sizes)
        ]
        db.add_all(bookings)
        db.commit()
        for booking in bookings:
            db.refresh(booking)

        logger.info(
            'Booked %s table(s) for %s guests from %s to %s.',
            len(bookings), data.guest_count, requested.start, requested.end,
        )
        return bookings
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to create demo booking.')
        raise database_unavailable() from exc
