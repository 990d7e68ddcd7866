import logging
from datetime import date, datetime, time, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from restaurant_backend.auth.dependencies import require_permission
from restaurant_backend.auth.permissions import MANAGE_TABLES
from restaurant_backend.core import config
from restaurant_backend.models.booking import Booking
from restaurant_backend.models.table import DiningTable
from restaurant_backend.models.user import User
from restaurant_backend.models.zone import Zone
from restaurant_backend.routes.booking_routes import to_table_booking
from restaurant_backend.routes.common import database_unavailable, ensure_database_ready, get_db
from restaurant_backend.routes.restaurant_routes import (
    booking_rules_from,
    get_or_create_settings,
    opening_hours_from,
)
from restaurant_backend.scheduling.availability import enumerate_slots
from restaurant_backend.scheduling.models import TableStatus

router = APIRouter(tags=['tables'])

logger = logging.getLogger(__name__)

MIN_SLOT_DURATION_MINUTES = 15
MAX_SLOT_DURATION_MINUTES = 8 * 60


def normalize_table_number(value: str) -> str:
    normalized = value.strip().upper()
    if not normalized:
        raise ValueError('Table number is required.')
    return normalized


class CreateTableRequest(BaseModel):
    number: str
    capacity: int = Field(ge=1)
    zone_id: int | None = None
    position_x: int | None = None
    position_y: int | None = None

    @field_validator('number')
    @classmethod
    def validate_number(cls, value: str) -> str:
        return normalize_table_number(value)


class UpdateTableRequest(BaseModel):
    number: str | None = None
    capacity: int | None = Field(default=None, ge=1)
    zone_id: int | None = None
    position_x: int | None = None
    position_y: int | None = None

    @field_validator('number')
    @classmethod
    def validate_number(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return normalize_table_number(value)


class UpdateTableStatusRequest(BaseModel):
    status: TableStatus


class TableResponse(BaseModel):
    id: int
    number: str
    zone_id: int | None = None
    capacity: int
    status: TableStatus
    position_x: int | None = None
    position_y: int | None = None
    is_active: bool

    class Config:
        from_attributes = True


class TableSlotsResponse(BaseModel):
    table_id: int
    date: date
    opening_hours: str
    booking_time_margin: int
    slot_duration_minutes: int
    slots: list[datetime]


def get_active_table(db: Session, table_id: int) -> DiningTable:
    table = db.query(DiningTable).filter(
        DiningTable.id == table_id,
        DiningTable.is_active.is_(True),
    ).first()

    if not table:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Table not found.',
        )

    return table


def ensure_zone_exists(db: Session, zone_id: int | None) -> None:
    if zone_id is not None and not db.query(Zone).filter(Zone.id == zone_id).first():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Zone not found.',
        )


def ensure_number_is_free(db: Session, number: str, table_id: int | None = None) -> None:
    query = db.query(DiningTable).filter(
        DiningTable.number == number,
        DiningTable.is_active.is_(True),
    )
    if table_id is not None:
        query = query.filter(DiningTable.id != table_id)
    if query.first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f'Table {number} already exists.',
        )


@router.get('', response_model=list[TableResponse])
def list_tables(
    zone_id: int | None = Query(default=None),
    table_status: TableStatus | None = Query(default=None, alias='status'),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(DiningTable).filter(DiningTable.is_active.is_(True))
        if zone_id is not None:
            query = query.filter(DiningTable.zone_id == zone_id)
        if table_status is not None:
            query = query.filter(DiningTable.status == table_status.value)

        return query.order_by(DiningTable.number.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=TableResponse, status_code=status.HTTP_201_CREATED)
def create_table(
    data: CreateTableRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(MANAGE_TABLES)),
):
    try:
        ensure_zone_exists(db, data.zone_id)
        ensure_number_is_free(db, data.number)

        table = DiningTable(
            number=data.number,
            zone_id=data.zone_id,
            capacity=data.capacity,
            status=TableStatus.AVAILABLE.value,
            position_x=data.position_x,
            position_y=data.position_y,
            is_active=True,
        )
        db.add(table)
        db.commit()
        db.refresh(table)
        logger.info('Table %s created by %s.', table.number, current_user.email)

        return table
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to create table.')
        raise database_unavailable() from exc


@router.get('/{table_id}', response_model=TableResponse)
def get_table(table_id: int, db: Session = Depends(get_db)):
    try:
        return get_active_table(db, table_id)
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.put('/{table_id}', response_model=TableResponse)
def update_table(
    table_id: int,
    data: UpdateTableRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(MANAGE_TABLES)),
):
    ensure_database_ready()

    try:
        table = get_active_table(db, table_id)
        updates = data.model_dump(exclude_unset=True, exclude_none=True)

        if 'number' in updates:
            ensure_number_is_free(db, updates['number'], table.id)
        if 'zone_id' in updates:
            ensure_zone_exists(db, updates['zone_id'])
        if 'capacity' in updates:
            oversized = db.query(Booking).filter(
                Booking.table_id == table.id,
                Booking.end_time > datetime.now(),
                Booking.party_size > updates['capacity'],
            ).order_by(Booking.party_size.desc()).first()
            if oversized:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=(
                        f'Table {table.number} has an upcoming booking for {oversized.party_size} guests. '
                        'Capacity cannot drop below that.'
                    ),
                )

        for field_name, value in updates.items():
            setattr(table, field_name, value)

        db.commit()
        db.refresh(table)
        logger.info('Table %s updated by %s: %s', table.number, current_user.email, sorted(updates))

        return table
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to update table %s.', table_id)
        raise database_unavailable() from exc


@router.patch('/{table_id}/status', response_model=TableResponse)
def update_table_status(
    table_id: int,
    data: UpdateTableStatusRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(MANAGE_TABLES)),
):
    try:
        table = get_active_table(db, table_id)
        table.status = data.status.value
        db.commit()
        db.refresh(table)
        logger.info('Table %s marked %s by %s.', table.number, table.status, current_user.email)

        return table
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to update table %s.', table_id)
        raise database_unavailable() from exc


@router.delete('/{table_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_table(
    table_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(MANAGE_TABLES)),
):
    ensure_database_ready()

    try:
        table = get_active_table(db, table_id)

        upcoming = db.query(Booking).filter(
            Booking.table_id == table.id,
            Booking.end_time > datetime.now(),
        ).first()
        if upcoming:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f'Table {table.number} still has upcoming bookings.',
            )

        # Past bookings keep pointing at the row, so it is only deactivated.
        table.is_active = False
        db.commit()
        logger.info('Table %s removed by %s.', table.number, current_user.email)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to remove table %s.', table_id)
        raise database_unavailable() from exc


@router.get('/{table_id}/slots', response_model=TableSlotsResponse)
def list_table_slots(
    table_id: int,
    slot_date: date = Query(..., alias='date'),
    slot_duration_minutes: int | None = Query(
        default=None,
        ge=MIN_SLOT_DURATION_MINUTES,
        le=MAX_SLOT_DURATION_MINUTES,
    ),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        table = get_active_table(db, table_id)
        settings = get_or_create_settings(db)
        rules = booking_rules_from(settings)
        opening_hours = opening_hours_from(settings)
        duration = slot_duration_minutes or config.DEFAULT_SLOT_DURATION_MINUTES

        day_start = datetime.combine(slot_date, time.min)
        bookings = db.query(Booking).filter(
            Booking.table_id == table.id,
            Booking.start_time < day_start + timedelta(days=1),
            Booking.end_time > day_start - timedelta(minutes=rules.booking_time_margin),
        ).order_by(Booking.start_time.asc()).all()
        existing = [to_table_booking(booking) for booking in bookings]

        return TableSlotsResponse(
            table_id=table.id,
            date=slot_date,
            opening_hours=opening_hours.format(),
            booking_time_margin=rules.booking_time_margin,
            slot_duration_minutes=duration,
            slots=list(enumerate_slots(slot_date, opening_hours, existing, rules.booking_time_margin, duration)),
        )
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
