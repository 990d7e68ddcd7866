import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from restaurant_backend.auth.dependencies import require_permission
from restaurant_backend.auth.permissions import MANAGE_ZONES
from restaurant_backend.models.table import DiningTable
from restaurant_backend.models.user import User
from restaurant_backend.models.zone import Zone
from restaurant_backend.routes.common import database_unavailable, get_db

router = APIRouter(tags=['zones'])

logger = logging.getLogger(__name__)

DEFAULT_ZONE_COLOR = '#06b6d4'


def normalize_zone_name(value: str) -> str:
    normalized = value.strip()
    if not normalized:
        raise ValueError('Zone name is required.')
    return normalized


def normalize_zone_color(value: str) -> str:
    normalized = value.strip().lower()
    if len(normalized) != 7 or not normalized.startswith('#'):
        raise ValueError('Zone color must be a hex value like #06b6d4.')
    try:
        int(normalized[1:], 16)
    except ValueError as exc:
        raise ValueError('Zone color must be a hex value like #06b6d4.') from exc
    return normalized


class CreateZoneRequest(BaseModel):
    name: str
    description: str | None = None
    color: str = DEFAULT_ZONE_COLOR

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        return normalize_zone_name(value)

    @field_validator('color')
    @classmethod
    def validate_color(cls, value: str) -> str:
        return normalize_zone_color(value)


class UpdateZoneRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    color: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        return None if value is None else normalize_zone_name(value)

    @field_validator('color')
    @classmethod
    def validate_color(cls, value: str | None) -> str | None:
        return None if value is None else normalize_zone_color(value)


class ZoneResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    color: str
    table_ids: list[int]
    total_capacity: int


def get_zone(db: Session, zone_id: int) -> Zone:
    zone = db.query(Zone).filter(Zone.id == zone_id).first()
    if not zone:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail='Zone not found.',
        )
    return zone


def build_zone_response(zone: Zone, tables: list[DiningTable]) -> ZoneResponse:
    return ZoneResponse(
        id=zone.id,
        name=zone.name,
        description=zone.description,
        color=zone.color or DEFAULT_ZONE_COLOR,
        table_ids=[table.id for table in tables],
        total_capacity=sum(table.capacity for table in tables),
    )


@router.get('', response_model=list[ZoneResponse])
def list_zones(db: Session = Depends(get_db)):
    try:
        zones = db.query(Zone).order_by(Zone.name.asc()).all()
        tables = db.query(DiningTable).filter(DiningTable.is_active.is_(True)).order_by(DiningTable.number.asc()).all()

        tables_by_zone: dict[int, list[DiningTable]] = {}
        for table in tables:
            tables_by_zone.setdefault(table.zone_id, []).append(table)

        return [build_zone_response(zone, tables_by_zone.get(zone.id, [])) for zone in zones]
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=ZoneResponse, status_code=status.HTTP_201_CREATED)
def create_zone(
    data: CreateZoneRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(MANAGE_ZONES)),
):
    try:
        if db.query(Zone).filter(Zone.name == data.name).first():
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f'Zone {data.name} already exists.',
            )

        zone = Zone(name=data.name, description=data.description, color=data.color)
        db.add(zone)
        db.commit()
        db.refresh(zone)
        logger.info('Zone %s created by %s.', zone.name, current_user.email)

        return build_zone_response(zone, [])
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to create zone.')
        raise database_unavailable() from exc


@router.put('/{zone_id}', response_model=ZoneResponse)
def update_zone(
    zone_id: int,
    data: UpdateZoneRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(MANAGE_ZONES)),
):
    try:
        zone = get_zone(db, zone_id)
        updates = data.model_dump(exclude_unset=True, exclude_none=True)

        if 'name' in updates:
            duplicate = db.query(Zone).filter(Zone.name == updates['name'], Zone.id != zone.id).first()
            if duplicate:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f'Zone {updates["name"]} already exists.',
                )

        for field_name, value in updates.items():
            setattr(zone, field_name, value)

        db.commit()
        db.refresh(zone)
        logger.info('Zone %s updated by %s: %s', zone.name, current_user.email, sorted(updates))

        tables = db.query(DiningTable).filter(
            DiningTable.zone_id == zone.id,
            DiningTable.is_active.is_(True),
        ).order_by(DiningTable.number.asc()).all()
        return build_zone_response(zone, tables)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to update zone %s.', zone_id)
        raise database_unavailable() from exc


@router.delete('/{zone_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_zone(
    zone_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(MANAGE_ZONES)),
):
    try:
        zone = get_zone(db, zone_id)

        has_tables = db.query(DiningTable).filter(
            DiningTable.zone_id == zone.id,
            DiningTable.is_active.is_(True),
        ).first()
        if has_tables:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f'Zone {zone.name} still has tables. Move or remove them first.',
            )

        zone_name = zone.name
        db.query(DiningTable).filter(DiningTable.zone_id == zone.id).update({DiningTable.zone_id: None})
        db.delete(zone)
        db.commit()
        logger.info('Zone %s removed by %s.', zone_name, current_user.email)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to remove zone %s.', zone_id)
        raise database_unavailable() from exc
