import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, ValidationError, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from restaurant_backend.auth.dependencies import require_permission
from restaurant_backend.auth.permissions import MANAGE_SETTINGS
from restaurant_backend.core import config
from restaurant_backend.models.restaurant import RestaurantSettings
from restaurant_backend.models.user import User
from restaurant_backend.routes.common import database_unavailable, get_db
from restaurant_backend.scheduling.formatting import format_time_margin, time_margin_description
from restaurant_backend.scheduling.models import BookingRules, OpeningHours

router = APIRouter(tags=['restaurant'])

logger = logging.getLogger(__name__)

DEFAULT_MAX_PARTY_SIZE = 12
DEFAULT_ADVANCE_BOOKING_LIMIT_DAYS = 30
DEFAULT_CANCELLATION_POLICY_HOURS = 24


class RestaurantSettingsResponse(BaseModel):
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    opening_hours: str
    booking_time_margin: int
    booking_time_margin_text: str
    time_margin_description: str
    max_party_size: int
    advance_booking_limit: int
    cancellation_policy: int
    deposit_required: bool
    deposit_amount: float


class UpdateRestaurantSettingsRequest(BaseModel):
    name: str | None = None
    phone: str | None = None
    email: str | None = None
    address: str | None = None
    opening_hours: str | None = None
    booking_time_margin: int | None = Field(default=None, ge=0)
    max_party_size: int | None = Field(default=None, ge=1)
    advance_booking_limit: int | None = Field(default=None, ge=0)
    cancellation_policy: int | None = Field(default=None, ge=0)
    deposit_required: bool | None = None
    deposit_amount: float | None = Field(default=None, ge=0)

    @field_validator('opening_hours')
    @classmethod
    def validate_opening_hours(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return OpeningHours.parse(value.strip()).format()

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            raise ValueError('Restaurant name cannot be blank.')
        return normalized


def get_or_create_settings(db: Session) -> RestaurantSettings:
    settings = db.query(RestaurantSettings).order_by(RestaurantSettings.id.asc()).first()
    if settings is not None:
        return settings

    settings = RestaurantSettings(
        name=config.DEFAULT_RESTAURANT_NAME,
        opening_hours=config.DEFAULT_OPENING_HOURS,
        booking_time_margin=config.DEFAULT_BOOKING_TIME_MARGIN,
        max_party_size=DEFAULT_MAX_PARTY_SIZE,
        advance_booking_limit=DEFAULT_ADVANCE_BOOKING_LIMIT_DAYS,
        cancellation_policy=DEFAULT_CANCELLATION_POLICY_HOURS,
        deposit_required=False,
        deposit_amount=0,
    )
    db.add(settings)
    db.commit()
    db.refresh(settings)
    logger.info('Created default restaurant settings (opening hours %s).', settings.opening_hours)
    return settings


def booking_rules_from(settings: RestaurantSettings) -> BookingRules:
    try:
        return BookingRules(
            booking_time_margin=settings.booking_time_margin or 0,
            max_party_size=settings.max_party_size or DEFAULT_MAX_PARTY_SIZE,
            advance_booking_limit=(
                DEFAULT_ADVANCE_BOOKING_LIMIT_DAYS
                if settings.advance_booking_limit is None
                else settings.advance_booking_limit
            ),
            cancellation_policy=(
                DEFAULT_CANCELLATION_POLICY_HOURS
                if settings.cancellation_policy is None
                else settings.cancellation_policy
            ),
            deposit_required=bool(settings.deposit_required),
            deposit_amount=settings.deposit_amount or 0,
        )
    except ValidationError as exc:
        logger.error('Stored booking rules are invalid: %s', exc.errors(include_url=False))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Restaurant booking rules are misconfigured.',
        ) from exc


def opening_hours_from(settings: RestaurantSettings) -> OpeningHours:
    try:
        return OpeningHours.parse(settings.opening_hours or config.DEFAULT_OPENING_HOURS)
    except ValueError as exc:
        logger.error('Stored opening hours %r are invalid.', settings.opening_hours)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail='Restaurant opening hours are misconfigured.',
        ) from exc


def build_settings_response(settings: RestaurantSettings) -> RestaurantSettingsResponse:
    rules = booking_rules_from(settings)
    return RestaurantSettingsResponse(
        name=settings.name,
        phone=settings.phone,
        email=settings.email,
        address=settings.address,
        opening_hours=opening_hours_from(settings).format(),
        booking_time_margin=rules.booking_time_margin,
        booking_time_margin_text=format_time_margin(rules.booking_time_margin),
        time_margin_description=time_margin_description(rules),
        max_party_size=rules.max_party_size,
        advance_booking_limit=rules.advance_booking_limit,
        cancellation_policy=rules.cancellation_policy,
        deposit_required=rules.deposit_required,
        deposit_amount=rules.deposit_amount,
    )


@router.get('/settings', response_model=RestaurantSettingsResponse)
def get_restaurant_settings(db: Session = Depends(get_db)):
    try:
        return build_settings_response(get_or_create_settings(db))
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to load restaurant settings.')
        raise database_unavailable() from exc


@router.put('/settings', response_model=RestaurantSettingsResponse)
def update_restaurant_settings(
    data: UpdateRestaurantSettingsRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(MANAGE_SETTINGS)),
):
    try:
        settings = get_or_create_settings(db)
        updates = data.model_dump(exclude_unset=True, exclude_none=True)
        for field_name, value in updates.items():
            setattr(settings, field_name, value)

        db.commit()
        db.refresh(settings)
        logger.info('Restaurant settings updated by %s: %s', current_user.email, sorted(updates))

        return build_settings_response(settings)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to update restaurant settings.')
        raise database_unavailable() from exc
