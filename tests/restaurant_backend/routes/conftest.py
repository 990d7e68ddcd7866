import os
from datetime import date, datetime, time, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from restaurant_backend.database import Base  # noqa: E402
from restaurant_backend.models.booking import Booking  # noqa: E402
from restaurant_backend.models.restaurant import RestaurantSettings  # noqa: E402
from restaurant_backend.models.table import DiningTable  # noqa: E402
from restaurant_backend.models.user import User  # noqa: E402
from restaurant_backend.models.zone import Zone  # noqa: E402
from restaurant_backend.routes import booking_demo_routes, booking_routes, table_routes  # noqa: E402


@pytest.fixture
def restaurant_db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = testing_session_local()
    db.add(
        RestaurantSettings(
            name='Ristorante Bella Vista',
            opening_hours='12:00 - 23:00',
            booking_time_margin=90,
            max_party_size=12,
            advance_booking_limit=30,
            cancellation_policy=24,
            deposit_required=False,
            deposit_amount=0,
        )
    )
    db.commit()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def skip_schema_checks(monkeypatch: pytest.MonkeyPatch) -> None:
    for module in (booking_routes, booking_demo_routes, table_routes):
        monkeypatch.setattr(module, 'ensure_database_ready', lambda: None)


@pytest.fixture
def booking_day() -> date:
    return date.today() + timedelta(days=3)


@pytest.fixture
def admin_user() -> User:
    return User(email='admin@restaurant.com', name='Admin User', role='admin')


@pytest.fixture
def floor(restaurant_db):
    """Zone A with a two-top, a four-top and a six-top."""
    zone = Zone(name='Zone A', description='Main dining area', color='#06b6d4')
    restaurant_db.add(zone)
    restaurant_db.commit()

    tables = [
        DiningTable(number='A1', zone_id=zone.id, capacity=2, status='available', is_active=True),
        DiningTable(number='A2', zone_id=zone.id, capacity=4, status='available', is_active=True),
        DiningTable(number='A3', zone_id=zone.id, capacity=6, status='available', is_active=True),
    ]
    restaurant_db.add_all(tables)
    restaurant_db.commit()
    for table in tables:
        restaurant_db.refresh(table)

    return {table.number: table for table in tables}


@pytest.fixture
def add_booking(restaurant_db, booking_day: date):
    def _add_booking(table: DiningTable, start: time, end: time, party_size: int = 2) -> Booking:
        booking = Booking(
            table_id=table.id,
            customer_name='Existing Guest',
            phone_number='+39 000 000',
            party_size=party_size,
            start_time=datetime.combine(booking_day, start),
            end_time=datetime.combine(booking_day, end),
            status='confirmed',
        )
        restaurant_db.add(booking)
        restaurant_db.commit()
        restaurant_db.refresh(booking)
        return booking

    return _add_booking
