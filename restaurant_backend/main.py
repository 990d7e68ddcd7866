import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from restaurant_backend.core import config
from restaurant_backend.core.logging import configure_logging
from restaurant_backend.database import Base, engine, ensure_booking_schema
from restaurant_backend.models import booking, restaurant, table, user, zone  # noqa: F401
from restaurant_backend.routes import (
    auth_routes,
    booking_demo_routes,
    booking_routes,
    restaurant_routes,
    table_routes,
    zone_routes,
)

configure_logging()
config.validate_runtime_config()

app = FastAPI(title='Restaurant Dashboard API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
def initialize_database() -> None:
    try:
        Base.metadata.create_all(bind=engine)
        ensure_booking_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Restaurant Dashboard API Running'}


app.include_router(auth_routes.router, prefix='/auth')
app.include_router(restaurant_routes.router, prefix='/restaurant')
app.include_router(zone_routes.router, prefix='/zones')
app.include_router(table_routes.router, prefix='/tables')
app.include_router(booking_routes.router, prefix='/bookings')
app.include_router(booking_demo_routes.router, prefix='/booking-demo')
