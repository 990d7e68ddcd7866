from datetime import datetime, time, timedelta, timezone

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from restaurant_backend.models.booking import Booking
from restaurant_backend.routes.booking_routes import (
    CreateBookingRequest,
    UpdateBookingRequest,
    build_requested_interval,
    cancel_booking,
    create_booking,
    get_booking,
    list_bookings,
    update_booking,
    validate_booking_window,
)
from restaurant_backend.scheduling.models import BookingRules, OpeningHours


def booking_request(table_id: int, start: datetime, **overrides) -> CreateBookingRequest:
    fields = {
        'table_id': table_id,
        'customer_name': ' Maria Rossi ',
        'phone_number': '+39 123 456 789',
        'party_size': 2,
        'start_time': start,
        'duration_minutes': 60,
    }
    fields.update(overrides)
    return CreateBookingRequest(**fields)


def test_create_booking_request_normalizes_text_fields() -> None:
    request = booking_request(1, datetime(2030, 1, 5, 19, 0))

    assert request.customer_name == 'Maria Rossi'


def test_create_booking_request_rejects_blank_phone_number() -> None:
    with pytest.raises(ValidationError):
        booking_request(1, datetime(2030, 1, 5, 19, 0), phone_number='   ')


def test_build_requested_interval_truncates_seconds() -> None:
    requested = build_requested_interval(datetime(2030, 1, 5, 19, 0, 42), 90)

    assert requested.start == datetime(2030, 1, 5, 19, 0)
    assert requested.end == datetime(2030, 1, 5, 20, 30)


def test_build_requested_interval_converts_offset_aware_start_to_local_time() -> None:
    start = datetime(2030, 1, 5, 18, 0, tzinfo=timezone.utc)

    requested = build_requested_interval(start, 60)

    assert requested.start.tzinfo is None
    assert requested.start == start.astimezone().replace(tzinfo=None)
    assert requested.end - requested.start == timedelta(minutes=60)


@pytest.mark.parametrize(
    ('start_hour', 'duration', 'party_size', 'days_ahead', 'error_detail'),
    [
        (19, 60, 2, -1, 'Bookings must be scheduled in the future.'),
        (19, 60, 13, 1, 'Parties larger than 12 guests cannot be booked online.'),
        (19, 60, 2, 31, 'Bookings can only be made up to 30 days in advance.'),
        (11, 60, 2, 1, 'Booking is outside opening hours (12:00 - 23:00).'),
        (22, 120, 2, 1, 'Booking is outside opening hours (12:00 - 23:00).'),
    ],
)
def test_validate_booking_window_rejects_invalid_requests(
    start_hour: int,
    duration: int,
    party_size: int,
    days_ahead: int,
    error_detail: str,
) -> None:
    now = datetime(2030, 1, 1, 10, 0)
    start = datetime.combine(now.date() + timedelta(days=days_ahead), time(start_hour, 0))

    with pytest.raises(HTTPException) as exception_info:
        validate_booking_window(
            build_requested_interval(start, duration),
            party_size,
            BookingRules(booking_time_margin=90, max_party_size=12, advance_booking_limit=30),
            OpeningHours.parse('12:00 - 23:00'),
            now,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == error_detail


def test_validate_booking_window_accepts_booking_ending_at_close() -> None:
    validate_booking_window(
        build_requested_interval(datetime(2030, 1, 2, 21, 0), 120),
        4,
        BookingRules(booking_time_margin=90),
        OpeningHours.parse('12:00 - 23:00'),
        datetime(2030, 1, 1, 10, 0),
    )


def test_create_booking_persists_booking(restaurant_db, floor, booking_day) -> None:
    booking = create_booking(
        booking_request(floor['A2'].id, datetime.combine(booking_day, time(19, 0)), party_size=4),
        db=restaurant_db,
    )

    assert booking.id is not None
    assert booking.table_id == floor['A2'].id
    assert booking.start_time == datetime.combine(booking_day, time(19, 0))
    assert booking.end_time == datetime.combine(booking_day, time(20, 0))
    assert booking.status == 'confirmed'


def test_create_booking_rejects_start_inside_margin(restaurant_db, floor, booking_day, add_booking) -> None:
    add_booking(floor['A2'], time(18, 0), time(20, 0))

    with pytest.raises(HTTPException) as exception_info:
        create_booking(
            booking_request(floor['A2'].id, datetime.combine(booking_day, time(21, 0))),
            db=restaurant_db,
        )

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail == (
        'Table A2 is not available for the requested time. It is free again from 21:30.'
    )


def test_create_booking_accepts_start_after_margin(restaurant_db, floor, booking_day, add_booking) -> None:
    add_booking(floor['A2'], time(18, 0), time(20, 0))

    booking = create_booking(
        booking_request(floor['A2'].id, datetime.combine(booking_day, time(21, 30))),
        db=restaurant_db,
    )

    assert booking.start_time == datetime.combine(booking_day, time(21, 30))


def test_create_booking_ignores_bookings_on_other_tables(restaurant_db, floor, booking_day, add_booking) -> None:
    add_booking(floor['A1'], time(18, 0), time(20, 0))

    booking = create_booking(
        booking_request(floor['A2'].id, datetime.combine(booking_day, time(19, 0))),
        db=restaurant_db,
    )

    assert booking.table_id == floor['A2'].id


def test_create_booking_rejects_party_larger_than_table(restaurant_db, floor, booking_day) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_booking(
            booking_request(floor['A1'].id, datetime.combine(booking_day, time(19, 0)), party_size=3),
            db=restaurant_db,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Table A1 seats only 2 guests.'


def test_create_booking_rejects_unknown_table(restaurant_db, floor, booking_day) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_booking(booking_request(999, datetime.combine(booking_day, time(19, 0))), db=restaurant_db)

    assert exception_info.value.status_code == 404


def test_create_booking_rejects_table_in_maintenance(restaurant_db, floor, booking_day) -> None:
    floor['A3'].status = 'maintenance'
    restaurant_db.commit()

    with pytest.raises(HTTPException) as exception_info:
        create_booking(booking_request(floor['A3'].id, datetime.combine(booking_day, time(19, 0))), db=restaurant_db)

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail == 'Table A3 is under maintenance.'


def test_list_bookings_filters_by_date(restaurant_db, floor, booking_day, add_booking) -> None:
    todays = add_booking(floor['A1'], time(12, 0), time(13, 0))
    restaurant_db.add(
        Booking(
            table_id=floor['A1'].id,
            customer_name='Tomorrow Guest',
            phone_number='+39 111',
            party_size=2,
            start_time=datetime.combine(booking_day + timedelta(days=1), time(12, 0)),
            end_time=datetime.combine(booking_day + timedelta(days=1), time(13, 0)),
            status='confirmed',
        )
    )
    restaurant_db.commit()

    bookings = list_bookings(booking_date=booking_day, table_id=None, db=restaurant_db)

    assert [booking.id for booking in bookings] == [todays.id]


def test_cancel_booking_reopens_the_table(restaurant_db, floor, booking_day, add_booking) -> None:
    existing = add_booking(floor['A2'], time(18, 0), time(20, 0))

    cancel_booking(booking_id=existing.id, db=restaurant_db)
    booking = create_booking(
        booking_request(floor['A2'].id, datetime.combine(booking_day, time(19, 0))),
        db=restaurant_db,
    )

    assert restaurant_db.query(Booking).filter(Booking.id == existing.id).first() is None
    assert booking.table_id == floor['A2'].id


def test_cancel_booking_returns_not_found_when_missing(restaurant_db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        cancel_booking(booking_id=999, db=restaurant_db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Booking not found.'


def test_create_booking_accepts_utc_start_time(restaurant_db, floor, booking_day) -> None:
    local_start = datetime.combine(booking_day, time(19, 0))
    utc_start = local_start.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z')
    request = CreateBookingRequest.model_validate(
        {
            'table_id': floor['A2'].id,
            'customer_name': 'Maria Rossi',
            'phone_number': '+39 123 456 789',
            'party_size': 2,
            'start_time': utc_start,
            'duration_minutes': 60,
        }
    )

    booking = create_booking(request, db=restaurant_db)

    assert booking.start_time == local_start
    assert booking.end_time == local_start + timedelta(minutes=60)


def test_get_booking_returns_stored_booking(restaurant_db, floor, add_booking) -> None:
    existing = add_booking(floor['A2'], time(19, 0), time(20, 0))

    assert get_booking(booking_id=existing.id, db=restaurant_db).id == existing.id


def test_get_booking_returns_not_found_when_missing(restaurant_db) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_booking(booking_id=999, db=restaurant_db)

    assert exception_info.value.status_code == 404


def test_update_booking_moves_within_its_own_margin(restaurant_db, floor, booking_day, add_booking) -> None:
    existing = add_booking(floor['A2'], time(19, 0), time(20, 0))

    booking = update_booking(
        booking_id=existing.id,
        data=UpdateBookingRequest(start_time=datetime.combine(booking_day, time(19, 30))),
        db=restaurant_db,
    )

    assert booking.start_time == datetime.combine(booking_day, time(19, 30))
    assert booking.end_time == datetime.combine(booking_day, time(20, 30))
    assert restaurant_db.query(Booking).count() == 1


def test_update_booking_rejects_conflict_with_other_booking(restaurant_db, floor, booking_day, add_booking) -> None:
    lunch = add_booking(floor['A2'], time(13, 0), time(14, 0))
    add_booking(floor['A2'], time(19, 0), time(20, 0))

    with pytest.raises(HTTPException) as exception_info:
        update_booking(
            booking_id=lunch.id,
            data=UpdateBookingRequest(start_time=datetime.combine(booking_day, time(20, 30))),
            db=restaurant_db,
        )

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail == (
        'Table A2 is not available for the requested time. It is free again from 21:30.'
    )
    restaurant_db.refresh(lunch)
    assert lunch.start_time == datetime.combine(booking_day, time(13, 0))


def test_update_booking_moves_to_another_table(restaurant_db, floor, add_booking) -> None:
    existing = add_booking(floor['A1'], time(19, 0), time(20, 0))

    booking = update_booking(
        booking_id=existing.id,
        data=UpdateBookingRequest(table_id=floor['A3'].id, party_size=5),
        db=restaurant_db,
    )

    assert booking.table_id == floor['A3'].id
    assert booking.party_size == 5


def test_update_booking_rejects_party_larger_than_table(restaurant_db, floor, add_booking) -> None:
    existing = add_booking(floor['A1'], time(19, 0), time(20, 0))

    with pytest.raises(HTTPException) as exception_info:
        update_booking(booking_id=existing.id, data=UpdateBookingRequest(party_size=3), db=restaurant_db)

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'Table A1 seats only 2 guests.'


def test_update_booking_changes_guest_details_only(restaurant_db, floor, booking_day, add_booking) -> None:
    existing = add_booking(floor['A1'], time(19, 0), time(20, 0))

    booking = update_booking(
        booking_id=existing.id,
        data=UpdateBookingRequest(customer_name=' Luca Verdi '),
        db=restaurant_db,
    )

    assert booking.customer_name == 'Luca Verdi'
    assert booking.start_time == datetime.combine(booking_day, time(19, 0))


def test_update_booking_request_rejects_blank_name() -> None:
    with pytest.raises(ValidationError):
        UpdateBookingRequest(customer_name='  ')
