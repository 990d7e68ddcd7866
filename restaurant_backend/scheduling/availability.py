"""Booking availability calculations.

Every function here is pure: bookings, opening hours and the margin are passed
in explicitly and nothing is cached or mutated between calls.

A booking blocks its table from its start until ``margin_minutes`` after its
end. No margin is applied in front of a booking.
"""

from collections.abc import Iterable, Iterator, Sequence
from datetime import date, datetime, timedelta

from restaurant_backend.scheduling.models import (
    OpeningHours,
    TableBooking,
    TableCandidate,
    TimeInterval,
)

DEFAULT_SLOT_DURATION_MINUTES = 60


def next_available_time(booking_end: datetime, margin_minutes: int) -> datetime:
    return booking_end + timedelta(minutes=margin_minutes)


def conflicts_with(requested: TimeInterval, booking: TableBooking, margin_minutes: int) -> bool:
    table_free_at = next_available_time(booking.interval.end, margin_minutes)
    return requested.start < table_free_at and requested.end > booking.interval.start


def is_available(
    requested: TimeInterval,
    existing_bookings: Iterable[TableBooking],
    margin_minutes: int,
) -> bool:
    """Return True if ``requested`` clears every booking in ``existing_bookings``.

    The bookings must all belong to the table being checked. No table id
    filtering happens here: passing bookings of other tables makes them block
    this one as well. Use ``filter_table_bookings`` first when holding a
    restaurant-wide list.
    """
    return not any(conflicts_with(requested, booking, margin_minutes) for booking in existing_bookings)


def filter_table_bookings(bookings: Iterable[TableBooking], table_id: str) -> list[TableBooking]:
    return [booking for booking in bookings if booking.table_id == table_id]


def enumerate_slots(
    day: date,
    opening_hours: OpeningHours,
    existing_bookings: Sequence[TableBooking],
    margin_minutes: int,
    slot_duration_minutes: int = DEFAULT_SLOT_DURATION_MINUTES,
) -> Iterator[datetime]:
    """Yield the free slot starts of one table on ``day``, in ascending order.

    Slots are laid out back to back from opening time. A slot that would run
    past closing time is not offered.
    """
    if slot_duration_minutes <= 0:
        raise ValueError('Slot duration must be a positive number of minutes.')

    return _iter_open_slots(day, opening_hours, existing_bookings, margin_minutes, slot_duration_minutes)


def _iter_open_slots(
    day: date,
    opening_hours: OpeningHours,
    existing_bookings: Sequence[TableBooking],
    margin_minutes: int,
    slot_duration_minutes: int,
) -> Iterator[datetime]:
    step = timedelta(minutes=slot_duration_minutes)
    current_start = datetime.combine(day, opening_hours.open_time)
    closing_time = datetime.combine(day, opening_hours.close_time)

    while current_start + step <= closing_time:
        slot = TimeInterval(start=current_start, end=current_start + step)
        if is_available(slot, existing_bookings, margin_minutes):
            yield current_start
        current_start += step


def find_available_tables(
    tables: Iterable[tuple[str, int]],
    bookings: Sequence[TableBooking],
    requested: TimeInterval,
    margin_minutes: int,
    party_size: int,
) -> list[TableCandidate]:
    """Rank every table that is free for ``requested`` against ``party_size``.

    ``tables`` holds ``(table_id, capacity)`` pairs; ``bookings`` may span all
    tables and is split per table here.
    """
    candidates: list[TableCandidate] = []
    for table_id, capacity in tables:
        table_bookings = filter_table_bookings(bookings, table_id)
        if is_available(requested, table_bookings, margin_minutes):
            candidates.append(TableCandidate.for_party(table_id, capacity, party_size))

    return candidates


def select_tables(candidates: Sequence[TableCandidate], party_size: int) -> list[str] | None:
    """Pick a single table or a greedy combination seating ``party_size``.

    Candidates are ranked by efficiency (fewest wasted seats first, ties keep
    their input order). The best suitable single table wins; otherwise tables
    are added in ranked order until the party fits. Returns None when all
    candidates together are too small.

    This is a greedy heuristic. It does not search for the combination with
    the least total waste.
    """
    if party_size < 1:
        raise ValueError('Party size must be at least 1.')

    ranked = sorted(candidates, key=lambda candidate: candidate.efficiency)

    for candidate in ranked:
        if candidate.is_suitable:
            return [candidate.table_id]

    selected_ids: list[str] = []
    total_capacity = 0
    for candidate in ranked:
        if total_capacity >= party_size:
            break
        selected_ids.append(candidate.table_id)
        total_capacity += candidate.capacity

    if total_capacity < party_size:
        return None

    return selected_ids
